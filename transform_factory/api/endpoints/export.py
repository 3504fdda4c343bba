import logging
from typing import Optional

from fastapi import APIRouter, Depends, File as FileParam, Form, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from transform_factory.api.deps import get_pdf_engine, get_speech_synthesizer
from transform_factory.api.forms import PDF_EXTENSIONS, read_upload
from transform_factory.api.responses import attachment, zip_attachment
from transform_factory.core.errors import InvalidInputError
from transform_factory.services.archive import zip_files
from transform_factory.services.conversion_service import DOCUMENT_CONTENT_TYPES, conversion_service
from transform_factory.services.page_ranges import parse_page_range_or_all
from transform_factory.services.pdf_service import PdfEngine
from transform_factory.services.render_service import render_service
from transform_factory.services.speech_service import SpeechSynthesizer, speech_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pdf", tags=["PDF Export"])


def _image_entries(images, ext: str):
    width = 2 if len(images) > 9 else 1
    return [(f"page_{str(number).zfill(width)}.{ext}", data) for number, data in images]


@router.post("/to-jpg")
async def pdf_to_jpg(
    pdf: Optional[UploadFile] = FileParam(None),
    quality: int = Form(90),
    dpi: int = Form(150),
    page_range: str = Form("all", alias="pageRange"),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "to-jpg", PDF_EXTENSIONS)
    pages = parse_page_range_or_all(page_range, engine.page_count(upload.content))
    images = await run_in_threadpool(render_service.render_pages, upload.content, pages, dpi, "jpg", quality)
    logger.info("to-jpg: %s, %d pages at %d dpi", upload.filename, len(images), dpi)
    return zip_attachment(zip_files(_image_entries(images, "jpg")), f"{upload.stem}_jpg.zip")


@router.post("/to-images")
async def pdf_to_images(
    pdf: Optional[UploadFile] = FileParam(None),
    format: str = Form("jpg"),
    dpi: int = Form(150),
    page_range: str = Form("all", alias="pageRange"),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "to-images", PDF_EXTENSIONS)
    fmt = (format or "jpg").lower()
    if fmt == "jpeg":
        fmt = "jpg"
    pages = parse_page_range_or_all(page_range, engine.page_count(upload.content))
    images = await run_in_threadpool(render_service.render_pages, upload.content, pages, dpi, fmt)
    logger.info("to-images: %s, %d pages as %s at %d dpi", upload.filename, len(images), fmt, dpi)
    return zip_attachment(zip_files(_image_entries(images, fmt)), f"{upload.stem}_images.zip")


@router.post("/to-word")
async def pdf_to_word(
    pdf: Optional[UploadFile] = FileParam(None),
    quality: str = Form("medium"),
    page_range: str = Form("all", alias="pageRange"),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "to-word", PDF_EXTENSIONS)
    pages = parse_page_range_or_all(page_range, engine.page_count(upload.content))
    document = await run_in_threadpool(conversion_service.pdf_to_word, upload.content, pages, quality)
    logger.info("to-word: %s, %d pages (%s)", upload.filename, len(pages), quality)
    return attachment(document, f"{upload.stem}.docx", DOCUMENT_CONTENT_TYPES["docx"])


@router.post("/to-excel")
async def pdf_to_excel(
    pdf: Optional[UploadFile] = FileParam(None),
    quality: str = Form("medium"),
    page_range: str = Form("all", alias="pageRange"),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "to-excel", PDF_EXTENSIONS)
    pages = parse_page_range_or_all(page_range, engine.page_count(upload.content))
    workbook = await run_in_threadpool(conversion_service.pdf_to_excel, upload.content, pages, quality)
    logger.info("to-excel: %s, %d pages (%s)", upload.filename, len(pages), quality)
    return attachment(workbook, f"{upload.stem}.xlsx", DOCUMENT_CONTENT_TYPES["xlsx"])


@router.post("/to-powerpoint")
async def pdf_to_powerpoint(
    pdf: Optional[UploadFile] = FileParam(None),
    quality: str = Form("medium"),
    page_range: str = Form("all", alias="pageRange"),
    include_notes: bool = Form(False, alias="includeNotes"),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "to-powerpoint", PDF_EXTENSIONS)
    pages = parse_page_range_or_all(page_range, engine.page_count(upload.content))
    deck = await run_in_threadpool(
        conversion_service.pdf_to_powerpoint, upload.content, pages, quality, include_notes
    )
    logger.info("to-powerpoint: %s, %d slides", upload.filename, len(pages))
    return attachment(deck, f"{upload.stem}.pptx", DOCUMENT_CONTENT_TYPES["pptx"])


@router.post("/extract-text")
async def extract_text(
    pdf: Optional[UploadFile] = FileParam(None),
    page_range: str = Form("all", alias="pageRange"),
    format: str = Form("text"),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "extract-text", PDF_EXTENSIONS)
    if format not in ("text", "json"):
        raise InvalidInputError(f"Invalid format: {format}. Use 'text' or 'json'")
    pages = parse_page_range_or_all(page_range, engine.page_count(upload.content))
    texts = await run_in_threadpool(engine.extract_text, upload.content, pages)
    logger.info("extract-text: %s, %d pages as %s", upload.filename, len(pages), format)
    if format == "json":
        return JSONResponse({f"page_{number}": text for number, text in texts.items()})
    body = "\n\n".join(texts[number] for number in pages)
    return attachment(body.encode("utf-8"), f"{upload.stem}_text.txt", "text/plain; charset=utf-8")


@router.post("/to-audio")
async def pdf_to_audio(
    file: Optional[UploadFile] = FileParam(None),
    voice: str = Form("en-US-Neural2-F"),
    speed: float = Form(1.0),
    language: str = Form("en"),
    quality: str = Form("standard"),
    page_range: str = Form("all", alias="pageRange"),
    engine: PdfEngine = Depends(get_pdf_engine),
    synthesizer: SpeechSynthesizer = Depends(get_speech_synthesizer),
):
    upload = await read_upload(file, "to-audio", PDF_EXTENSIONS)
    pages = parse_page_range_or_all(page_range, engine.page_count(upload.content))
    audio = await run_in_threadpool(
        speech_service.pdf_to_audio, upload.content, synthesizer, pages, language, voice, speed, quality
    )
    logger.info("to-audio: %s, %d pages -> %d bytes", upload.filename, len(pages), len(audio))
    return attachment(audio, f"{upload.stem}.mp3", "audio/mpeg")
