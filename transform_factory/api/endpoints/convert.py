import logging
from typing import Optional

from fastapi import APIRouter, Depends, File as FileParam, Form, UploadFile
from fastapi.concurrency import run_in_threadpool

from transform_factory.api.deps import get_office_converter, get_pdf_engine, get_video_transcoder
from transform_factory.api.forms import read_upload
from transform_factory.api.responses import attachment, pdf_attachment
from transform_factory.core.errors import InvalidInputError
from transform_factory.services.conversion_service import DOCUMENT_CONTENT_TYPES, conversion_service
from transform_factory.services.image_service import CONTENT_TYPES, image_service
from transform_factory.services.media_service import VIDEO_CONTENT_TYPES, VideoTranscoder
from transform_factory.services.office_service import OfficeConverter, html_document, prepare_spreadsheet
from transform_factory.services.page_ranges import parse_page_range_or_all
from transform_factory.services.pdf_service import PdfEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/convert", tags=["Conversion"])

WORD_EXTENSIONS = (".doc", ".docx")
EXCEL_EXTENSIONS = (".xls", ".xlsx", ".csv")
POWERPOINT_EXTENSIONS = (".ppt", ".pptx")
HTML_EXTENSIONS = (".html", ".htm")

# JPEG quality LibreOffice uses for embedded images
EXPORT_QUALITY = {"low": 50, "medium": 75, "high": 90}


def _require_format(output_format: Optional[str]) -> str:
    if not output_format or not output_format.strip():
        raise InvalidInputError("File and output format are required")
    return output_format.strip().lower()


def _export_options(quality: str) -> dict:
    return {"Quality": EXPORT_QUALITY.get((quality or "high").lower(), EXPORT_QUALITY["high"])}


@router.post("/image")
async def convert_image(
    file: Optional[UploadFile] = FileParam(None),
    output_format: Optional[str] = Form(None, alias="outputFormat"),
):
    fmt = _require_format(output_format)
    upload = await read_upload(file, "image", kind="image", article="an")
    converted = await run_in_threadpool(image_service.convert, upload.content, fmt)
    logger.info("image: %s -> %s", upload.filename, fmt)
    return attachment(converted, f"converted.{fmt}", CONTENT_TYPES[fmt])


@router.post("/video")
async def convert_video(
    file: Optional[UploadFile] = FileParam(None),
    output_format: Optional[str] = Form(None, alias="outputFormat"),
    transcoder: VideoTranscoder = Depends(get_video_transcoder),
):
    fmt = _require_format(output_format)
    if fmt not in VIDEO_CONTENT_TYPES:
        raise InvalidInputError(
            f"Unsupported output format: {fmt}. Supported: {', '.join(VIDEO_CONTENT_TYPES)}"
        )
    upload = await read_upload(file, "video", kind="video file")
    converted = await run_in_threadpool(transcoder.transcode, upload.content, upload.extension, fmt)
    logger.info("video: %s -> %s (%d bytes)", upload.filename, fmt, len(converted))
    return attachment(converted, f"converted.{fmt}", VIDEO_CONTENT_TYPES[fmt])


@router.post("/document")
async def convert_document(
    file: Optional[UploadFile] = FileParam(None),
    output_format: Optional[str] = Form(None, alias="outputFormat"),
    office: OfficeConverter = Depends(get_office_converter),
):
    fmt = _require_format(output_format)
    upload = await read_upload(file, "document", kind="document")
    converted = await run_in_threadpool(
        conversion_service.convert_document, upload.content, upload.extension, fmt, office
    )
    logger.info("document: %s -> %s", upload.filename, fmt)
    media_type = DOCUMENT_CONTENT_TYPES.get(fmt, "application/octet-stream")
    return attachment(converted, f"converted.{fmt}", media_type)


@router.post("/document/word-to-pdf")
async def word_to_pdf(
    document: Optional[UploadFile] = FileParam(None),
    quality: str = Form("high"),
    office: OfficeConverter = Depends(get_office_converter),
):
    upload = await read_upload(document, "word-to-pdf", WORD_EXTENSIONS, kind="Word document")
    pdf = await run_in_threadpool(office.to_pdf, upload.content, upload.extension, _export_options(quality))
    logger.info("word-to-pdf: %s (%d bytes)", upload.filename, len(pdf))
    return pdf_attachment(pdf, f"{upload.stem}.pdf")


@router.post("/document/excel-to-pdf")
async def excel_to_pdf(
    spreadsheet: Optional[UploadFile] = FileParam(None),
    quality: str = Form("high"),
    include_gridlines: bool = Form(False, alias="includeGridlines"),
    fit_to_page: bool = Form(False, alias="fitToPage"),
    office: OfficeConverter = Depends(get_office_converter),
):
    upload = await read_upload(
        spreadsheet, "excel-to-pdf", EXCEL_EXTENSIONS, kind="Excel spreadsheet", article="an"
    )
    prepared = await run_in_threadpool(
        prepare_spreadsheet, upload.content, upload.extension, include_gridlines, fit_to_page
    )
    pdf = await run_in_threadpool(office.to_pdf, prepared, upload.extension, _export_options(quality))
    logger.info("excel-to-pdf: %s (%d bytes)", upload.filename, len(pdf))
    return pdf_attachment(pdf, f"{upload.stem}.pdf")


@router.post("/document/powerpoint-to-pdf")
async def powerpoint_to_pdf(
    presentation: Optional[UploadFile] = FileParam(None),
    quality: str = Form("high"),
    include_notes: bool = Form(False, alias="includeNotes"),
    page_range: str = Form("all", alias="pageRange"),
    office: OfficeConverter = Depends(get_office_converter),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(
        presentation, "powerpoint-to-pdf", POWERPOINT_EXTENSIONS, kind="PowerPoint presentation"
    )
    options = _export_options(quality)
    options["ExportNotesPages"] = include_notes
    pdf = await run_in_threadpool(office.to_pdf, upload.content, upload.extension, options)

    total = engine.page_count(pdf)
    slides = parse_page_range_or_all(page_range, total)
    if len(slides) < total:
        pdf = await run_in_threadpool(engine.extract_pages, pdf, slides)
    logger.info("powerpoint-to-pdf: %s, %d of %d slides", upload.filename, len(slides), total)
    return pdf_attachment(pdf, f"{upload.stem}.pdf")


@router.post("/document/html-to-pdf")
async def html_to_pdf(
    html_file: Optional[UploadFile] = FileParam(None, alias="htmlFile"),
    html_content: Optional[str] = Form(None, alias="htmlContent"),
    include_styles: bool = Form(True, alias="includeStyles"),
    page_size: str = Form("a4", alias="pageSize"),
    margins: str = Form("normal"),
    office: OfficeConverter = Depends(get_office_converter),
):
    if html_file is not None and html_file.filename:
        upload = await read_upload(html_file, "html-to-pdf", HTML_EXTENSIONS, kind="HTML file", article="an")
        html = upload.content.decode("utf-8", errors="replace")
    elif html_content and html_content.strip():
        html = html_content
    else:
        raise InvalidInputError("Either an HTML file or HTML content is required")

    document = html_document(html, include_styles, page_size, margins)
    pdf = await run_in_threadpool(office.to_pdf, document.encode("utf-8"), "html")
    logger.info("html-to-pdf: %d characters -> %d bytes", len(html), len(pdf))
    return pdf_attachment(pdf, "converted.pdf")
