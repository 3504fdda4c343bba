import logging
from typing import Optional

from fastapi import APIRouter, Depends, File as FileParam, Form, UploadFile
from fastapi.concurrency import run_in_threadpool

from transform_factory.api.deps import get_ocr_engine, get_pdf_engine, get_translator
from transform_factory.api.forms import PDF_EXTENSIONS, read_upload
from transform_factory.api.responses import pdf_attachment
from transform_factory.schemas.analysis import PdfAnalytics
from transform_factory.services.analysis_service import analysis_service
from transform_factory.services.ocr_service import OcrEngine, ocr_service
from transform_factory.services.page_ranges import parse_page_range_or_all
from transform_factory.services.pdf_service import PdfEngine
from transform_factory.services.translation_service import Translator, translation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pdf", tags=["PDF Analysis"])


@router.post("/analytics", response_model=PdfAnalytics)
async def pdf_analytics(file: Optional[UploadFile] = FileParam(None)):
    upload = await read_upload(file, "analytics", PDF_EXTENSIONS)
    analytics = await run_in_threadpool(analysis_service.analyze, upload.content)
    logger.info("analytics: %s, %d pages", upload.filename, analytics["pageCount"])
    return analytics


@router.post("/compare")
async def compare_pdfs(
    file1: Optional[UploadFile] = FileParam(None),
    file2: Optional[UploadFile] = FileParam(None),
    comparison_mode: str = Form("visual", alias="comparisonMode"),
    highlight_changes: bool = Form(False, alias="highlightChanges"),
):
    first = await read_upload(file1, "compare", PDF_EXTENSIONS)
    second = await read_upload(file2, "compare", PDF_EXTENSIONS)
    report = await run_in_threadpool(
        analysis_service.compare,
        first.content,
        second.content,
        first.filename,
        second.filename,
        comparison_mode,
        highlight_changes,
    )
    logger.info("compare: %s vs %s (%s)", first.filename, second.filename, comparison_mode)
    return pdf_attachment(report, "pdf_comparison_report.pdf")


@router.post("/ocr")
async def ocr_pdf(
    file: Optional[UploadFile] = FileParam(None),
    language: str = Form("eng"),
    enhance_text: bool = Form(False, alias="enhanceText"),
    recognize_form_fields: bool = Form(False, alias="recognizeFormFields"),
    quality: str = Form("standard"),
    engine: OcrEngine = Depends(get_ocr_engine),
):
    upload = await read_upload(file, "ocr", PDF_EXTENSIONS)
    searchable = await run_in_threadpool(
        ocr_service.searchable_pdf,
        upload.content,
        engine,
        language,
        quality,
        enhance_text,
        recognize_form_fields,
    )
    logger.info("ocr: %s (%s)", upload.filename, language)
    return pdf_attachment(searchable, f"{upload.stem}_ocr.pdf")


@router.post("/translate")
async def translate_pdf(
    file: Optional[UploadFile] = FileParam(None),
    target_language: str = Form("es", alias="targetLanguage"),
    preserve_layout: bool = Form(False, alias="preserveLayout"),
    quality_level: str = Form("standard", alias="qualityLevel"),
    include_images: bool = Form(False, alias="includeImages"),
    page_range: str = Form("all", alias="pageRange"),
    engine: PdfEngine = Depends(get_pdf_engine),
    translator: Translator = Depends(get_translator),
):
    upload = await read_upload(file, "translate", PDF_EXTENSIONS)
    pages = parse_page_range_or_all(page_range, engine.page_count(upload.content))
    translated = await run_in_threadpool(
        translation_service.translate_pdf,
        upload.content,
        translator,
        target_language,
        pages,
        preserve_layout,
        include_images,
        quality_level,
        upload.filename,
    )
    logger.info("translate: %s, %d pages to %s", upload.filename, len(pages), target_language)
    return pdf_attachment(translated, f"{upload.stem}_{target_language}.pdf")
