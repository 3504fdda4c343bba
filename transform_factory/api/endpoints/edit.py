import logging
from typing import Optional

from fastapi import APIRouter, File as FileParam, Form, UploadFile
from fastapi.concurrency import run_in_threadpool

from transform_factory.api.forms import IMAGE_EXTENSIONS, PDF_EXTENSIONS, parse_json_list, read_upload
from transform_factory.api.responses import pdf_attachment
from transform_factory.core.errors import InvalidInputError
from transform_factory.schemas.pdf import FormField, RedactionArea
from transform_factory.services.markup_service import markup_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pdf", tags=["PDF Editing"])


@router.post("/watermark")
async def add_watermark(
    file: Optional[UploadFile] = FileParam(None),
    watermark_text: Optional[str] = Form(None, alias="watermarkText"),
    watermark_opacity: float = Form(0.5, alias="watermarkOpacity"),
    watermark_size: float = Form(50, alias="watermarkSize"),
    watermark_rotation: float = Form(-45, alias="watermarkRotation"),
):
    upload = await read_upload(file, "watermark", PDF_EXTENSIONS)
    watermarked = await run_in_threadpool(
        markup_service.watermark,
        upload.content,
        watermark_text or "",
        watermark_opacity,
        watermark_size,
        watermark_rotation,
    )
    logger.info("watermark: %s", upload.filename)
    return pdf_attachment(watermarked, "watermarked.pdf")


@router.post("/add-page-numbers")
async def add_page_numbers(
    pdf: Optional[UploadFile] = FileParam(None),
    start_number: int = Form(1, alias="startNumber"),
    position: str = Form("bottom-center"),
    prefix: str = Form(""),
    suffix: str = Form(""),
    font_size: float = Form(12, alias="fontSize"),
):
    upload = await read_upload(pdf, "add-page-numbers", PDF_EXTENSIONS)
    numbered = await run_in_threadpool(
        markup_service.add_page_numbers, upload.content, start_number, position, prefix, suffix, font_size
    )
    logger.info("add-page-numbers: %s from %d at %s", upload.filename, start_number, position)
    return pdf_attachment(numbered, "numbered.pdf")


@router.post("/redact")
async def redact_pdf(
    pdf: Optional[UploadFile] = FileParam(None),
    redaction_areas: Optional[str] = Form(None, alias="redactionAreas"),
    redaction_color: str = Form("black", alias="redactionColor"),
):
    upload = await read_upload(pdf, "redact", PDF_EXTENSIONS)
    areas = parse_json_list(redaction_areas, RedactionArea, "redactionAreas")
    redacted = await run_in_threadpool(markup_service.redact, upload.content, areas, redaction_color)
    logger.info("redact: %s, %d areas", upload.filename, len(areas))
    return pdf_attachment(redacted, "redacted.pdf")


@router.post("/sign")
async def sign_pdf(
    pdf: Optional[UploadFile] = FileParam(None),
    signature: Optional[UploadFile] = FileParam(None),
    page_number: int = Form(1, alias="pageNumber"),
    pos_x: float = Form(50, alias="posX"),
    pos_y: float = Form(50, alias="posY"),
    width: float = Form(150),
    include_date: bool = Form(False, alias="includeDate"),
):
    upload = await read_upload(pdf, "sign", PDF_EXTENSIONS)
    if signature is None or not signature.filename:
        raise InvalidInputError("No signature image provided")
    image = await read_upload(signature, "sign", IMAGE_EXTENSIONS, kind="signature image")
    signed = await run_in_threadpool(
        markup_service.sign, upload.content, image.content, page_number, pos_x, pos_y, width, include_date
    )
    logger.info("sign: %s on page %d", upload.filename, page_number)
    return pdf_attachment(signed, "signed.pdf")


@router.post("/create-form")
async def create_form(
    pdf: Optional[UploadFile] = FileParam(None),
    fields: Optional[str] = Form(None),
):
    upload = await read_upload(pdf, "create-form", PDF_EXTENSIONS)
    form_fields = parse_json_list(fields, FormField, "fields")
    fillable = await run_in_threadpool(markup_service.create_form, upload.content, form_fields)
    logger.info("create-form: %s with %d fields", upload.filename, len(form_fields))
    return pdf_attachment(fillable, "fillable.pdf")


@router.post("/form-creator")
async def form_creator(
    base_file: Optional[UploadFile] = FileParam(None, alias="baseFile"),
    form_fields: Optional[str] = Form(None, alias="formFields"),
    page_size: str = Form("a4", alias="pageSize"),
    orientation: str = Form("portrait"),
    title: str = Form("PDF Form"),
):
    fields = parse_json_list(form_fields, FormField, "formFields")
    base = None
    if base_file is not None and base_file.filename:
        base = (await read_upload(base_file, "form-creator", PDF_EXTENSIONS)).content
    form = await run_in_threadpool(markup_service.build_form, fields, page_size, orientation, title, base)
    logger.info("form-creator: %d fields (%s)", len(fields), "on base file" if base else page_size)
    return pdf_attachment(form, "form.pdf")
