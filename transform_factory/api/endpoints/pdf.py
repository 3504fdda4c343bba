import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File as FileParam, Form, UploadFile
from fastapi.concurrency import run_in_threadpool

from transform_factory.api.deps import get_pdf_engine
from transform_factory.api.forms import (
    IMAGE_EXTENSIONS,
    PDF_EXTENSIONS,
    parse_int_list,
    parse_json_list,
    read_upload,
    read_uploads,
)
from transform_factory.api.responses import pdf_attachment, zip_attachment
from transform_factory.core.errors import InvalidInputError
from transform_factory.schemas.pdf import SplitRange
from transform_factory.services.archive import zip_files
from transform_factory.services.image_service import ImageFile, image_service
from transform_factory.services.page_ranges import parse_page_range, validate_pages
from transform_factory.services.pdf_service import PdfEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pdf", tags=["PDF Pages"])


def padded(number: int, width: int) -> str:
    return str(number).zfill(width)


@router.post("/merge")
async def merge_pdfs(
    pdfs: Optional[List[UploadFile]] = FileParam(None),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    uploads = await read_uploads(pdfs, "merge", PDF_EXTENSIONS, minimum=2)
    merged = await run_in_threadpool(engine.merge, [u.content for u in uploads])
    logger.info("merge: %d files -> %d bytes", len(uploads), len(merged))
    return pdf_attachment(merged, "merged.pdf")


@router.post("/split")
async def split_pdf(
    pdf: Optional[UploadFile] = FileParam(None),
    split_method: str = Form("single", alias="splitMethod"),
    ranges: Optional[str] = Form(None),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "split", PDF_EXTENSIONS)
    if split_method == "single":
        parts = await run_in_threadpool(engine.split_pages, upload.content)
        entries = [(f"page_{number}.pdf", content) for number, content in parts]
    elif split_method == "range":
        spans = parse_json_list(ranges, SplitRange, "ranges")
        if not spans:
            raise InvalidInputError("No page ranges provided")
        parts = await run_in_threadpool(
            engine.split_ranges, upload.content, [(r.start, r.end) for r in spans]
        )
        entries = [(f"range_{start}-{end}.pdf", content) for (start, end), content in parts]
    else:
        raise InvalidInputError(f"Invalid split method: {split_method}. Use 'single' or 'range'")
    logger.info("split: %s into %d parts", upload.filename, len(entries))
    return zip_attachment(zip_files(entries), "split_pdfs.zip")


@router.post("/rotate")
async def rotate_pdf(
    pdf: Optional[UploadFile] = FileParam(None),
    rotation_angle: int = Form(90, alias="rotationAngle"),
    page_numbers: Optional[str] = Form(None, alias="pageNumbers"),
    page_range: Optional[str] = Form(None, alias="pageRange"),
    all_pages: Optional[bool] = Form(None, alias="allPages"),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "rotate", PDF_EXTENSIONS)
    total = engine.page_count(upload.content)
    explicit = parse_int_list(page_numbers, "pageNumbers")

    if all_pages:
        pages = None
    elif page_range and page_range.strip():
        pages = parse_page_range(page_range, total)
    elif explicit:
        pages = validate_pages(explicit, total)
    elif all_pages is None:
        pages = None
    else:
        raise InvalidInputError("No pages selected for rotation")

    rotated = await run_in_threadpool(engine.rotate, upload.content, rotation_angle, pages)
    logger.info("rotate: %s by %d on %s pages", upload.filename, rotation_angle,
                "all" if pages is None else len(pages))
    return pdf_attachment(rotated, "rotated.pdf")


@router.post("/extract-pages")
async def extract_pages(
    pdf: Optional[UploadFile] = FileParam(None),
    page_range: Optional[str] = Form(None, alias="pageRange"),
    output_option: str = Form("single", alias="outputOption"),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "extract-pages", PDF_EXTENSIONS)
    if not page_range or not page_range.strip():
        raise InvalidInputError("Page range is required")
    if output_option not in ("single", "multiple"):
        raise InvalidInputError(f"Invalid output option: {output_option}. Use 'single' or 'multiple'")
    pages = parse_page_range(page_range, engine.page_count(upload.content))

    if output_option == "multiple" and len(pages) > 1:
        width = len(str(pages[-1]))
        entries = []
        for number in pages:
            part = await run_in_threadpool(engine.extract_pages, upload.content, [number])
            entries.append((f"page_{padded(number, width)}.pdf", part))
        logger.info("extract-pages: %s, %d pages as separate files", upload.filename, len(pages))
        return zip_attachment(zip_files(entries), f"{upload.stem}_pages.zip")

    extracted = await run_in_threadpool(engine.extract_pages, upload.content, pages)
    suffix = f"_page{pages[0]}" if len(pages) == 1 else f"_pages{len(pages)}"
    logger.info("extract-pages: %s, %d pages", upload.filename, len(pages))
    return pdf_attachment(extracted, f"{upload.stem}{suffix}.pdf")


@router.post("/remove-pages")
async def remove_pages(
    pdf: Optional[UploadFile] = FileParam(None),
    page_range: Optional[str] = Form(None, alias="pageRange"),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "remove-pages", PDF_EXTENSIONS)
    if not page_range or not page_range.strip():
        raise InvalidInputError("Page range is required")
    pages = parse_page_range(page_range, engine.page_count(upload.content))
    remaining = await run_in_threadpool(engine.remove_pages, upload.content, pages)
    suffix = f"_removed_page{pages[0]}" if len(pages) == 1 else f"_removed_{len(pages)}_pages"
    logger.info("remove-pages: %s, removed %d pages", upload.filename, len(pages))
    return pdf_attachment(remaining, f"{upload.stem}{suffix}.pdf")


@router.post("/merge-images")
async def merge_images(images: Optional[List[UploadFile]] = FileParam(None)):
    uploads = await read_uploads(images, "merge-images", kind="image", article="an")
    document = await run_in_threadpool(
        image_service.images_to_pdf, [ImageFile(u.filename, u.content) for u in uploads]
    )
    logger.info("merge-images: %d images -> %d bytes", len(uploads), len(document))
    return pdf_attachment(document, "images.pdf")


@router.post("/scan")
async def scan_to_pdf(
    images: Optional[List[UploadFile]] = FileParam(None),
    quality: str = Form("medium"),
    color_mode: str = Form("color", alias="colorMode"),
    paper_size: str = Form("a4", alias="paperSize"),
    orientation: str = Form("portrait"),
    margin: float = Form(20),
    include_image_info: bool = Form(False, alias="includeImageInfo"),
):
    uploads = await read_uploads(images, "scan", IMAGE_EXTENSIONS, kind="image", article="an")
    document = await run_in_threadpool(
        image_service.scan,
        [ImageFile(u.filename, u.content) for u in uploads],
        quality,
        color_mode,
        paper_size,
        orientation,
        margin,
        include_image_info,
    )
    logger.info("scan: %d images on %s %s paper", len(uploads), paper_size, orientation)
    return pdf_attachment(document, "scanned_document.pdf")


@router.post("/compress")
async def compress_pdf(
    pdf: Optional[UploadFile] = FileParam(None),
    compression_level: str = Form("medium", alias="compressionLevel"),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "compress", PDF_EXTENSIONS)
    result = await run_in_threadpool(engine.compress, upload.content, compression_level)
    logger.info("compress: %s %d -> %d bytes", upload.filename, result.original_size, result.new_size)
    return pdf_attachment(
        result.content,
        "compressed.pdf",
        headers={
            "X-Compression-Ratio": result.ratio,
            "X-Original-Size": str(result.original_size),
            "X-New-Size": str(result.new_size),
        },
    )


@router.post("/repair")
async def repair_pdf(
    file: Optional[UploadFile] = FileParam(None),
    repair_level: str = Form("standard", alias="repairLevel"),
    recover_images: bool = Form(True, alias="recoverImages"),
    recover_fonts: bool = Form(True, alias="recoverFonts"),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(file, "repair", PDF_EXTENSIONS)
    result = await run_in_threadpool(
        engine.repair, upload.content, repair_level, recover_images, recover_fonts
    )
    logger.info("repair: %s recovered %d pages via %s", upload.filename, result.recovered_pages, result.method)
    return pdf_attachment(result.content, f"{upload.stem}_repaired.pdf")
