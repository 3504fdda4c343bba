from typing import List, Optional, Sequence, Tuple

import fitz  # PyMuPDF

from transform_factory.core.errors import InvalidInputError

IMAGE_FORMATS = ("jpg", "png")


def open_pdf(content: bytes) -> fitz.Document:
    """Open a PDF with PyMuPDF, rejecting damaged or locked documents."""
    try:
        doc = fitz.open(stream=content, filetype="pdf")
    except (fitz.FileDataError, RuntimeError) as exc:
        raise InvalidInputError("Invalid or corrupted PDF file") from exc
    if doc.needs_pass:
        doc.close()
        raise InvalidInputError("The PDF is password protected")
    return doc


class RenderService:
    @staticmethod
    def render_pages(
        content: bytes,
        pages: Optional[Sequence[int]] = None,
        dpi: int = 150,
        fmt: str = "jpg",
        quality: int = 90,
    ) -> List[Tuple[int, bytes]]:
        """Rasterise pages; returns ``(page_number, image_bytes)`` pairs."""
        fmt = fmt.lower()
        if fmt == "jpeg":
            fmt = "jpg"
        if fmt not in IMAGE_FORMATS:
            raise InvalidInputError(f"Unsupported image format: {fmt}. Supported: jpg, png")
        if not 36 <= dpi <= 600:
            raise InvalidInputError("DPI must be between 36 and 600")
        quality = max(1, min(int(quality), 100))

        scale = dpi / 72
        matrix = fitz.Matrix(scale, scale)
        doc = open_pdf(content)
        try:
            numbers = range(1, doc.page_count + 1) if pages is None else pages
            images = []
            for number in numbers:
                pix = doc[number - 1].get_pixmap(matrix=matrix, alpha=False)
                if fmt == "jpg":
                    images.append((number, pix.tobytes("jpeg", jpg_quality=quality)))
                else:
                    images.append((number, pix.tobytes("png")))
            return images
        finally:
            doc.close()

    @staticmethod
    def page_text(content: bytes, pages: Optional[Sequence[int]] = None) -> List[Tuple[int, str]]:
        doc = open_pdf(content)
        try:
            numbers = range(1, doc.page_count + 1) if pages is None else pages
            return [(n, doc[n - 1].get_text("text")) for n in numbers]
        finally:
            doc.close()


render_service = RenderService()
