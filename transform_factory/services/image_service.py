import logging
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import List, Optional, Sequence

import img2pdf
from PIL import Image, ImageOps, UnidentifiedImageError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from transform_factory.core.errors import InvalidInputError
from transform_factory.services.layout import PAGE_SIZES, fit_rect, page_size

logger = logging.getLogger(__name__)

# outputFormat -> Pillow format name
OUTPUT_FORMATS = {
    "png": "PNG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "webp": "WEBP",
    "gif": "GIF",
    "bmp": "BMP",
}

CONTENT_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "gif": "image/gif",
    "bmp": "image/bmp",
}

SCAN_QUALITY = {"low": 60, "medium": 80, "high": 95}
COLOR_MODES = ("color", "grayscale", "bw")

A4_PAGE = (img2pdf.mm_to_pt(210), img2pdf.mm_to_pt(297))


@dataclass
class ImageFile:
    filename: str
    content: bytes


def _flatten(img: Image.Image) -> Image.Image:
    """Drop transparency onto a white background."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode not in ("RGB", "L"):
        return img.convert("RGB")
    return img


class ImageService:
    @staticmethod
    def convert(content: bytes, output_format: str, quality: int = 90) -> bytes:
        fmt = (output_format or "").lower()
        if fmt not in OUTPUT_FORMATS:
            raise InvalidInputError(
                f"Unsupported output format: {output_format}. Supported: {', '.join(OUTPUT_FORMATS)}"
            )
        try:
            img = Image.open(BytesIO(content))
            img.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise InvalidInputError("Invalid or unsupported image file") from exc

        target = OUTPUT_FORMATS[fmt]
        if target in ("JPEG", "BMP"):
            img = _flatten(img)
        output = BytesIO()
        if target in ("JPEG", "WEBP"):
            img.save(output, format=target, quality=quality)
        else:
            img.save(output, format=target)
        return output.getvalue()

    @staticmethod
    def normalize(content: bytes) -> Optional[bytes]:
        """Return JPEG/PNG bytes img2pdf accepts, or None for unreadable input."""
        try:
            img = Image.open(BytesIO(content))
            img.load()
        except (UnidentifiedImageError, OSError):
            return None
        if img.format == "JPEG" and img.mode in ("RGB", "L", "CMYK"):
            return content
        output = BytesIO()
        _flatten(img).save(output, format="PNG")
        return output.getvalue()

    @staticmethod
    def images_to_pdf(images: Sequence[ImageFile]) -> bytes:
        """One A4 page per image, centred and scaled to fit."""
        pages = []
        for image in images:
            normalized = ImageService.normalize(image.content)
            if normalized is None:
                logger.warning("Skipping unsupported image %s", image.filename)
                continue
            pages.append(normalized)
        if not pages:
            raise InvalidInputError("None of the uploaded files is a supported image")
        layout = img2pdf.get_layout_fun(pagesize=A4_PAGE, fit=img2pdf.FitMode.into)
        return img2pdf.convert(pages, layout_fun=layout)

    @staticmethod
    def scan(
        images: Sequence[ImageFile],
        quality: str = "medium",
        color_mode: str = "color",
        paper_size: str = "a4",
        orientation: str = "portrait",
        margin: float = 20,
        include_info: bool = False,
    ) -> bytes:
        """Assemble photographed pages into a document behind a cover page."""
        if not images:
            raise InvalidInputError("At least one image is required")
        if (paper_size or "").lower() not in PAGE_SIZES:
            raise InvalidInputError(f"Unsupported paper size: {paper_size}")
        if color_mode not in COLOR_MODES:
            raise InvalidInputError(
                f"Invalid color mode: {color_mode}. Supported: {', '.join(COLOR_MODES)}"
            )
        width, height = page_size(paper_size, orientation)
        if margin < 0 or 2 * margin >= min(width, height):
            raise InvalidInputError("Margin does not leave room for the image")
        jpeg_quality = SCAN_QUALITY.get(quality, SCAN_QUALITY["medium"])

        buffer = BytesIO()
        c = canvas.Canvas(buffer, pagesize=(width, height))
        _draw_cover(c, width, height, margin, len(images), paper_size, orientation, quality, color_mode)

        for number, image in enumerate(images, start=1):
            try:
                img = Image.open(BytesIO(image.content))
                img.load()
            except (UnidentifiedImageError, OSError):
                logger.warning("Unsupported scan image %s", image.filename)
                c.setFont("Helvetica-Bold", 14)
                c.setFillColorRGB(0.8, 0.2, 0.2)
                c.drawString(margin, height - margin - 20, f"Image format not supported: {image.filename}")
                c.showPage()
                continue

            img = _apply_color_mode(_flatten(ImageOps.exif_transpose(img)), color_mode)
            encoded = BytesIO()
            img.save(encoded, format="JPEG", quality=jpeg_quality)
            encoded.seek(0)

            x, y, w, h = fit_rect(img.width, img.height, width, height, margin)
            c.drawImage(ImageReader(encoded), x, y, width=w, height=h)
            if include_info:
                c.setFont("Helvetica", 8)
                c.setFillColorRGB(0.4, 0.4, 0.4)
                c.drawString(
                    margin,
                    margin / 2,
                    f"File: {image.filename} | Size: {round(len(image.content) / 1024)} KB"
                    f" | Page {number} of {len(images)}",
                )
            c.showPage()
        c.save()
        return buffer.getvalue()


def _apply_color_mode(img: Image.Image, mode: str) -> Image.Image:
    if mode == "grayscale":
        return ImageOps.autocontrast(img.convert("L"))
    if mode == "bw":
        return img.convert("L").point(lambda v: 255 if v > 128 else 0)
    return img


def _draw_cover(c, width, height, margin, count, paper_size, orientation, quality, color_mode):
    c.setFillColorRGB(0.1, 0.1, 0.1)
    c.setFont("Helvetica-Bold", 24)
    c.drawCentredString(width / 2, height - margin - 40, "Scanned Document")
    c.setStrokeColorRGB(0.7, 0.7, 0.7)
    c.line(margin, height - margin - 60, width - margin, height - margin - 60)

    info_y = height - margin - 100
    c.setFillColorRGB(0.3, 0.3, 0.3)
    c.setFont("Helvetica-Bold", 14)
    c.drawString(margin, info_y, "Document Information:")
    c.setFont("Helvetica", 12)
    lines: List[str] = [
        f"Date Created: {datetime.now().strftime('%Y-%m-%d %H:%M')}",
        f"Number of Pages: {count}",
        f"Paper Size: {paper_size.upper()} ({orientation})",
        f"Quality: {quality}",
        f"Color Mode: {color_mode}",
    ]
    for i, line in enumerate(lines):
        c.drawString(margin, info_y - 25 - 20 * i, line)
    c.showPage()


image_service = ImageService()
