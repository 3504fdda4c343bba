"""Scanned PDF to searchable PDF with Tesseract."""
import logging
import re
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Dict, List, Tuple

import fitz  # PyMuPDF
import pytesseract
from PIL import Image, ImageFilter, ImageOps

from transform_factory.core.config import settings
from transform_factory.core.errors import EngineUnavailableError, InvalidInputError, TransformError
from transform_factory.services.render_service import open_pdf

logger = logging.getLogger(__name__)

OCR_DPI = {"low": 150, "medium": 200, "high": 300}

# runs of underscores are the blanks of a printed form
_BLANK = re.compile(r"^_{3,}$")

if settings.TESSERACT_CMD:
    pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD


def enhance(img: Image.Image) -> Image.Image:
    """Grayscale, stretch contrast and sharpen before recognition."""
    return ImageOps.autocontrast(img.convert("L")).filter(ImageFilter.SHARPEN)


class OcrEngine(ABC):
    @abstractmethod
    def recognize_page(self, image: Image.Image, language: str, dpi: int) -> bytes:
        """Return a one-page PDF: the image with an invisible text layer."""
        raise NotImplementedError

    @abstractmethod
    def find_blanks(self, image: Image.Image, language: str) -> List[Tuple[int, int, int, int]]:
        """Pixel boxes ``(left, top, width, height)`` of fill-in blanks."""
        raise NotImplementedError


class TesseractOcrEngine(OcrEngine):
    def recognize_page(self, image: Image.Image, language: str, dpi: int) -> bytes:
        try:
            return pytesseract.image_to_pdf_or_hocr(
                image, lang=language, extension="pdf", config=f"--dpi {dpi}"
            )
        except pytesseract.TesseractNotFoundError as exc:
            raise EngineUnavailableError("Tesseract OCR is not installed on the server") from exc
        except pytesseract.TesseractError as exc:
            if "Failed loading language" in str(exc):
                raise InvalidInputError(f"OCR language not available: {language}") from exc
            raise TransformError(f"OCR failed: {exc.message}") from exc

    def find_blanks(self, image: Image.Image, language: str) -> List[Tuple[int, int, int, int]]:
        try:
            data: Dict[str, list] = pytesseract.image_to_data(
                image, lang=language, output_type=pytesseract.Output.DICT
            )
        except pytesseract.TesseractNotFoundError as exc:
            raise EngineUnavailableError("Tesseract OCR is not installed on the server") from exc
        return [
            (data["left"][i], data["top"][i], data["width"][i], data["height"][i])
            for i, word in enumerate(data["text"])
            if _BLANK.match(word.strip())
        ]


class OcrService:
    @staticmethod
    def searchable_pdf(
        content: bytes,
        engine: OcrEngine,
        language: str = "eng",
        quality: str = "medium",
        enhance_text: bool = True,
        recognize_form_fields: bool = False,
    ) -> bytes:
        dpi = OCR_DPI.get(quality, OCR_DPI["medium"])
        scale = dpi / 72
        source = open_pdf(content)
        result = fitz.open()
        blanks = {}
        try:
            for page in source:
                pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
                image = Image.open(BytesIO(pix.tobytes("png")))
                if enhance_text:
                    image = enhance(image)
                page_pdf = fitz.open(stream=engine.recognize_page(image, language, dpi), filetype="pdf")
                result.insert_pdf(page_pdf)
                page_pdf.close()
                if recognize_form_fields:
                    blanks[page.number] = (image.width, engine.find_blanks(image, language))

            for number, (pixel_width, boxes) in blanks.items():
                _add_blank_fields(result[number], pixel_width, boxes)

            pages = result.page_count
            output = result.tobytes(garbage=3, deflate=True)
        finally:
            source.close()
            result.close()
        logger.info("OCR produced %d pages (%s, %d dpi)", pages, language, dpi)
        return output


def _add_blank_fields(page: fitz.Page, pixel_width: int, boxes: List[Tuple[int, int, int, int]]) -> None:
    factor = page.rect.width / pixel_width
    for index, (left, top, width, height) in enumerate(boxes):
        widget = fitz.Widget()
        widget.field_type = fitz.PDF_WIDGET_TYPE_TEXT
        widget.field_name = f"page{page.number + 1}_field{index + 1}"
        # the blank is an underline, so the input box sits on top of it
        widget.rect = fitz.Rect(
            left * factor,
            (top - height) * factor,
            (left + width) * factor,
            (top + height) * factor,
        )
        page.add_widget(widget)


ocr_engine = TesseractOcrEngine()
ocr_service = OcrService()
