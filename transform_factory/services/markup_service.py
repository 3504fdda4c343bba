"""Drawing on top of existing pages: watermarks, numbers, signatures,
redactions and interactive form fields. Backed by PyMuPDF.

PyMuPDF measures from the top-left corner with y growing downwards. Signature
positions and page number placement arrive bottom-left based and are
converted here; redaction areas and form fields are already top-left based.
"""
import logging
from datetime import date
from io import BytesIO
from typing import Optional, Sequence, Tuple

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError

from transform_factory.core.errors import InvalidInputError
from transform_factory.schemas.pdf import FormField, RedactionArea
from transform_factory.services.layout import number_position, page_size
from transform_factory.services.render_service import open_pdf

logger = logging.getLogger(__name__)

REDACTION_COLORS = {
    "black": (0, 0, 0),
    "red": (1, 0, 0),
    "blue": (0, 0, 1),
    "green": (0, 0.5, 0),
    "gray": (0.5, 0.5, 0.5),
}

WIDGET_TYPES = {
    "text": fitz.PDF_WIDGET_TYPE_TEXT,
    "checkbox": fitz.PDF_WIDGET_TYPE_CHECKBOX,
    "radio": fitz.PDF_WIDGET_TYPE_RADIOBUTTON,
    "dropdown": fitz.PDF_WIDGET_TYPE_COMBOBOX,
}

LABEL_COLOR = (0.3, 0.3, 0.3)
TITLE_COLOR = (0, 0.2, 0.4)
RADIO_SPACING = 25


def _save(doc: fitz.Document) -> bytes:
    try:
        return doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()


def _prepare(page: fitz.Page) -> None:
    # isolate the existing content so its graphics state cannot leak into ours
    if not page.is_wrapped:
        page.wrap_contents()


def _get_page(doc: fitz.Document, number: int) -> fitz.Page:
    if number < 1 or number > doc.page_count:
        raise InvalidInputError(
            f"Invalid page: {number}. Pages must be between 1 and {doc.page_count}."
        )
    return doc[number - 1]


class MarkupService:
    @staticmethod
    def watermark(
        content: bytes,
        text: str,
        opacity: float = 0.5,
        size: float = 50,
        rotation: float = -45,
    ) -> bytes:
        """Stamp grey ``text`` across the centre of every page."""
        if not text or not text.strip():
            raise InvalidInputError("Watermark text is required")
        if not 0 <= opacity <= 1:
            raise InvalidInputError("Watermark opacity must be between 0 and 1")
        if size <= 0:
            raise InvalidInputError("Watermark size must be positive")

        doc = open_pdf(content)
        text_width = fitz.get_text_length(text, fontname="helv", fontsize=size)
        for page in doc:
            _prepare(page)
            rect = page.rect
            centre = fitz.Point(rect.width / 2, rect.height / 2)
            origin = fitz.Point(centre.x - text_width / 2, centre.y + size * 0.35)
            # positive angles turn counter-clockwise as seen on the page
            page.insert_text(
                origin,
                text,
                fontsize=size,
                fontname="helv",
                color=(0.5, 0.5, 0.5),
                fill_opacity=opacity,
                morph=(centre, fitz.Matrix(-rotation)),
                overlay=True,
            )
        return _save(doc)

    @staticmethod
    def add_page_numbers(
        content: bytes,
        start: int = 1,
        position: str = "bottom-center",
        prefix: str = "",
        suffix: str = "",
        font_size: float = 12,
    ) -> bytes:
        if font_size <= 0:
            raise InvalidInputError("Font size must be positive")
        doc = open_pdf(content)
        for index, page in enumerate(doc):
            _prepare(page)
            label = f"{prefix}{start + index}{suffix}"
            text_width = fitz.get_text_length(label, fontname="helv", fontsize=font_size)
            width, height = page.rect.width, page.rect.height
            x, y = number_position(position, width, height, text_width, font_size)
            page.insert_text((x, height - y), label, fontsize=font_size, fontname="helv", color=(0, 0, 0))
        return _save(doc)

    @staticmethod
    def redact(content: bytes, areas: Sequence[RedactionArea], color: str = "black") -> bytes:
        """Remove everything under each area and paint it over."""
        if not areas:
            raise InvalidInputError("No redaction areas specified")
        fill = REDACTION_COLORS.get((color or "black").lower(), REDACTION_COLORS["black"])

        doc = open_pdf(content)
        touched = set()
        for area in areas:
            page = _get_page(doc, area.page)
            rect = fitz.Rect(area.x, area.y, area.x + area.width, area.y + area.height)
            # areas are given on the page as displayed
            page.add_redact_annot(rect * page.derotation_matrix, fill=fill)
            touched.add(area.page)
        for number in touched:
            doc[number - 1].apply_redactions()
        logger.info("Redacted %d areas on %d pages", len(areas), len(touched))
        return _save(doc)

    @staticmethod
    def sign(
        content: bytes,
        signature: bytes,
        page_number: int = 1,
        x: float = 50,
        y: float = 50,
        width: float = 150,
        include_date: bool = False,
    ) -> bytes:
        """Place a signature image with its lower-left corner at ``(x, y)``."""
        try:
            with Image.open(BytesIO(signature)) as img:
                img_w, img_h = img.size
        except UnidentifiedImageError as exc:
            raise InvalidInputError("Invalid signature image") from exc
        if width <= 0:
            raise InvalidInputError("Signature width must be positive")

        doc = open_pdf(content)
        index = min(max(0, page_number - 1), doc.page_count - 1)
        page = doc[index]
        _prepare(page)
        page_h = page.rect.height
        height = img_h * (width / img_w)
        rect = fitz.Rect(x, page_h - y - height, x + width, page_h - y)
        page.insert_image(rect, stream=signature)
        if include_date:
            page.insert_text(
                (x, page_h - (y - 20)),
                f"Date: {date.today().isoformat()}",
                fontsize=10,
                fontname="helv",
                color=(0, 0, 0),
            )
        return _save(doc)

    @staticmethod
    def create_form(content: bytes, fields: Sequence[FormField]) -> bytes:
        """Add interactive AcroForm fields to an existing document."""
        if not fields:
            raise InvalidInputError("No form fields provided")
        doc = open_pdf(content)
        for index, field in enumerate(fields):
            page = _get_page(doc, field.page)
            _add_field(page, field, index)
        return _save(doc)

    @staticmethod
    def build_form(
        fields: Sequence[FormField],
        size: str = "a4",
        orientation: str = "portrait",
        title: str = "PDF Form",
        base: Optional[bytes] = None,
    ) -> bytes:
        """Create a fillable form, on a blank page or on top of ``base``."""
        if not fields:
            raise InvalidInputError("No form fields provided")
        if base:
            doc = open_pdf(base)
        else:
            width, height = page_size(size, orientation)
            doc = fitz.open()
            doc.new_page(width=width, height=height)

        page = doc[0]
        _prepare(page)
        page.insert_text((50, 50), title or "PDF Form", fontsize=20, fontname="hebo", color=TITLE_COLOR)
        for index, field in enumerate(fields):
            _add_field(page, field, index)
        return _save(doc)


def _field_rect(field: FormField, offset: float = 0, square: bool = False) -> fitz.Rect:
    width = field.height if square else field.width
    top = field.y + offset
    return fitz.Rect(field.x, top, field.x + width, top + field.height)


def _label(page: fitz.Page, point: Tuple[float, float], text: str, size: float = 10) -> None:
    if text:
        page.insert_text(point, text, fontsize=size, fontname="helv", color=LABEL_COLOR)


def _add_field(page: fitz.Page, field: FormField, index: int) -> None:
    name = field.id or f"field_{index + 1}"
    flags = fitz.PDF_FIELD_IS_REQUIRED if field.required else 0

    if field.type == "radio":
        _label(page, (field.x, field.y - 10), field.label, 12)
        for i, option in enumerate(field.options):
            widget = fitz.Widget()
            widget.field_type = WIDGET_TYPES["radio"]
            widget.field_name = name
            widget.field_flags |= flags
            widget.button_caption = option
            widget.field_value = False
            widget.rect = _field_rect(field, offset=i * RADIO_SPACING, square=True)
            page.add_widget(widget)
            _label(page, (field.x + field.height + 5, field.y + i * RADIO_SPACING + field.height / 2 + 5), option)
        return

    widget = fitz.Widget()
    widget.field_type = WIDGET_TYPES[field.type]
    widget.field_name = name
    widget.field_label = field.label or name
    widget.field_flags |= flags
    widget.border_color = (0, 0, 0)
    widget.border_width = 1

    if field.type == "checkbox":
        widget.rect = _field_rect(field)
        widget.field_value = False
        page.add_widget(widget)
        _label(page, (field.x + field.width + 5, field.y + field.height / 2 + 5), field.label, 12)
        return

    widget.rect = _field_rect(field)
    widget.text_fontsize = 0
    if field.type == "dropdown":
        widget.choice_values = list(field.options)
        widget.field_value = field.options[0]
    page.add_widget(widget)
    _label(page, (field.x, field.y - 10), field.label, 12)


markup_service = MarkupService()
