import logging
import os
import tempfile
import textwrap
from io import BytesIO
from typing import Callable, Dict, Optional, Sequence

import pandas as pd
import pdfplumber
from pdf2docx import Converter
from pptx import Presentation
from pptx.util import Pt
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from transform_factory.core.errors import InvalidInputError, TransformError
from transform_factory.services.office_service import OfficeConverter
from transform_factory.services.render_service import open_pdf, render_service

logger = logging.getLogger(__name__)

DOCUMENT_CONTENT_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "csv": "text/csv",
    "txt": "text/plain",
}

# pdfplumber table settings per requested quality
TABLE_STRATEGIES = {
    "low": None,
    "medium": [{}],
    "high": [{}, {"vertical_strategy": "text", "horizontal_strategy": "text"}],
}

SLIDE_DPI = {"low": 100, "medium": 150, "high": 220}

# pdf2docx table detection per requested quality
DOCX_SETTINGS = {
    "low": {"parse_lattice_table": False, "parse_stream_table": False},
    "medium": {"parse_lattice_table": True, "parse_stream_table": False},
    "high": {"parse_lattice_table": True, "parse_stream_table": True},
}


class ConversionService:
    @staticmethod
    def csv_to_excel(csv_bytes: bytes) -> bytes:
        try:
            df = pd.read_csv(BytesIO(csv_bytes))
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
            raise InvalidInputError(f"Could not read CSV file: {exc}") from exc
        output = BytesIO()
        with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
            df.to_excel(writer, index=False, sheet_name='Sheet1')
        return output.getvalue()

    @staticmethod
    def excel_to_csv(excel_bytes: bytes) -> bytes:
        """First sheet only."""
        try:
            df = pd.read_excel(BytesIO(excel_bytes), sheet_name=0)
        except (ValueError, OSError) as exc:
            raise InvalidInputError(f"Could not read spreadsheet: {exc}") from exc
        output = BytesIO()
        df.to_csv(output, index=False)
        return output.getvalue()

    @staticmethod
    def txt_to_pdf(txt_bytes: bytes) -> bytes:
        text = txt_bytes.decode('utf-8', errors='replace')
        buffer = BytesIO()
        p = canvas.Canvas(buffer, pagesize=letter)
        width, height = letter
        y = height - 50
        for paragraph in text.splitlines() or [""]:
            for line in textwrap.wrap(paragraph, 90) or [""]:
                if y < 50:
                    p.showPage()
                    y = height - 50
                p.drawString(50, y, line)
                y -= 14
        p.save()
        buffer.seek(0)
        return buffer.read()

    @staticmethod
    def pdf_to_word(content: bytes, pages: Optional[Sequence[int]] = None, quality: str = "medium") -> bytes:
        options = DOCX_SETTINGS.get(quality, DOCX_SETTINGS["medium"])
        with tempfile.TemporaryDirectory(prefix="transform-docx-") as workdir:
            pdf_path = os.path.join(workdir, "input.pdf")
            docx_path = os.path.join(workdir, "output.docx")
            with open(pdf_path, "wb") as f:
                f.write(content)
            cv = Converter(pdf_path)
            try:
                if pages is None:
                    cv.convert(docx_path, start=0, end=None, **options)
                else:
                    cv.convert(docx_path, pages=[p - 1 for p in pages], **options)
            except (ValueError, RuntimeError) as exc:
                raise TransformError(f"Could not convert PDF to Word: {exc}") from exc
            finally:
                cv.close()
            with open(docx_path, "rb") as f:
                return f.read()

    @staticmethod
    def pdf_to_excel(content: bytes, pages: Optional[Sequence[int]] = None, quality: str = "medium") -> bytes:
        """One worksheet per page holding its tables, or its text lines when it has none."""
        strategies = TABLE_STRATEGIES.get(quality, TABLE_STRATEGIES["medium"])
        output = BytesIO()
        with pdfplumber.open(BytesIO(content)) as pdf, pd.ExcelWriter(output, engine="xlsxwriter") as writer:
            numbers = range(1, len(pdf.pages) + 1) if pages is None else pages
            for number in numbers:
                page = pdf.pages[number - 1]
                sheet = f"Page {number}"
                tables = _find_tables(page, strategies)
                if not tables:
                    lines = (page.extract_text() or "").splitlines()
                    pd.DataFrame({"Text": lines}).to_excel(writer, sheet_name=sheet, index=False)
                    continue
                row = 0
                for table in tables:
                    frame = pd.DataFrame(table)
                    frame.to_excel(writer, sheet_name=sheet, startrow=row, index=False, header=False)
                    row += len(frame) + 1
        return output.getvalue()

    @staticmethod
    def pdf_to_powerpoint(
        content: bytes,
        pages: Optional[Sequence[int]] = None,
        quality: str = "medium",
        include_notes: bool = False,
    ) -> bytes:
        """One slide per page showing the rendered page, sized to the first page."""
        doc = open_pdf(content)
        try:
            numbers = list(range(1, doc.page_count + 1) if pages is None else pages)
            first = doc[numbers[0] - 1].rect
            texts = {n: doc[n - 1].get_text("text") for n in numbers} if include_notes else {}
        finally:
            doc.close()

        prs = Presentation()
        prs.slide_width = Pt(first.width)
        prs.slide_height = Pt(first.height)
        blank = prs.slide_layouts[6]
        rendered = render_service.render_pages(content, numbers, dpi=SLIDE_DPI.get(quality, 150), fmt="png")
        for number, image in rendered:
            slide = prs.slides.add_slide(blank)
            slide.shapes.add_picture(BytesIO(image), 0, 0, width=prs.slide_width, height=prs.slide_height)
            if include_notes and texts.get(number, "").strip():
                slide.notes_slide.notes_text_frame.text = texts[number].strip()

        output = BytesIO()
        prs.save(output)
        return output.getvalue()

    @staticmethod
    def convert_document(content: bytes, source: str, target: str, office: OfficeConverter) -> bytes:
        source = source.lower().lstrip(".")
        target = target.lower().lstrip(".")
        conversions: Dict[str, Callable[[], bytes]] = {
            'pdf_to_docx': lambda: ConversionService.pdf_to_word(content),
            'docx_to_pdf': lambda: office.to_pdf(content, 'docx'),
            'doc_to_pdf': lambda: office.to_pdf(content, 'doc'),
            'xlsx_to_csv': lambda: ConversionService.excel_to_csv(content),
            'xls_to_csv': lambda: ConversionService.excel_to_csv(content),
            'csv_to_xlsx': lambda: ConversionService.csv_to_excel(content),
            'txt_to_pdf': lambda: ConversionService.txt_to_pdf(content),
        }
        key = f"{source}_to_{target}"
        if key == "csv_to_xls":
            raise InvalidInputError("Conversion from csv to xls is not supported, use xlsx instead")
        if key not in conversions:
            raise InvalidInputError(f"Conversion from {source} to {target} is not supported")
        logger.info("Converting document %s -> %s", source, target)
        return conversions[key]()


def _find_tables(page, strategies):
    if strategies is None:
        return []
    for settings in strategies:
        tables = [t for t in page.extract_tables(settings) if t and any(any(cell for cell in row) for row in t)]
        if tables:
            return tables
    return []


conversion_service = ConversionService()
