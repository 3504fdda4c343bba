"""Office document to PDF conversion through LibreOffice running headless."""
import json
import logging
import os
import subprocess
import tempfile
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional
from zipfile import BadZipFile

from bs4 import BeautifulSoup
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from transform_factory.core.config import settings
from transform_factory.core.errors import EngineUnavailableError, InvalidInputError, TransformError
from transform_factory.services.layout import page_size

logger = logging.getLogger(__name__)

HTML_MARGINS = {"normal": 50, "narrow": 25, "wide": 75, "none": 10}
HTML_PAGE_SIZES = ("a4", "letter", "legal", "tabloid", "a3", "a5")

# LibreOffice PDF export filter per source type
PDF_FILTERS = {
    "doc": "writer_pdf_Export",
    "docx": "writer_pdf_Export",
    "odt": "writer_pdf_Export",
    "rtf": "writer_pdf_Export",
    "html": "writer_web_pdf_Export",
    "htm": "writer_web_pdf_Export",
    "xls": "calc_pdf_Export",
    "xlsx": "calc_pdf_Export",
    "csv": "calc_pdf_Export",
    "ppt": "impress_pdf_Export",
    "pptx": "impress_pdf_Export",
}


class OfficeConverter(ABC):
    @abstractmethod
    def to_pdf(self, content: bytes, source_ext: str, options: Optional[Dict[str, Any]] = None) -> bytes:
        """Convert an office document to PDF.

        ``options`` are PDF export settings such as ``{"Quality": 90}`` or
        ``{"ExportNotesPages": True}``.
        """
        raise NotImplementedError


def _convert_target(ext: str, options: Optional[Dict[str, Any]]) -> str:
    if not options:
        return "pdf"
    typed = {}
    for key, value in options.items():
        if isinstance(value, bool):
            typed[key] = {"type": "boolean", "value": "true" if value else "false"}
        else:
            typed[key] = {"type": "long", "value": str(int(value))}
    return f"pdf:{PDF_FILTERS.get(ext, 'writer_pdf_Export')}:{json.dumps(typed)}"


class LibreOfficeConverter(OfficeConverter):
    def __init__(self, binary: str = None, timeout: int = None):
        self.binary = binary or settings.SOFFICE_BINARY
        self.timeout = timeout or settings.CONVERSION_TIMEOUT

    def to_pdf(self, content: bytes, source_ext: str, options: Optional[Dict[str, Any]] = None) -> bytes:
        ext = source_ext.lower().lstrip(".")
        with tempfile.TemporaryDirectory(prefix="transform-office-") as workdir:
            source = Path(workdir) / f"input.{ext}"
            source.write_bytes(content)
            env = os.environ.copy()
            # soffice needs a writable profile directory
            env["HOME"] = workdir
            cmd = [
                self.binary, "--headless",
                "--convert-to", _convert_target(ext, options),
                "--outdir", workdir, str(source),
            ]
            logger.debug("Running %s", " ".join(cmd))
            try:
                result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout, env=env)
            except FileNotFoundError as exc:
                raise EngineUnavailableError("LibreOffice is not installed on the server") from exc
            except subprocess.TimeoutExpired as exc:
                raise TransformError(f"Document conversion timed out after {self.timeout} seconds") from exc

            output = source.with_suffix(".pdf")
            if result.returncode != 0 or not output.exists():
                logger.error("LibreOffice failed (%s): %s", result.returncode, result.stderr.strip())
                raise TransformError(f"Could not convert the .{ext} document to PDF")
            return output.read_bytes()


def prepare_spreadsheet(content: bytes, source_ext: str, gridlines: bool, fit_to_page: bool) -> bytes:
    """Apply print options to an .xlsx workbook before conversion."""
    if source_ext.lower().lstrip(".") != "xlsx":
        return content
    try:
        workbook = load_workbook(BytesIO(content))
    except (OSError, KeyError, ValueError, BadZipFile, InvalidFileException) as exc:
        raise InvalidInputError("Invalid or corrupted Excel file") from exc
    for sheet in workbook.worksheets:
        sheet.print_options.gridLines = gridlines
        if fit_to_page:
            sheet.sheet_properties.pageSetUpPr.fitToPage = True
            sheet.page_setup.fitToWidth = 1
            sheet.page_setup.fitToHeight = 0
    output = BytesIO()
    workbook.save(output)
    return output.getvalue()


def html_document(html: str, include_styles: bool = True, size: str = "a4", margins: str = "normal") -> str:
    """Add an ``@page`` rule for the chosen paper and margins."""
    size = (size or "a4").lower()
    if size not in HTML_PAGE_SIZES:
        raise InvalidInputError(
            f"Unsupported page size: {size}. Supported: {', '.join(HTML_PAGE_SIZES)}"
        )
    margin = HTML_MARGINS.get((margins or "normal").lower(), HTML_MARGINS["normal"])
    soup = BeautifulSoup(html, "html.parser")
    if not include_styles:
        for tag in soup.find_all("style"):
            tag.decompose()
        for tag in soup.find_all("link", rel="stylesheet"):
            tag.decompose()
        for tag in soup.find_all(style=True):
            del tag.attrs["style"]

    width, height = page_size(size)
    page_rule = soup.new_tag("style")
    page_rule.string = f"@page {{ size: {width:.0f}pt {height:.0f}pt; margin: {margin}pt; }}"
    head = soup.head
    if head is None:
        if soup.html is None:
            # a bare fragment
            return f"<!DOCTYPE html><html><head><meta charset=\"utf-8\">{page_rule}</head><body>{soup}</body></html>"
        head = soup.new_tag("head")
        soup.html.insert(0, head)
    head.insert(0, page_rule)
    return str(soup)


office_converter = LibreOfficeConverter()
