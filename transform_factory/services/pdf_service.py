import logging
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Dict, List, Optional, Sequence, Tuple

import fitz  # PyMuPDF
from pypdf import PdfReader, PdfWriter
from pypdf.constants import UserAccessPermissions
from pypdf.errors import FileNotDecryptedError, PdfReadError
from pypdf.generic import NameObject
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from transform_factory.core.errors import InvalidInputError

logger = logging.getLogger(__name__)

# pypdf's default: every permission bit set except the two reserved low bits
ALL_PERMISSIONS = (2 ** 31 - 1) - 3

PERMISSION_GROUPS = {
    "print": UserAccessPermissions.PRINT | UserAccessPermissions.PRINT_TO_REPRESENTATION,
    "modify": UserAccessPermissions.MODIFY | UserAccessPermissions.ASSEMBLE_DOC,
    "copy": UserAccessPermissions.EXTRACT | UserAccessPermissions.EXTRACT_TEXT_AND_GRAPHICS,
    "annotate": UserAccessPermissions.ADD_OR_MODIFY | UserAccessPermissions.FILL_FORM_FIELDS,
}

COMPRESSION_LEVELS = ("low", "medium", "high")
IMAGE_QUALITY = {"high": 50}
# document info entries that survive metadata trimming
KEPT_INFO = ("/Title", "/Author")
REPAIR_LEVELS = ("basic", "standard", "advanced")


@dataclass
class CompressionResult:
    content: bytes
    original_size: int
    new_size: int

    @property
    def ratio(self) -> str:
        """Size reduction in percent, two decimals."""
        if not self.original_size:
            return "0.00"
        return f"{(self.original_size - self.new_size) / self.original_size * 100:.2f}"


@dataclass
class RepairResult:
    content: bytes
    recovered_pages: int
    method: str


def _write(writer: PdfWriter) -> bytes:
    output = BytesIO()
    writer.write(output)
    output.seek(0)
    return output.read()


def _copy_pages(reader: PdfReader, pages: Optional[Sequence[int]] = None) -> PdfWriter:
    writer = PdfWriter()
    indexes = range(len(reader.pages)) if pages is None else [p - 1 for p in pages]
    for index in indexes:
        writer.add_page(reader.pages[index])
    return writer


class PdfEngine:
    """PDF page operations backed by pypdf. Every method takes and returns bytes."""

    @staticmethod
    def load(content: bytes, password: Optional[str] = None) -> PdfReader:
        try:
            reader = PdfReader(BytesIO(content))
            if reader.is_encrypted and not reader.decrypt(password or ""):
                raise InvalidInputError("The PDF is password protected")
            # touch the page tree so broken files fail here rather than mid-operation
            len(reader.pages)
        except InvalidInputError:
            raise
        except FileNotDecryptedError as exc:
            raise InvalidInputError("The PDF is password protected") from exc
        except (PdfReadError, ValueError, KeyError, TypeError) as exc:
            raise InvalidInputError("Invalid or corrupted PDF file") from exc
        return reader

    @staticmethod
    def page_count(content: bytes) -> int:
        return len(PdfEngine.load(content).pages)

    @staticmethod
    def merge(documents: Sequence[bytes]) -> bytes:
        """Concatenate documents in the order given."""
        merger = PdfWriter()
        for pdf_content in documents:
            reader = PdfEngine.load(pdf_content)
            for page in reader.pages:
                merger.add_page(page)
        if len(merger.pages) == 0:
            raise InvalidInputError("No valid PDF files to merge")
        return _write(merger)

    @staticmethod
    def extract_pages(content: bytes, pages: Sequence[int]) -> bytes:
        reader = PdfEngine.load(content)
        return _write(_copy_pages(reader, pages))

    @staticmethod
    def remove_pages(content: bytes, pages: Sequence[int]) -> bytes:
        reader = PdfEngine.load(content)
        doomed = set(pages)
        keep = [p for p in range(1, len(reader.pages) + 1) if p not in doomed]
        if not keep:
            raise InvalidInputError("Cannot remove all pages from the PDF")
        return _write(_copy_pages(reader, keep))

    @staticmethod
    def split_pages(content: bytes) -> List[Tuple[int, bytes]]:
        reader = PdfEngine.load(content)
        return [
            (number, _write(_copy_pages(reader, [number])))
            for number in range(1, len(reader.pages) + 1)
        ]

    @staticmethod
    def split_ranges(content: bytes, ranges: Sequence[Tuple[int, int]]) -> List[Tuple[Tuple[int, int], bytes]]:
        reader = PdfEngine.load(content)
        total = len(reader.pages)
        if not ranges:
            raise InvalidInputError("No page ranges provided")
        parts = []
        for start, end in ranges:
            if start < 1 or end > total or start > end:
                raise InvalidInputError(
                    f"Invalid page range: {start}-{end}. Pages must be between 1 and {total}."
                )
            parts.append(((start, end), _write(_copy_pages(reader, range(start, end + 1)))))
        return parts

    @staticmethod
    def rotate(content: bytes, angle: int, pages: Optional[Sequence[int]] = None) -> bytes:
        """Add ``angle`` to the current rotation of ``pages`` (all when None)."""
        if angle % 90 != 0:
            raise InvalidInputError("Rotation angle must be a multiple of 90")
        reader = PdfEngine.load(content)
        writer = _copy_pages(reader)
        targets = range(1, len(writer.pages) + 1) if pages is None else pages
        for number in targets:
            page = writer.pages[number - 1]
            page.rotation = (page.rotation + angle) % 360
        return _write(writer)

    @staticmethod
    def encrypt(
        content: bytes,
        user_password: str,
        owner_password: Optional[str] = None,
        permissions: Optional[Dict[str, bool]] = None,
    ) -> bytes:
        if not user_password and not owner_password:
            raise InvalidInputError("A user or owner password is required")
        reader = PdfEngine.load(content)
        writer = _copy_pages(reader)
        if reader.metadata:
            writer.add_metadata({k: str(v) for k, v in reader.metadata.items()})

        flags = ALL_PERMISSIONS
        for name, allowed in (permissions or {}).items():
            if not allowed:
                flags &= ~int(PERMISSION_GROUPS[name])

        writer.encrypt(
            user_password=user_password or "",
            owner_password=owner_password or user_password,
            permissions_flag=UserAccessPermissions(flags),
            algorithm="AES-256",
        )
        return _write(writer)

    @staticmethod
    def decrypt(content: bytes, password: str) -> bytes:
        try:
            reader = PdfReader(BytesIO(content))
        except PdfReadError as exc:
            raise InvalidInputError("Invalid or corrupted PDF file") from exc
        if not reader.is_encrypted or not reader.decrypt(password):
            raise InvalidInputError("Incorrect password or the PDF is not encrypted")
        writer = _copy_pages(reader)
        if reader.metadata:
            writer.add_metadata({k: str(v) for k, v in reader.metadata.items()})
        return _write(writer)

    @staticmethod
    def compress(content: bytes, level: str = "medium") -> CompressionResult:
        if level not in COMPRESSION_LEVELS:
            raise InvalidInputError(
                f"Invalid compression level: {level}. Supported: {', '.join(COMPRESSION_LEVELS)}"
            )
        reader = PdfEngine.load(content)
        writer = PdfWriter(clone_from=reader)

        for page in writer.pages:
            page.compress_content_streams()
            if level in IMAGE_QUALITY:
                for image in page.images:
                    try:
                        picture = image.image
                        if picture.mode not in ("RGB", "L"):
                            picture = picture.convert("RGB")
                        image.replace(picture, quality=IMAGE_QUALITY[level])
                    except (OSError, ValueError, NotImplementedError) as exc:
                        logger.warning("Skipping image %s: %s", image.name, exc)

        if level != "low":
            writer.compress_identical_objects(remove_identicals=True, remove_orphans=True)
            _trim_metadata(writer)

        result = _write(writer)
        # never hand back something larger than what was uploaded
        if len(result) >= len(content):
            result = content
        return CompressionResult(content=result, original_size=len(content), new_size=len(result))

    @staticmethod
    def extract_text(content: bytes, pages: Optional[Sequence[int]] = None) -> Dict[int, str]:
        reader = PdfEngine.load(content)
        numbers = range(1, len(reader.pages) + 1) if pages is None else pages
        return {n: reader.pages[n - 1].extract_text() or "" for n in numbers}

    @staticmethod
    def repair(
        content: bytes,
        level: str = "standard",
        recover_images: bool = True,
        recover_fonts: bool = True,
    ) -> RepairResult:
        """Rebuild a damaged document and append a summary page."""
        if level not in REPAIR_LEVELS:
            raise InvalidInputError(
                f"Invalid repair level: {level}. Supported: {', '.join(REPAIR_LEVELS)}"
            )
        writer = None
        method = "pypdf"
        if level != "advanced":
            writer = PdfEngine._lenient_copy(content)
        if writer is None:
            writer = PdfEngine._rebuild_with_mupdf(content)
            method = "mupdf"
        if writer is None:
            raise InvalidInputError("The PDF is too damaged to recover any pages")

        recovered = len(writer.pages)
        if not recover_images:
            writer.remove_images()

        summary = PdfReader(BytesIO(_repair_summary(recovered, level, method, recover_images, recover_fonts)))
        writer.add_page(summary.pages[0])
        return RepairResult(content=_write(writer), recovered_pages=recovered, method=method)

    @staticmethod
    def _lenient_copy(content: bytes) -> Optional[PdfWriter]:
        try:
            reader = PdfReader(BytesIO(content), strict=False)
            encrypted = reader.is_encrypted
        except (PdfReadError, KeyError, ValueError, TypeError) as exc:
            logger.info("Lenient parse failed, falling back to MuPDF: %s", exc)
            return None
        if encrypted:
            raise InvalidInputError("Encrypted PDFs must be unlocked before repair")
        try:
            writer = PdfWriter()
            for index in range(len(reader.pages)):
                try:
                    writer.add_page(reader.pages[index])
                except (PdfReadError, KeyError, ValueError, TypeError) as exc:
                    logger.warning("Dropping unreadable page %d: %s", index + 1, exc)
        except (PdfReadError, KeyError, ValueError, TypeError) as exc:
            logger.info("Lenient parse failed, falling back to MuPDF: %s", exc)
            return None
        return writer if len(writer.pages) else None

    @staticmethod
    def _rebuild_with_mupdf(content: bytes) -> Optional[PdfWriter]:
        try:
            doc = fitz.open(stream=content, filetype="pdf")
        except (fitz.FileDataError, RuntimeError) as exc:
            logger.info("MuPDF could not open the document: %s", exc)
            return None
        try:
            if doc.page_count == 0:
                return None
            rebuilt = doc.tobytes(garbage=4, clean=True, deflate=True)
        finally:
            doc.close()
        return _copy_pages(PdfReader(BytesIO(rebuilt), strict=False))


def _trim_metadata(writer: PdfWriter) -> None:
    """Drop the XMP stream and every info entry except title and author."""
    writer.root_object.pop(NameObject("/Metadata"), None)
    info = writer.metadata or {}
    kept = {key: str(value) for key, value in info.items() if key in KEPT_INFO}
    writer.metadata = kept or None


def _repair_summary(pages: int, level: str, method: str, images: bool, fonts: bool) -> bytes:
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    c.setFont("Helvetica-Bold", 18)
    c.drawString(50, height - 70, "PDF Repair Report")
    c.setFont("Helvetica", 12)
    lines = [
        f"Repaired on: {datetime.now().strftime('%Y-%m-%d %H:%M')}",
        f"Repair level: {level}",
        f"Recovery method: {method}",
        f"Pages recovered: {pages}",
        f"Images: {'kept' if images else 'removed'}",
        f"Fonts: {'embedded fonts kept' if fonts else 'not checked'}",
    ]
    y = height - 110
    for line in lines:
        c.drawString(50, y, line)
        y -= 20
    c.showPage()
    c.save()
    return buffer.getvalue()


pdf_engine = PdfEngine()
