"""Document statistics and side-by-side comparison reports."""
import difflib
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

import fitz  # PyMuPDF
from reportlab.lib.colors import Color
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from transform_factory.core.errors import InvalidInputError
from transform_factory.services.layout import fit_rect, format_size
from transform_factory.services.render_service import open_pdf

logger = logging.getLogger(__name__)

COMPARISON_MODES = ("visual", "text")
REMOVED = Color(0.8, 0, 0)
ADDED = Color(0, 0.55, 0)
REMOVED_FILL = Color(1, 0.8, 0.8, alpha=0.45)
ADDED_FILL = Color(0.8, 1, 0.8, alpha=0.45)
MAX_LISTED_CHANGES = 12

Box = Tuple[float, float, float, float]


def pdf_date(value: Optional[str]) -> str:
    """``D:20240131120000+01'00'`` -> ``2024-01-31 12:00:00``."""
    if not value:
        return "Unknown"
    raw = value[2:] if value.startswith("D:") else value
    digits = raw[:14]
    for fmt, length in (("%Y%m%d%H%M%S", 14), ("%Y%m%d%H%M", 12), ("%Y%m%d", 8), ("%Y", 4)):
        if len(digits) >= length:
            try:
                return datetime.strptime(digits[:length], fmt).strftime("%Y-%m-%d %H:%M:%S")
            except ValueError:
                continue
    return value


@dataclass
class PageDiff:
    number: int
    in_first: bool
    in_second: bool
    similarity: float = 100.0
    removed: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    boxes_first: List[Box] = field(default_factory=list)
    boxes_second: List[Box] = field(default_factory=list)


class AnalysisService:
    @staticmethod
    def analyze(content: bytes) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            doc = fitz.open(stream=content, filetype="pdf")
        except (fitz.FileDataError, RuntimeError) as exc:
            raise InvalidInputError("Invalid or corrupted PDF file") from exc

        try:
            encrypted = bool(doc.is_encrypted or doc.needs_pass)
            meta = doc.metadata or {}
            words = images = 0
            fonts = set()
            signed = False
            if not doc.needs_pass:
                seen_images = set()
                for page in doc:
                    words += len(page.get_text("words"))
                    seen_images.update(img[0] for img in page.get_images(full=True))
                    fonts.update(f[3] for f in page.get_fonts(full=True))
                    signed = signed or any(
                        w.field_type == fitz.PDF_WIDGET_TYPE_SIGNATURE for w in page.widgets()
                    )
                images = len(seen_images)
                signed = signed or doc.get_sigflags() > 0
            keywords = meta.get("keywords") or ""
            analytics = {
                "pageCount": doc.page_count,
                "fileSize": format_size(len(content)),
                "wordCount": words,
                "imageCount": images,
                "fontCount": len(fonts),
                "author": meta.get("author") or "Unknown",
                "title": meta.get("title") or "Untitled",
                "subject": meta.get("subject") or "",
                "keywords": [k.strip() for k in keywords.split(",") if k.strip()],
                "createdDate": pdf_date(meta.get("creationDate")),
                "modifiedDate": pdf_date(meta.get("modDate")),
                "isEncrypted": encrypted,
                "hasSignature": signed,
                "isSearchable": words > 0,
                "hasBookmarks": bool(doc.get_toc()) if not doc.needs_pass else False,
            }
        finally:
            doc.close()
        analytics["processingTime"] = f"{time.perf_counter() - started:.2f} seconds"
        return analytics

    @staticmethod
    def diff_pages(first: fitz.Document, second: fitz.Document) -> Tuple[List[PageDiff], float]:
        """Word-level diff per page plus overall similarity in percent."""
        diffs = []
        all_first, all_second = [], []
        for index in range(max(first.page_count, second.page_count)):
            in_first, in_second = index < first.page_count, index < second.page_count
            words_a = first[index].get_text("words") if in_first else []
            words_b = second[index].get_text("words") if in_second else []
            tokens_a = [w[4] for w in words_a]
            tokens_b = [w[4] for w in words_b]
            all_first.extend(tokens_a)
            all_second.extend(tokens_b)

            diff = PageDiff(number=index + 1, in_first=in_first, in_second=in_second)
            matcher = difflib.SequenceMatcher(None, tokens_a, tokens_b, autojunk=False)
            if in_first and in_second:
                diff.similarity = round(matcher.ratio() * 100, 1)
            else:
                diff.similarity = 0.0
            for tag, i1, i2, j1, j2 in matcher.get_opcodes():
                if tag == "equal":
                    continue
                if i2 > i1:
                    diff.removed.append(" ".join(tokens_a[i1:i2]))
                    diff.boxes_first.extend(tuple(w[:4]) for w in words_a[i1:i2])
                if j2 > j1:
                    diff.added.append(" ".join(tokens_b[j1:j2]))
                    diff.boxes_second.extend(tuple(w[:4]) for w in words_b[j1:j2])
            diffs.append(diff)

        if all_first or all_second:
            overall = difflib.SequenceMatcher(None, all_first, all_second, autojunk=False).ratio() * 100
        else:
            # nothing to read on either side: fall back to page count agreement
            counts = (first.page_count, second.page_count)
            overall = min(counts) / max(counts) * 100 if max(counts) else 100.0
        return diffs, round(overall, 1)

    @staticmethod
    def compare(
        content1: bytes,
        content2: bytes,
        name1: str = "document1.pdf",
        name2: str = "document2.pdf",
        mode: str = "visual",
        highlight: bool = True,
    ) -> bytes:
        if mode not in COMPARISON_MODES:
            raise InvalidInputError(
                f"Invalid comparison mode: {mode}. Supported: {', '.join(COMPARISON_MODES)}"
            )
        first, second = open_pdf(content1), open_pdf(content2)
        try:
            diffs, similarity = AnalysisService.diff_pages(first, second)
            buffer = BytesIO()
            c = canvas.Canvas(buffer, pagesize=A4)
            _cover_page(c, name1, name2, first.page_count, second.page_count, mode, highlight)
            for diff in diffs:
                _comparison_page(c, diff, first, second, mode, highlight)
            _summary_page(c, diffs, similarity)
            c.save()
        finally:
            first.close()
            second.close()
        logger.info("Compared %s and %s: %.1f%% similar", name1, name2, similarity)
        return buffer.getvalue()


def _cover_page(c, name1, name2, pages1, pages2, mode, highlight):
    width, height = A4
    c.setFont("Helvetica-Bold", 24)
    c.drawString(50, height - 80, "PDF Comparison Report")
    c.setFont("Helvetica", 12)
    c.drawString(50, height - 130, f"Document 1: {name1} ({pages1} pages)")
    c.drawString(50, height - 150, f"Document 2: {name2} ({pages2} pages)")
    c.setFont("Helvetica-Bold", 14)
    c.drawString(50, height - 190, "Comparison Summary:")
    c.setFont("Helvetica", 12)
    if pages1 == pages2:
        page_text = f"Both documents have {pages1} pages"
    else:
        page_text = f"Page count differs by {abs(pages1 - pages2)}"
    c.drawString(50, height - 215, page_text)
    c.drawString(50, height - 235, f"Comparison Mode: {mode.capitalize()}")
    c.drawString(50, height - 255, f"Changes Highlighted: {'Yes' if highlight else 'No'}")
    c.drawString(50, height - 275, f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    c.showPage()


def _presence(diff: PageDiff) -> str:
    if diff.in_first and diff.in_second:
        return f"Both documents have this page ({diff.similarity}% similar)"
    if diff.in_first:
        return "This page exists only in Document 1"
    return "This page exists only in Document 2"


def _comparison_page(c, diff: PageDiff, first, second, mode, highlight):
    width, height = A4
    c.setFont("Helvetica-Bold", 18)
    c.drawString(50, height - 60, f"Page {diff.number} Comparison")
    c.setFont("Helvetica", 12)
    c.drawString(50, height - 85, _presence(diff))

    if mode == "visual":
        box_w = (width - 150) / 2
        box_h = height - 330
        box_y = 200
        if diff.in_first:
            _thumbnail(c, first[diff.number - 1], 50, box_y, box_w, box_h,
                       diff.boxes_first if highlight else [], REMOVED_FILL, "Document 1")
        if diff.in_second:
            _thumbnail(c, second[diff.number - 1], 100 + box_w, box_y, box_w, box_h,
                       diff.boxes_second if highlight else [], ADDED_FILL, "Document 2")
        _change_list(c, diff, highlight, top=box_y - 30, bottom=40)
    else:
        _change_list(c, diff, highlight, top=height - 120, bottom=40)
    c.showPage()


def _thumbnail(c, page, x, y, box_w, box_h, boxes, fill, label):
    pix = page.get_pixmap(matrix=fitz.Matrix(1.5, 1.5), alpha=False)
    rect = page.rect
    ox, oy, w, h = fit_rect(rect.width, rect.height, box_w, box_h)
    c.setStrokeColorRGB(0, 0, 0)
    c.rect(x, y, box_w, box_h)
    c.drawImage(ImageReader(BytesIO(pix.tobytes("png"))), x + ox, y + oy, width=w, height=h)
    scale = w / rect.width
    c.setFillColor(fill)
    for x0, y0, x1, y1 in boxes:
        c.rect(x + ox + x0 * scale, y + oy + (rect.height - y1) * scale,
               (x1 - x0) * scale, (y1 - y0) * scale, stroke=0, fill=1)
    c.setFillColorRGB(0, 0, 0)
    c.setFont("Helvetica", 12)
    c.drawCentredString(x + box_w / 2, y + box_h + 10, f"{label} - Page {page.number + 1}")


def _change_list(c, diff: PageDiff, highlight, top, bottom):
    width, _ = A4
    c.setFont("Helvetica-Bold", 14)
    c.drawString(50, top, "Comparison Details:")
    y = top - 22
    entries = [("-", text, REMOVED) for text in diff.removed] + [("+", text, ADDED) for text in diff.added]
    if not entries:
        c.setFont("Helvetica", 11)
        c.drawString(50, y, "No text differences found on this page.")
        return
    c.setFont("Helvetica", 10)
    for count, (sign, text, color) in enumerate(entries):
        if count == MAX_LISTED_CHANGES:
            c.setFillColorRGB(0, 0, 0)
            c.drawString(50, y, f"... and {len(entries) - count} more changes")
            break
        c.setFillColor(color if highlight else Color(0, 0, 0))
        for line in simpleSplit(f"{sign} {text}", "Helvetica", 10, width - 100)[:3]:
            if y < bottom:
                return
            c.drawString(50, y, line)
            y -= 14
    c.setFillColorRGB(0, 0, 0)


def _summary_page(c, diffs: List[PageDiff], similarity: float):
    width, height = A4
    c.setFont("Helvetica-Bold", 20)
    c.drawString(50, height - 70, "Comparison Summary")
    if similarity > 90:
        c.setFillColorRGB(0, 0.6, 0)
        verdict = "is very similar"
    elif similarity > 70:
        c.setFillColorRGB(0.8, 0.6, 0)
        verdict = "has some differences"
    else:
        c.setFillColorRGB(0.8, 0, 0)
        verdict = "has significant differences"
    c.setFont("Helvetica-Bold", 16)
    c.drawString(50, height - 110, f"Overall Similarity: {similarity}%")
    c.setFillColorRGB(0, 0, 0)

    changed = [d.number for d in diffs if d.removed or d.added]
    only_one = [d.number for d in diffs if not (d.in_first and d.in_second)]
    findings = [
        f"Page content {verdict}.",
        f"{len(changed)} of {len(diffs)} pages have text changes.",
        f"{sum(len(d.removed) for d in diffs)} passages removed, {sum(len(d.added) for d in diffs)} added.",
    ]
    if only_one:
        findings.append(f"Pages present in only one document: {', '.join(map(str, only_one))}")
    c.setFont("Helvetica-Bold", 14)
    c.drawString(50, height - 150, "Key Findings:")
    c.setFont("Helvetica", 12)
    for i, finding in enumerate(findings):
        c.drawString(60, height - 175 - 20 * i, f"- {finding}")
    c.setFont("Helvetica", 9)
    c.setFillColorRGB(0.5, 0.5, 0.5)
    c.drawString(50, 40, "Generated by Transform Factory - PDF Comparison Tool")
    c.showPage()


analysis_service = AnalysisService()
