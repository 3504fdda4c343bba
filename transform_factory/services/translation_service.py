import logging
from abc import ABC, abstractmethod
from datetime import date
from html import escape
from typing import List, Optional, Sequence

import fitz  # PyMuPDF
from deep_translator import GoogleTranslator
from deep_translator.exceptions import BaseError, LanguageNotSupportedException

from transform_factory.core.config import settings
from transform_factory.core.errors import EngineUnavailableError, InvalidInputError
from transform_factory.services.layout import page_size
from transform_factory.services.render_service import open_pdf

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ja": "Japanese",
    "zh": "Chinese",
    "ru": "Russian",
    "hi": "Hindi",
    "ar": "Arabic",
}

# deep-translator uses region-qualified codes for Chinese
PROVIDER_CODES = {"zh": "zh-CN"}

PAGE_CSS = "* {font-family: sans-serif; font-size: 11pt;}"


def chunk_text(text: str, size: int) -> List[str]:
    """Split on line boundaries into pieces of at most ``size`` characters."""
    chunks, current = [], ""
    for line in text.splitlines(keepends=True):
        while len(line) > size:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:size])
            line = line[size:]
        if len(current) + len(line) > size:
            chunks.append(current)
            current = ""
        current += line
    if current:
        chunks.append(current)
    return chunks


class Translator(ABC):
    @abstractmethod
    def translate(self, text: str, target: str, source: str = "auto") -> str:
        raise NotImplementedError


class GoogleTextTranslator(Translator):
    def __init__(self, chunk_size: int = None):
        self.chunk_size = chunk_size or settings.TRANSLATION_CHUNK_SIZE

    def translate(self, text: str, target: str, source: str = "auto") -> str:
        if not text.strip():
            return text
        try:
            translator = GoogleTranslator(source=source, target=PROVIDER_CODES.get(target, target))
            parts = []
            for chunk in chunk_text(text, self.chunk_size):
                body = chunk.strip()
                if not body:
                    parts.append(chunk)
                    continue
                # the provider strips its input and output
                lead = chunk[:len(chunk) - len(chunk.lstrip())]
                trail = chunk[len(chunk.rstrip()):]
                parts.append(lead + (translator.translate(body) or "") + trail)
            return "".join(parts)
        except LanguageNotSupportedException as exc:
            raise InvalidInputError(f"Unsupported target language: {target}") from exc
        except BaseError as exc:
            raise EngineUnavailableError(f"Translation service unavailable: {exc}") from exc


class TranslationService:
    @staticmethod
    def translate_pdf(
        content: bytes,
        translator: Translator,
        target: str,
        pages: Optional[Sequence[int]] = None,
        preserve_layout: bool = True,
        include_images: bool = True,
        quality: str = "standard",
        filename: str = "document.pdf",
    ) -> bytes:
        """Cover page followed by one translated page per selected page."""
        source = open_pdf(content)
        result = fitz.open()
        try:
            numbers = list(range(1, source.page_count + 1) if pages is None else pages)
            _cover(result, filename, target, len(numbers), quality)
            for number in numbers:
                page = source[number - 1]
                if preserve_layout:
                    _translate_in_place(result, source, page, translator, target, include_images)
                else:
                    _translate_reflowed(result, page, number, translator, target)
            output = result.tobytes(garbage=3, deflate=True)
        finally:
            source.close()
            result.close()
        logger.info("Translated %d pages to %s", len(numbers), target)
        return output


def _html(text: str) -> str:
    return escape(text).replace("\n", "<br>")


def _cover(doc: fitz.Document, filename: str, target: str, count: int, quality: str) -> None:
    width, height = page_size("a4")
    cover = doc.new_page(width=width, height=height)
    cover.insert_text((50, 100), "Translated Document", fontsize=24, fontname="hebo")
    lines = [
        f"Original Document: {filename}",
        f"Translated to: {LANGUAGE_NAMES.get(target, target)}",
        f"Total Pages: {count}",
        f"Translation Quality: {quality.capitalize()}",
        f"Translation Date: {date.today().isoformat()}",
    ]
    for i, line in enumerate(lines):
        cover.insert_text((50, 150 + 25 * i), line, fontsize=12, fontname="helv")
    cover.insert_text((50, height - 40), "Translated by Transform Factory", fontsize=10, fontname="helv",
                      color=(0.5, 0.5, 0.5))


def _translate_in_place(result, source, page, translator, target, include_images) -> None:
    """Keep the page's graphics and swap each text block for its translation."""
    result.insert_pdf(source, from_page=page.number, to_page=page.number)
    copy = result[-1]
    blocks = [b for b in page.get_text("blocks") if b[6] == 0 and b[4].strip()]
    for block in blocks:
        copy.add_redact_annot(fitz.Rect(block[:4]))
    copy.apply_redactions(images=fitz.PDF_REDACT_IMAGE_NONE)
    if not include_images:
        for info in copy.get_images(full=True):
            copy.delete_image(info[0])
    for block in blocks:
        translated = translator.translate(block[4].strip(), target)
        copy.insert_htmlbox(fitz.Rect(block[:4]), _html(translated), css=PAGE_CSS, scale_low=0)


def _translate_reflowed(result, page, number, translator, target) -> None:
    text = page.get_text("text")
    translated = translator.translate(text, target) if text.strip() else ""
    rect = page.rect
    out = result.new_page(width=rect.width, height=rect.height)
    out.insert_text((50, 50), f"Page {number}", fontsize=14, fontname="hebo")
    body = fitz.Rect(50, 70, rect.width - 50, rect.height - 50)
    out.insert_htmlbox(body, _html(translated), css=PAGE_CSS, scale_low=0)


translator = GoogleTextTranslator()
translation_service = TranslationService()
