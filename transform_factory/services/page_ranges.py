"""Page selection parsing shared by every page-aware operation.

Pages are 1-based. A selection is either ``"all"`` or a comma separated list
of single pages (``"5"``) and inclusive ranges (``"7-9"``). The result is
always deduplicated and ascending.
"""
from typing import Iterable, List, Optional

from transform_factory.core.errors import InvalidInputError


class PageRangeError(InvalidInputError):
    pass


def _bounds_error(token: str, total_pages: int) -> PageRangeError:
    return PageRangeError(
        f"Invalid page range: {token}. Pages must be between 1 and {total_pages}."
    )


def _to_page(value: str, token: str, total_pages: int) -> int:
    value = value.strip()
    if not value.isdecimal():
        raise _bounds_error(token, total_pages)
    page = int(value)
    if page < 1 or page > total_pages:
        raise _bounds_error(token, total_pages)
    return page


def parse_page_range(text: str, total_pages: int) -> List[int]:
    """Parse ``text`` into sorted unique page numbers within ``[1, total_pages]``."""
    if total_pages < 1:
        raise PageRangeError("The document has no pages")
    if text is None or not text.strip():
        raise PageRangeError("No page range provided")

    if text.strip().lower() == "all":
        return list(range(1, total_pages + 1))

    pages = set()
    for raw in text.split(","):
        token = raw.strip()
        if not token:
            raise _bounds_error(raw, total_pages)
        if "-" in token:
            start_s, sep, end_s = token.partition("-")
            start = _to_page(start_s, token, total_pages)
            end = _to_page(end_s, token, total_pages)
            if start > end:
                raise _bounds_error(token, total_pages)
            pages.update(range(start, end + 1))
        else:
            pages.add(_to_page(token, token, total_pages))
    return sorted(pages)


def parse_page_range_or_all(text: Optional[str], total_pages: int) -> List[int]:
    """Like :func:`parse_page_range` but a missing selection means every page."""
    if text is None or not text.strip():
        return parse_page_range("all", total_pages)
    return parse_page_range(text, total_pages)


def validate_pages(pages: Iterable[int], total_pages: int) -> List[int]:
    """Check an explicit list of page numbers and return it sorted and unique."""
    result = set()
    for page in pages:
        if isinstance(page, bool) or not isinstance(page, int) or page < 1 or page > total_pages:
            raise _bounds_error(str(page), total_pages)
        result.add(page)
    return sorted(result)
