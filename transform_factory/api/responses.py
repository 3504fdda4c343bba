import re
from typing import Dict, Optional
from urllib.parse import quote

from fastapi import Response

# characters that would break out of the quoted header value
_UNSAFE_HEADER_CHARS = re.compile(r'["\\\r\n]')


def content_disposition(filename: str) -> str:
    """``attachment`` header value; non-ASCII names also go out as RFC 5987 ``filename*``."""
    cleaned = _UNSAFE_HEADER_CHARS.sub("", filename) or "download"
    fallback = cleaned.encode("ascii", "replace").decode("ascii").replace("?", "_")
    if fallback == cleaned:
        return f'attachment; filename="{cleaned}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(cleaned, safe='')}"


def attachment(
    content: bytes, filename: str, media_type: str, headers: Optional[Dict[str, str]] = None
) -> Response:
    """Binary download response."""
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": content_disposition(filename), **(headers or {})},
    )


def pdf_attachment(content: bytes, filename: str, headers: Optional[Dict[str, str]] = None) -> Response:
    return attachment(content, filename, "application/pdf", headers)


def zip_attachment(content: bytes, filename: str) -> Response:
    return attachment(content, filename, "application/zip")
