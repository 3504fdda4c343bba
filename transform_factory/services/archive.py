import zipfile
from io import BytesIO
from typing import Iterable, Tuple


def zip_files(entries: Iterable[Tuple[str, bytes]]) -> bytes:
    """Bundle ``(name, content)`` pairs into an in-memory zip archive."""
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in entries:
            archive.writestr(name, content)
    return buffer.getvalue()
