"""Reading uploads and structured form fields.

Every route goes through these helpers so that missing files, wrong
extensions, oversized uploads and malformed JSON fields are all rejected
the same way, with a 400 and a readable message.
"""
import json
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence, Type, TypeVar

from fastapi import UploadFile
from pydantic import BaseModel, ValidationError

from transform_factory.core.config import MEGABYTE, settings
from transform_factory.core.errors import InvalidInputError

logger = logging.getLogger(__name__)

PDF_EXTENSIONS = (".pdf",)
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".tif", ".tiff")

Model = TypeVar("Model", bound=BaseModel)


@dataclass
class Upload:
    filename: str
    content: bytes
    content_type: str

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename)[1].lower()

    @property
    def stem(self) -> str:
        return stem(self.filename)


def stem(filename: Optional[str], default: str = "document") -> str:
    base = os.path.splitext(os.path.basename(filename or ""))[0]
    return base or default


def _describe(extensions: Sequence[str]) -> str:
    return ", ".join(extensions)


async def read_upload(
    upload: Optional[UploadFile],
    operation: str,
    extensions: Optional[Sequence[str]] = None,
    kind: str = "PDF file",
    article: str = "a",
) -> Upload:
    """Read and validate one uploaded file."""
    if upload is None or not upload.filename:
        raise InvalidInputError(f"No {kind} provided")

    filename = os.path.basename(upload.filename)
    ext = os.path.splitext(filename)[1].lower()
    if extensions and ext not in extensions:
        raise InvalidInputError(
            f"Invalid file format. Please upload {article} {kind} ({_describe(extensions)})"
        )

    content = await upload.read()
    if not content:
        raise InvalidInputError(f"The uploaded file {filename} is empty")
    limit = settings.upload_limit(operation)
    if len(content) > limit:
        raise InvalidInputError(
            f"File too large: {filename} exceeds the {limit // MEGABYTE} MB limit"
        )
    logger.debug("%s: received %s (%d bytes)", operation, filename, len(content))
    return Upload(filename=filename, content=content, content_type=upload.content_type or "")


async def read_uploads(
    uploads: Optional[List[UploadFile]],
    operation: str,
    extensions: Optional[Sequence[str]] = None,
    kind: str = "PDF file",
    article: str = "a",
    minimum: int = 1,
) -> List[Upload]:
    files = [u for u in (uploads or []) if u is not None and u.filename]
    if len(files) < minimum:
        if minimum == 1:
            raise InvalidInputError(f"No {kind}s provided")
        raise InvalidInputError(f"At least {minimum} {kind}s are required")
    return [await read_upload(u, operation, extensions, kind, article) for u in files]


def parse_json_list(raw: Optional[str], model: Type[Model], field: str) -> List[Model]:
    """Parse a JSON array form field into validated models."""
    if raw is None or not raw.strip():
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"Invalid JSON in {field}") from exc
    if not isinstance(data, list):
        raise InvalidInputError(f"{field} must be a JSON array")
    try:
        return [model.model_validate(item) for item in data]
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        raise InvalidInputError(f"Invalid {field}: {where} {first.get('msg')}".strip()) from exc


def parse_int_list(raw: Optional[str], field: str) -> List[int]:
    if raw is None or not raw.strip():
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"Invalid JSON in {field}") from exc
    if not isinstance(data, list) or not all(isinstance(v, int) and not isinstance(v, bool) for v in data):
        raise InvalidInputError(f"{field} must be a JSON array of page numbers")
    return data
