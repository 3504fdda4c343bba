import logging
from typing import Optional

from fastapi import APIRouter, Depends, File as FileParam, Form, UploadFile
from fastapi.concurrency import run_in_threadpool

from transform_factory.api.deps import get_pdf_engine
from transform_factory.api.forms import PDF_EXTENSIONS, read_upload
from transform_factory.api.responses import pdf_attachment
from transform_factory.core.errors import InvalidInputError
from transform_factory.services.pdf_service import PdfEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pdf", tags=["PDF Security"])


@router.post("/protect")
async def protect_pdf(
    pdf: Optional[UploadFile] = FileParam(None),
    user_password: str = Form("", alias="userPassword"),
    owner_password: str = Form("", alias="ownerPassword"),
    can_print: bool = Form(False, alias="canPrint"),
    can_modify: bool = Form(False, alias="canModify"),
    can_copy: bool = Form(False, alias="canCopy"),
    can_annotate: bool = Form(False, alias="canAnnotate"),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "protect", PDF_EXTENSIONS)
    if not user_password and not owner_password:
        raise InvalidInputError("At least one password (user or owner) is required")
    permissions = {
        "print": can_print,
        "modify": can_modify,
        "copy": can_copy,
        "annotate": can_annotate,
    }
    protected = await run_in_threadpool(
        engine.encrypt, upload.content, user_password, owner_password or None, permissions
    )
    logger.info("protect: %s (%s)", upload.filename, ", ".join(k for k, v in permissions.items() if v) or "none")
    return pdf_attachment(protected, "protected.pdf")


@router.post("/unlock")
async def unlock_pdf(
    pdf: Optional[UploadFile] = FileParam(None),
    password: str = Form(""),
    engine: PdfEngine = Depends(get_pdf_engine),
):
    upload = await read_upload(pdf, "unlock", PDF_EXTENSIONS)
    if not password:
        raise InvalidInputError("Password is required to unlock the PDF")
    unlocked = await run_in_threadpool(engine.decrypt, upload.content, password)
    logger.info("unlock: %s", upload.filename)
    return pdf_attachment(unlocked, "unlocked.pdf")
