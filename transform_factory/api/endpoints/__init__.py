from fastapi import APIRouter

from transform_factory.api.endpoints import analysis, convert, edit, export, pdf, security

router = APIRouter()

router.include_router(convert.router)
router.include_router(pdf.router)
router.include_router(security.router)
router.include_router(edit.router)
router.include_router(export.router)
router.include_router(analysis.router)
