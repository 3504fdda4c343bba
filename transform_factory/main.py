from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from transform_factory.core.config import settings
from transform_factory.core.errors import register_exception_handlers
from transform_factory.core.logging import setup_logging
from transform_factory.api import endpoints

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Compression-Ratio", "X-Original-Size", "X-New-Size"],
    )

    @app.middleware("http")
    async def api_headers(request: Request, call_next):
        response = await call_next(request)
        path = request.url.path
        if path.startswith(settings.API_PREFIX):
            response.headers.update(SECURITY_HEADERS)
        if path.startswith(f"{settings.API_PREFIX}/convert"):
            response.headers["Cache-Control"] = "no-store, max-age=0"
        return response

    register_exception_handlers(app)

    # Health check
    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": settings.VERSION}

    app.include_router(endpoints.router, prefix=settings.API_PREFIX)
    return app


app = create_app()
