import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from uploader.api.routes_upload import router as upload_router
from uploader.core.config import Settings, configure_logging, init_storage, load_settings
from uploader.middleware.limits import BodySizeLimitMiddleware
from uploader.services.pipeline import UploadPipeline

log = logging.getLogger("uploader.http")


async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"message": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    init_storage(settings)

    app = FastAPI(title="uploader")
    app.state.settings = settings
    app.state.pipeline = UploadPipeline(settings)

    app.add_middleware(BodySizeLimitMiddleware, max_request_bytes=settings.max_request_bytes)
    app.add_exception_handler(StarletteHTTPException, _http_error)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(upload_router)

    # static assets last so they never shadow API routes
    if settings.static_dir is not None and settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


def run() -> None:
    import uvicorn

    settings = load_settings()
    configure_logging(settings.log_level)
    app = create_app(settings)
    log.info("Server is running at http://localhost:%d", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
