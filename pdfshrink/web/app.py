"""FastAPI web application for pdfshrink."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from pdfshrink.core.errors import PDFShrinkError
from pdfshrink.core.ghostscript import GhostscriptCompressor
from pdfshrink.core.pipeline import CompressionPipeline, download_name
from pdfshrink.core.settings import Settings
from pdfshrink.core.storage import TempFileStore
from pdfshrink.core.utils import format_size
from pdfshrink.logging_config import generate_request_id, set_request_id, setup_logging
from pdfshrink.web.responses import CleanupFileResponse
from pdfshrink.web.upload import PDF_CONTENT_TYPE, receive_upload

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"
GENERIC_ERROR = "Something went wrong!"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around an explicit settings object."""
    settings = settings or Settings()

    store = TempFileStore(settings.upload_path)
    store.ensure_directory()
    compressor = GhostscriptCompressor(settings.ghostscript, settings.compression_options())
    pipeline = CompressionPipeline(store, compressor)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        binary = compressor.resolve_binary()
        logger.info("PDF compression service ready on http://%s:%d", settings.host, settings.port)
        logger.info("Upload directory: %s", store.directory)
        if binary:
            logger.info("Using Ghostscript at: %s (preset /%s)", binary, compressor.options.preset)
        else:
            logger.warning("Ghostscript binary %r not found, compression requests will fail", settings.ghostscript)
        yield

    app = FastAPI(
        title="pdfshrink",
        description="Compress PDF files with Ghostscript",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Original-Size", "X-Compressed-Size"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = generate_request_id()
        set_request_id(request_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    if STATIC_DIR.is_dir():
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.exception_handler(PDFShrinkError)
    async def pdfshrink_error_handler(request: Request, exc: PDFShrinkError):
        if exc.status_code >= 500:
            logger.error("Error processing PDF: %s", exc.to_dict())
        else:
            logger.info("Rejected request: %s", exc.to_dict())
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})

    @app.get("/", response_class=HTMLResponse)
    async def root():
        """Serve the main page."""
        html_path = STATIC_DIR / "index.html"
        return HTMLResponse(content=html_path.read_text(encoding="utf-8"))

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "ghostscript": compressor.resolve_binary(),
            "options": compressor.options.to_dict(),
            "pending_files": len(store.listing()),
        }

    @app.post("/compress")
    async def compress(request: Request):
        """Compress the uploaded PDF and send it back."""
        upload = await receive_upload(request, store, settings.max_upload_bytes)
        logger.info("Compressing %s (%s)", upload.filename, format_size(upload.size))
        job = pipeline.create_job(upload.id, upload.path)
        try:
            result = await pipeline.run(job)
            return CleanupFileResponse(
                result.deliver_path,
                cleanup=lambda: pipeline.cleanup(job),
                media_type=PDF_CONTENT_TYPE,
                filename=download_name(upload.filename),
                headers={
                    "X-Original-Size": str(result.original_size),
                    "X-Compressed-Size": str(result.delivered_size),
                },
            )
        except BaseException:
            pipeline.cleanup(job)
            raise

    return app


def run_server(settings: Optional[Settings] = None, host: Optional[str] = None, port: Optional[int] = None):
    """Run the web server."""
    import uvicorn

    settings = settings or Settings()
    setup_logging(settings.log_level)
    if host:
        settings.host = host
    if port:
        settings.port = port
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run_server()
