import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from video_uploader.config import Settings, get_settings
from video_uploader.models import (
    BucketInfo,
    BucketObject,
    ConfigResponse,
    HealthResponse,
    StorageCheckResponse,
    UploadResponse,
    VideoListResponse,
)
from video_uploader.storage import StorageError, build_storage
from video_uploader.uploads import ApiError, list_videos, storage_not_configured, upload_video

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, *",
}
PREFLIGHT_MAX_AGE = "86400"
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]
KNOWN_API_PATHS = {"/api/upload", "/api/videos", "/api/health", "/api/config", "/api/storage-check"}
DEFAULT_STATIC_DIR = Path(__file__).parent / "static"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("botocore").setLevel(logging.WARNING)


def error_response(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    content = {"success": False, "error": error}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def create_app(settings: Settings | None = None, storage=None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    storage = storage if storage is not None else build_storage(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if storage is not None:
            storage.init()
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.storage = storage

    @app.middleware("http")
    async def cors_and_error_envelope(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(
                status_code=200,
                headers={**CORS_HEADERS, "Access-Control-Max-Age": PREFLIGHT_MAX_AGE},
            )
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            response = error_response(500, "Internal server error", str(exc))
        response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(ApiError)
    async def api_error_handler(_: Request, exc: ApiError):
        return error_response(exc.status_code, exc.error, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_: Request, exc: StarletteHTTPException):
        message = str(exc.detail) if exc.detail else "request failed"
        return error_response(exc.status_code, message)

    @app.api_route("/api/upload", methods=ALL_METHODS, response_model=UploadResponse)
    async def upload(request: Request):
        return await upload_video(request, request.app.state.storage, settings)

    @app.get("/api/videos", response_model=VideoListResponse)
    def videos(request: Request):
        return list_videos(request.app.state.storage)

    @app.get("/api/health", response_model=HealthResponse)
    def health():
        return HealthResponse(
            message="Video Uploader API is running",
            timestamp=datetime.now(timezone.utc),
            platform=f"FastAPI + {settings.storage_backend.upper()} storage",
        )

    @app.get("/api/config", response_model=ConfigResponse)
    def config(request: Request):
        return ConfigResponse(
            max_file_size=settings.max_upload_size_label,
            allowed_types=settings.allowed_types,
            features=settings.features,
            adsterra_link=settings.adsterra_link,
            r2_configured=request.app.state.storage is not None,
        )

    @app.get("/api/storage-check", response_model=StorageCheckResponse)
    def storage_check(request: Request):
        bucket = request.app.state.storage
        if bucket is None:
            raise storage_not_configured()
        try:
            objects = bucket.list()
        except StorageError as exc:
            raise ApiError(500, "Storage connection failed", str(exc)) from exc
        return StorageCheckResponse(
            bucket_info=BucketInfo(
                name=bucket.bucket,
                total_objects=len(objects),
                objects=[BucketObject(key=obj.key, size=obj.size) for obj in objects],
            )
        )

    @app.api_route("/api/{path:path}", methods=ALL_METHODS)
    def unknown_endpoint(request: Request):
        if request.url.path in KNOWN_API_PATHS:
            raise ApiError(405, "Method not allowed")
        raise ApiError(404, "Endpoint not found")

    static_dir = Path(settings.static_dir) if settings.static_dir else DEFAULT_STATIC_DIR
    app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    logger.info(
        "%s started (env=%s, storage=%s)",
        settings.app_name,
        settings.app_env,
        "configured" if storage is not None else "missing",
    )
    return app


app = create_app()
