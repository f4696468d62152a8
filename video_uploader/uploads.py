"""Upload validation, storage key generation and bucket listing."""

import logging
import secrets
import string
import time
from urllib.parse import quote

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request

from video_uploader.config import Settings
from video_uploader.models import UploadResponse, VideoEntry, VideoListResponse
from video_uploader.storage import StorageError

logger = logging.getLogger(__name__)

VIDEO_FIELD = "video"
KEY_PREFIX = "videos"
DEFAULT_EXTENSION = "mp4"
BASE36_ALPHABET = string.digits + string.ascii_lowercase
RANDOM_SUFFIX_LENGTH = 6


class ApiError(Exception):
    def __init__(self, status_code: int, error: str, details: str | None = None):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details


def storage_not_configured() -> ApiError:
    return ApiError(
        500,
        "Storage bucket not configured",
        "Set VUP_STORAGE_BACKEND and the matching VUP_R2_* settings before starting the service",
    )


def file_extension(filename: str | None) -> str:
    _, dot, suffix = (filename or "").rpartition(".")
    if not dot or not suffix:
        return DEFAULT_EXTENSION
    return suffix


def generate_object_key(filename: str | None, timestamp_ms: int | None = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(RANDOM_SUFFIX_LENGTH))
    return f"{KEY_PREFIX}/{timestamp_ms}-{suffix}.{file_extension(filename)}"


def declared_content_length(request: Request) -> int:
    raw = request.headers.get("content-length")
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        return 0


async def upload_video(request: Request, storage, settings: Settings) -> UploadResponse:
    if request.method != "POST":
        raise ApiError(405, "Method not allowed")

    if storage is None:
        logger.error("Upload rejected: storage bucket not configured")
        raise storage_not_configured()

    content_length = declared_content_length(request)
    logger.info("Upload request, content length %s", content_length)
    if content_length == 0:
        raise ApiError(400, "Empty request body")

    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" not in content_type:
        raise ApiError(400, "Content-Type must be multipart/form-data", content_type)

    try:
        form = await request.form()
    except (MultiPartException, HTTPException, ValueError) as exc:
        message = getattr(exc, "detail", None) or getattr(exc, "message", None) or str(exc)
        logger.warning("Form data parse error: %s", message)
        raise ApiError(400, "Invalid form data", message) from exc

    try:
        return await store_form_video(form, storage, settings)
    finally:
        await form.close()


async def store_form_video(form, storage, settings: Settings) -> UploadResponse:
    file = form.get(VIDEO_FIELD)
    if not isinstance(file, UploadFile):
        raise ApiError(400, "No video file provided")

    file_type = file.content_type or ""
    size = file.size or 0
    logger.info("File info: name=%s size=%s type=%s", file.filename, size, file_type)

    if not file_type.startswith("video/"):
        raise ApiError(400, "Only video files are allowed", file_type)

    if size > settings.max_upload_size_bytes:
        raise ApiError(
            400,
            f"File too large. Maximum size is {settings.max_upload_size_label}",
            f"{size / 1024 / 1024:.2f}MB",
        )

    if size == 0:
        raise ApiError(400, "File is empty")

    timestamp = int(time.time() * 1000)
    key = generate_object_key(file.filename, timestamp)

    buffer = await file.read()
    if not buffer:
        raise ApiError(500, "Failed to upload video to storage", "File buffer is empty")

    logger.info("Uploading %s (%d bytes)", key, len(buffer))
    try:
        await run_in_threadpool(
            storage.put,
            key,
            buffer,
            content_type=file_type,
            metadata={
                "originalName": quote(file.filename or ""),
                "uploadTime": str(timestamp),
                "size": str(size),
            },
        )
    except StorageError as exc:
        logger.error("Storage write failed for %s: %s", key, exc)
        raise ApiError(500, "Failed to upload video to storage", str(exc)) from exc

    return UploadResponse(
        url=storage.url_for(key),
        file_name=key,
        file_size=size,
        content_type=file_type,
        timestamp=timestamp,
    )


def list_videos(storage) -> VideoListResponse:
    if storage is None:
        raise storage_not_configured()

    try:
        objects = storage.list()
    except StorageError as exc:
        logger.error("List videos failed: %s", exc)
        raise ApiError(500, "Failed to list videos", str(exc)) from exc

    videos = [
        VideoEntry(key=obj.key, size=obj.size, uploaded=obj.uploaded, url=storage.url_for(obj.key))
        for obj in objects
    ]
    return VideoListResponse(videos=videos, total=len(videos))
