import json
import logging
from enum import Enum

import httpx

logger = logging.getLogger(__name__)

UPLOAD_TIMEOUT_SECONDS = 120.0
DEFAULT_TIMEOUT_SECONDS = 10.0


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    SERVER = "server"
    MALFORMED = "malformed"


USER_MESSAGES = {
    FailureKind.TIMEOUT: "Upload timed out - the file may be too large, try a smaller one",
    FailureKind.CONNECTION: "Connection failed - check your network",
    FailureKind.MALFORMED: "Server error - try again shortly",
}


class UploadFailed(Exception):
    def __init__(self, kind: FailureKind, message: str, status_code: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code

    @property
    def user_message(self) -> str:
        return USER_MESSAGES.get(self.kind, f"Upload failed: {self.message}")


def parse_api_response(response: httpx.Response) -> dict:
    text = response.text
    if not text.strip():
        raise UploadFailed(FailureKind.MALFORMED, "Server returned empty response", response.status_code)
    try:
        result = json.loads(text)
    except json.JSONDecodeError as exc:
        if "<!DOCTYPE html>" in text or "<html" in text:
            message = "Server returned HTML instead of JSON"
        else:
            message = f"Invalid server response: {text[:200]}"
        raise UploadFailed(FailureKind.MALFORMED, message, response.status_code) from exc
    if not isinstance(result, dict):
        raise UploadFailed(FailureKind.MALFORMED, f"Invalid server response: {text[:200]}", response.status_code)

    if response.is_error:
        message = result.get("error") or f"Server error: {response.status_code} {response.reason_phrase}"
        raise UploadFailed(FailureKind.SERVER, message, response.status_code)
    if not result.get("success"):
        message = result.get("error") or "Upload failed without error message"
        raise UploadFailed(FailureKind.SERVER, message, response.status_code)
    return result


class VideoApiClient:
    def __init__(self, base_url: str, *, upload_timeout: float = UPLOAD_TIMEOUT_SECONDS, transport=None):
        self.upload_timeout = upload_timeout
        self.http = httpx.Client(base_url=base_url, timeout=DEFAULT_TIMEOUT_SECONDS, transport=transport)

    def close(self) -> None:
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self.http.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out", method, path)
            raise UploadFailed(FailureKind.TIMEOUT, str(exc) or "request timed out") from exc
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise UploadFailed(FailureKind.CONNECTION, str(exc) or "connection failed") from exc
        return parse_api_response(response)

    def health(self) -> dict:
        return self._request("GET", "/api/health")

    def config(self) -> dict:
        return self._request("GET", "/api/config")

    def list_videos(self) -> list[dict]:
        return self._request("GET", "/api/videos")["videos"]

    def upload(self, name: str, data: bytes, content_type: str) -> dict:
        logger.info("Uploading %s (%d bytes, %s)", name, len(data), content_type)
        result = self._request(
            "POST",
            "/api/upload",
            files={"video": (name, data, content_type)},
            timeout=self.upload_timeout,
        )
        if not isinstance(result.get("url"), str) or not result["url"]:
            raise UploadFailed(FailureKind.MALFORMED, "Server response is missing the video URL")
        return result
