"""Client-side upload flow and ad overlay state."""

import logging
import webbrowser
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

MAX_UPLOAD_SIZE_BYTES = 100 * 1024 * 1024


class UploadState(str, Enum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    UPLOADING = "uploading"
    SUCCESS = "success"
    PLAYING = "playing"
    ERROR = "error"


class InvalidTransition(Exception):
    def __init__(self, state: UploadState, event: str):
        super().__init__(f"cannot {event} while {state.value}")
        self.state = state
        self.event = event


@dataclass
class SelectedFile:
    name: str
    content_type: str
    size: int


class UploadFlow:
    def __init__(self, max_size_bytes: int = MAX_UPLOAD_SIZE_BYTES):
        self.max_size_bytes = max_size_bytes
        self.state = UploadState.IDLE
        self.selected: SelectedFile | None = None
        self.video_url: str | None = None
        self.message: str | None = None

    @property
    def submit_enabled(self) -> bool:
        return self.selected is not None and self.state in (UploadState.FILE_SELECTED, UploadState.ERROR)

    def _require(self, event: str, *allowed: UploadState) -> None:
        if self.state not in allowed:
            raise InvalidTransition(self.state, event)

    def select_file(self, name: str, content_type: str, size: int) -> bool:
        """Accept a picked or dropped file; returns False and keeps the state when rejected."""
        if self.state == UploadState.UPLOADING:
            raise InvalidTransition(self.state, "select a file")
        if not (content_type or "").startswith("video/"):
            self.message = "Please choose a video file (MP4, WebM, MOV, ...)."
            return False
        if size > self.max_size_bytes:
            self.message = f"File too large. Maximum size is {self.max_size_bytes // (1024 * 1024)}MB."
            return False
        self.selected = SelectedFile(name=name, content_type=content_type, size=size)
        self.message = None
        self.state = UploadState.FILE_SELECTED
        return True

    def submit(self) -> SelectedFile:
        self._require("submit", UploadState.FILE_SELECTED, UploadState.ERROR)
        self.state = UploadState.UPLOADING
        self.message = None
        return self.selected

    def upload_succeeded(self, url: str) -> None:
        self._require("complete an upload", UploadState.UPLOADING)
        self.video_url = url
        self.message = f"Upload complete: {url}"
        self.state = UploadState.SUCCESS

    def upload_failed(self, message: str) -> None:
        self._require("fail an upload", UploadState.UPLOADING)
        self.message = message
        self.state = UploadState.ERROR

    def start_playback(self, url: str | None = None) -> None:
        if url is not None:
            self.video_url = url
        if self.video_url is None:
            raise InvalidTransition(self.state, "start playback")
        self.state = UploadState.PLAYING

    def reset(self) -> None:
        """Clear the form; playback of the last upload keeps going."""
        if self.state == UploadState.UPLOADING:
            raise InvalidTransition(self.state, "reset")
        self.selected = None
        if self.state != UploadState.PLAYING:
            self.state = UploadState.IDLE


class AdOverlay:
    def __init__(self, link: str, opener=webbrowser.open_new_tab):
        self.link = link
        self.opener = opener
        self.showing = False

    def on_playback_ended(self) -> None:
        self.showing = True

    def click_inside(self) -> None:
        if self.showing:
            self.opener(self.link)

    def click_page(self) -> None:
        if self.showing:
            self.opener(self.link)

    def close(self) -> None:
        self.showing = False
