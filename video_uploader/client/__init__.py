from video_uploader.client.api import FailureKind, UploadFailed, VideoApiClient
from video_uploader.client.controller import ProgressTicker, UploaderController
from video_uploader.client.state import AdOverlay, InvalidTransition, UploadFlow, UploadState

__all__ = [
    "AdOverlay",
    "FailureKind",
    "InvalidTransition",
    "ProgressTicker",
    "UploadFailed",
    "UploadFlow",
    "UploadState",
    "UploaderController",
    "VideoApiClient",
]
