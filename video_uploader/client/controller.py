import logging
import random
import threading

from video_uploader.client.api import UploadFailed, VideoApiClient
from video_uploader.client.state import AdOverlay, UploadFlow, UploadState

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL_SECONDS = 0.2
PROGRESS_MAX_STEP = 15.0
RESET_DELAY_SECONDS = 3.0


class ProgressTicker:
    """Cosmetic progress: a timer adds a random step until 100, unrelated to bytes sent."""

    def __init__(self, on_progress, *, interval: float = PROGRESS_INTERVAL_SECONDS, rng=None):
        self.on_progress = on_progress
        self.interval = interval
        self.rng = rng or random.Random()
        self.progress = 0.0
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    def step(self) -> float:
        self.progress = min(100.0, self.progress + self.rng.random() * PROGRESS_MAX_STEP)
        self.on_progress(self.progress)
        return self.progress

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            if self.step() >= 100.0:
                break

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()
        if self._thread is not None:
            self._thread.join()


class UploaderController:
    def __init__(
        self,
        client: VideoApiClient,
        *,
        ad_link: str | None = None,
        opener=None,
        on_progress=None,
        reset_delay: float = RESET_DELAY_SECONDS,
        schedule=None,
    ):
        self.client = client
        self.flow = UploadFlow()
        if ad_link is None:
            ad_link = client.config()["adsterraLink"]
        self.ad = AdOverlay(ad_link) if opener is None else AdOverlay(ad_link, opener)
        self.on_progress = on_progress or (lambda _: None)
        self.reset_delay = reset_delay
        self.schedule = schedule or self._schedule_timer
        self.videos: list[dict] = []
        self.data: bytes | None = None

    @staticmethod
    def _schedule_timer(delay: float, callback) -> None:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()

    def select(self, name: str, data: bytes, content_type: str) -> bool:
        accepted = self.flow.select_file(name, content_type, len(data))
        if accepted:
            self.data = data
        return accepted

    def refresh_videos(self) -> list[dict]:
        try:
            self.videos = self.client.list_videos()
        except UploadFailed as exc:
            logger.warning("Failed to load videos: %s", exc.message)
        return self.videos

    def upload(self) -> str | None:
        selected = self.flow.submit()
        ticker = ProgressTicker(self.on_progress)
        ticker.start()
        try:
            result = self.client.upload(selected.name, self.data, selected.content_type)
        except UploadFailed as exc:
            logger.error("Upload failed (%s): %s", exc.kind.value, exc.message)
            self.flow.upload_failed(exc.user_message)
            return None
        finally:
            ticker.stop()

        self.flow.upload_succeeded(result["url"])
        self.flow.start_playback()
        self.refresh_videos()
        self.schedule(self.reset_delay, lambda: self._reset_after_success(selected))
        return result["url"]

    def _reset_after_success(self, uploaded) -> None:
        if self.flow.state == UploadState.PLAYING and self.flow.selected is uploaded:
            self.reset()

    def reset(self) -> None:
        self.flow.reset()
        self.data = None

    def play(self, url: str) -> None:
        self.flow.start_playback(url)

    def playback_ended(self) -> None:
        self.ad.on_playback_ended()
