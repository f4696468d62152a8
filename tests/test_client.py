import json
import random

import httpx
import pytest

from video_uploader.client import (
    AdOverlay,
    FailureKind,
    InvalidTransition,
    ProgressTicker,
    UploadFailed,
    UploaderController,
    UploadFlow,
    UploadState,
    VideoApiClient,
)

VIDEO_URL = "https://pub-acct123.r2.dev/videos/1700000000000-abc123.mp4"


def json_response(payload: dict, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload), headers={"content-type": "application/json"})


def build_api(handler) -> VideoApiClient:
    return VideoApiClient("http://testserver", transport=httpx.MockTransport(handler))


def happy_handler(seen: list):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        if request.url.path == "/api/upload":
            assert b'name="video"; filename="clip.mp4"' in request.read()
            return json_response(
                {
                    "success": True,
                    "url": VIDEO_URL,
                    "fileName": "videos/1700000000000-abc123.mp4",
                    "fileSize": 5,
                    "contentType": "video/mp4",
                    "timestamp": 1700000000000,
                }
            )
        if request.url.path == "/api/videos":
            return json_response(
                {"success": True, "videos": [{"key": "videos/1700000000000-abc123.mp4", "url": VIDEO_URL}], "total": 1}
            )
        if request.url.path == "/api/config":
            return json_response({"success": True, "adsterraLink": "https://ads.example.com/offer"})
        return json_response({"success": False, "error": "Endpoint not found"}, 404)

    return handler


def test_api_client_upload_returns_payload():
    seen = []
    with build_api(happy_handler(seen)) as api:
        result = api.upload("clip.mp4", b"video", "video/mp4")
    assert result["url"] == VIDEO_URL
    assert seen == [("POST", "/api/upload")]


def test_api_client_reports_server_error_message():
    def handler(request):
        return json_response({"success": False, "error": "Only video files are allowed"}, 400)

    with build_api(handler) as api, pytest.raises(UploadFailed) as excinfo:
        api.upload("clip.mp4", b"video", "video/mp4")
    assert excinfo.value.kind == FailureKind.SERVER
    assert excinfo.value.status_code == 400
    assert excinfo.value.user_message == "Upload failed: Only video files are allowed"


def test_api_client_rejects_success_false_with_ok_status():
    def handler(request):
        return json_response({"success": False})

    with build_api(handler) as api, pytest.raises(UploadFailed) as excinfo:
        api.upload("clip.mp4", b"video", "video/mp4")
    assert excinfo.value.kind == FailureKind.SERVER
    assert excinfo.value.message == "Upload failed without error message"


@pytest.mark.parametrize(
    "body, message",
    [
        ("", "Server returned empty response"),
        ("<!DOCTYPE html><html><body>oops</body></html>", "Server returned HTML instead of JSON"),
        ("not json", "Invalid server response: not json"),
    ],
)
def test_api_client_flags_malformed_responses(body, message):
    def handler(request):
        return httpx.Response(502, content=body)

    with build_api(handler) as api, pytest.raises(UploadFailed) as excinfo:
        api.upload("clip.mp4", b"video", "video/mp4")
    assert excinfo.value.kind == FailureKind.MALFORMED
    assert excinfo.value.message == message


def test_api_client_categorizes_timeout_and_connection_errors():
    def timeout_handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    def offline_handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with build_api(timeout_handler) as api, pytest.raises(UploadFailed) as timeout:
        api.upload("clip.mp4", b"video", "video/mp4")
    assert timeout.value.kind == FailureKind.TIMEOUT

    with build_api(offline_handler) as api, pytest.raises(UploadFailed) as offline:
        api.list_videos()
    assert offline.value.kind == FailureKind.CONNECTION
    assert offline.value.user_message == "Connection failed - check your network"


def test_flow_rejects_invalid_files_and_stays_idle():
    flow = UploadFlow()
    assert flow.select_file("notes.txt", "text/plain", 10) is False
    assert flow.state == UploadState.IDLE
    assert "video" in flow.message

    assert flow.select_file("big.mp4", "video/mp4", 100 * 1024 * 1024 + 1) is False
    assert flow.state == UploadState.IDLE
    assert flow.message == "File too large. Maximum size is 100MB."
    assert flow.submit_enabled is False


def test_flow_transitions():
    flow = UploadFlow()
    with pytest.raises(InvalidTransition):
        flow.submit()

    assert flow.select_file("clip.mp4", "video/mp4", 5)
    assert flow.state == UploadState.FILE_SELECTED
    assert flow.submit_enabled

    flow.submit()
    assert flow.state == UploadState.UPLOADING
    assert flow.submit_enabled is False
    with pytest.raises(InvalidTransition):
        flow.submit()
    with pytest.raises(InvalidTransition):
        flow.select_file("other.mp4", "video/mp4", 5)

    flow.upload_failed("Connection failed - check your network")
    assert flow.state == UploadState.ERROR
    assert flow.submit_enabled

    flow.submit()
    flow.upload_succeeded(VIDEO_URL)
    assert flow.state == UploadState.SUCCESS
    flow.start_playback()
    assert flow.state == UploadState.PLAYING

    flow.reset()
    assert flow.selected is None
    assert flow.state == UploadState.PLAYING


def test_controller_successful_upload_plays_and_schedules_reset():
    seen = []
    scheduled = []
    progress = []
    controller = UploaderController(
        build_api(happy_handler(seen)),
        opener=lambda link: None,
        on_progress=progress.append,
        schedule=lambda delay, callback: scheduled.append((delay, callback)),
    )
    assert controller.ad.link == "https://ads.example.com/offer"

    assert controller.select("clip.mp4", b"video", "video/mp4")
    assert controller.upload() == VIDEO_URL
    assert controller.flow.state == UploadState.PLAYING
    assert controller.flow.video_url == VIDEO_URL
    assert controller.videos[0]["url"] == VIDEO_URL
    assert ("GET", "/api/videos") in seen

    delay, callback = scheduled[0]
    assert delay == 3.0
    callback()
    assert controller.flow.selected is None
    assert controller.data is None
    assert all(0 < value <= 100 for value in progress)


def test_controller_failed_upload_reenables_submit():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    controller = UploaderController(build_api(handler), ad_link="https://ads.example.com/offer", schedule=lambda *_: None)
    controller.select("clip.mp4", b"video", "video/mp4")
    assert controller.upload() is None
    assert controller.flow.state == UploadState.ERROR
    assert controller.flow.submit_enabled
    assert controller.flow.message.startswith("Upload timed out")


def test_ad_overlay_opens_link_only_while_showing():
    opened = []
    overlay = AdOverlay("https://ads.example.com/offer", opener=opened.append)

    overlay.click_page()
    assert opened == []

    overlay.on_playback_ended()
    overlay.click_inside()
    overlay.click_page()
    assert opened == ["https://ads.example.com/offer"] * 2

    overlay.close()
    overlay.click_page()
    assert len(opened) == 2


def test_progress_ticker_is_monotonic_and_capped():
    values = []
    ticker = ProgressTicker(values.append, rng=random.Random(7))
    for _ in range(100):
        ticker.step()
    assert values == sorted(values)
    assert values[-1] == 100.0


def test_progress_ticker_stops_on_request():
    ticker = ProgressTicker(lambda _: None, interval=0.001)
    ticker.start()
    ticker.stop()
    assert 0.0 <= ticker.progress <= 100.0


def test_controller_treats_missing_url_as_malformed_response():
    def handler(request):
        return json_response({"success": True})

    controller = UploaderController(build_api(handler), ad_link="https://ads.example.com/offer", schedule=lambda *_: None)
    controller.select("clip.mp4", b"video", "video/mp4")
    assert controller.upload() is None
    assert controller.flow.state == UploadState.ERROR
    assert controller.flow.submit_enabled
    assert controller.flow.message == "Server error - try again shortly"

    with build_api(handler) as api, pytest.raises(UploadFailed) as excinfo:
        api.upload("clip.mp4", b"video", "video/mp4")
    assert excinfo.value.kind == FailureKind.MALFORMED


def test_delayed_reset_keeps_a_newer_selection():
    scheduled = []
    controller = UploaderController(
        build_api(happy_handler([])),
        ad_link="https://ads.example.com/offer",
        schedule=lambda delay, callback: scheduled.append(callback),
    )
    controller.select("clip.mp4", b"video", "video/mp4")
    controller.upload()

    assert controller.select("next.mp4", b"more video", "video/mp4")
    scheduled[0]()
    assert controller.flow.state == UploadState.FILE_SELECTED
    assert controller.flow.selected.name == "next.mp4"
    assert controller.data == b"more video"

    controller.flow.submit()
    scheduled[0]()
    assert controller.flow.state == UploadState.UPLOADING
