from __future__ import annotations

import asyncio
import json
import time

import pytest
from fastapi.testclient import TestClient

from checkpoint.camera import Camera
from checkpoint.main import create_app
from checkpoint.review import ReviewFlow
from checkpoint.routers.admin import stream_submissions
from checkpoint.stores import MemoryBlobStore, MemoryRecordStore

from .conftest import FakeVideoCapture


def wait_for_count(client: TestClient, count: int) -> dict:
    body = {}
    for _ in range(100):
        body = client.get("/api/admin/submissions").json()
        if body["count"] == count:
            break
        time.sleep(0.01)
    return body


def test_health(settings, records, blobs):
    with TestClient(create_app(settings, records=records, blobs=blobs)) as client:
        r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "store": "memory"}


def test_admin_lists_newest_first(settings, blobs):
    records = MemoryRecordStore(
        {
            "data": {
                "a": {"vehicleNumber": "A", "timestamp": "2024-01-01T00:00:00Z", "imageUrl": "u-a"},
                "b": {"vehicleNumber": "B", "timestamp": "2024-01-03T00:00:00Z", "imageUrl": "u-b"},
                "c": {"timestamp": "2024-01-02T00:00:00Z"},
            }
        }
    )
    with TestClient(create_app(settings, records=records, blobs=blobs)) as client:
        body = wait_for_count(client, 3)

    assert body["identifierField"] == "vehicleNumber"
    assert [item["id"] for item in body["submissions"]] == ["b", "c", "a"]
    assert body["submissions"][1]["identifier"] == "No Vehicle Number"
    assert body["submissions"][1]["imageUrl"] == ""


def test_submission_round_trip(settings, records, blobs, png_bytes):
    with TestClient(create_app(settings, records=records, blobs=blobs)) as client:
        r = client.post(
            "/api/submissions",
            files={"image": ("car.png", png_bytes, "image/png")},
            data={"identifier": " 12GA3456 "},
        )
        assert r.status_code == 201
        notice = r.json()
        assert notice["kind"] == "success"
        assert notice["message"] == "Upload successful!"

        body = wait_for_count(client, 1)
        assert body["submissions"][0]["id"] == notice["submissionId"]
        assert body["submissions"][0]["identifier"] == "12GA3456"

        image = client.get(
            f"/api/admin/submissions/{notice['submissionId']}/image", follow_redirects=False
        )
        assert image.status_code == 307
        assert image.headers["location"] == notice["imageUrl"]


def test_blank_identifier_is_rejected_before_upload(settings, records, blobs, png_bytes):
    with TestClient(create_app(settings, records=records, blobs=blobs)) as client:
        r = client.post(
            "/api/submissions",
            files={"image": ("car.png", png_bytes, "image/png")},
            data={"identifier": "   "},
        )
    assert r.status_code == 400
    assert r.json()["detail"] == "Please enter the vehicle number."
    assert blobs.objects == {}
    assert records.writes == []


def test_non_image_upload_is_rejected(settings, records, blobs):
    with TestClient(create_app(settings, records=records, blobs=blobs)) as client:
        r = client.post(
            "/api/submissions",
            files={"image": ("x.bin", b"not-an-image", "application/octet-stream")},
            data={"identifier": "12GA3456"},
        )
    assert r.status_code == 400
    assert blobs.objects == {}


def test_upload_failure_returns_502(settings, records, png_bytes):
    blobs = MemoryBlobStore()
    blobs.broken.add("put")
    with TestClient(create_app(settings, records=records, blobs=blobs)) as client:
        r = client.post(
            "/api/submissions",
            files={"image": ("car.png", png_bytes, "image/png")},
            data={"identifier": "12GA3456"},
        )
    assert r.status_code == 502
    assert r.json()["detail"] == "Upload failed. Please try again."
    assert records.writes == []


def test_signal_writes_led_only(settings, records, blobs):
    with TestClient(create_app(settings, records=records, blobs=blobs)) as client:
        r = client.post("/api/admin/signal", json={"approved": True})
        assert r.status_code == 200
        assert r.json()["message"] == "LED turned on"
        assert client.get("/api/admin/signal").json() == {"led": "on"}

        r = client.post("/api/admin/signal", json={"approved": False})
        assert r.json()["message"] == "LED turned off"

    assert records.writes == [
        ("update", "led", {"led": "on"}),
        ("update", "led", {"led": "off"}),
    ]


def test_signal_failure_returns_502(settings, records, blobs):
    records.broken.add("update")
    with TestClient(create_app(settings, records=records, blobs=blobs)) as client:
        r = client.post("/api/admin/signal", json={"approved": True})
    assert r.status_code == 502
    assert r.json()["detail"] == "Failed to update LED status"


def test_snapshot_without_camera_returns_503(settings, records, blobs):
    with TestClient(create_app(settings, records=records, blobs=blobs)) as client:
        r = client.post("/api/capture/snapshot")
        state = client.get("/api/capture/state").json()
    assert r.status_code == 503
    assert state["cameraReady"] is False


def test_capture_screen_with_file_preview(settings, records, blobs, png_bytes):
    with TestClient(create_app(settings, records=records, blobs=blobs)) as client:
        assert client.get("/api/capture/preview").status_code == 404

        r = client.post("/api/capture/file", files={"image": ("car.png", png_bytes, "image/png")})
        assert r.status_code == 200

        preview = client.get("/api/capture/preview")
        assert preview.status_code == 200
        assert preview.content == png_bytes
        assert preview.headers["content-type"] == "image/png"

        state = client.get("/api/capture/state").json()
        assert state["hasPreview"] is True
        assert state["previewSource"] == "file"

        cancelled = client.delete("/api/capture/preview").json()
        assert cancelled["hasPreview"] is False

        r = client.post("/api/capture/submit", json={"identifier": "12GA3456"})
        assert r.status_code == 400
        assert r.json()["detail"] == "Please capture a photo first."


def test_camera_capture_with_failed_record_write_orphans_blob(settings, records, blobs):
    device = FakeVideoCapture()
    camera = Camera(0, warmup_seconds=0, capture_factory=lambda index, backend: device)
    records.broken.add("push")

    with TestClient(create_app(settings, records=records, blobs=blobs, camera=camera)) as client:
        assert client.get("/api/capture/state").json()["cameraReady"] is True
        assert client.post("/api/capture/snapshot").status_code == 200

        r = client.post("/api/capture/submit", json={"identifier": "12GA3456"})
        assert r.status_code == 502
        assert r.json()["detail"] == "Upload failed. Please try again."
        assert client.get("/api/capture/state").json()["hasPreview"] is True

    names = list(blobs.objects)
    assert len(names) == 1
    assert names[0].startswith("images/photo-") and names[0].endswith(".png")
    assert records.writes == []
    assert device.released is True


def parse_frame(frame: str) -> tuple[str, dict]:
    event, data = frame.strip().split("\n")
    return event[len("event: "):], json.loads(data[len("data: "):])


def test_stream_sends_current_projection_and_releases_subscription(settings, blobs):
    records = MemoryRecordStore(
        {"data": {"a": {"vehicleNumber": "A", "timestamp": "2024-01-01T00:00:00Z"}}}
    )
    with TestClient(create_app(settings, records=records, blobs=blobs)) as client:
        wait_for_count(client, 1)
        watching = records.subscriber_count

        r = client.get("/api/admin/submissions/stream", params={"limit": 1})

        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/event-stream")
        event, body = parse_frame(r.text)
        assert event == "submissions"
        assert [item["identifier"] for item in body["submissions"]] == ["A"]
        assert records.subscriber_count == watching


class FakeRequest:
    def __init__(self):
        self.disconnected = False

    async def is_disconnected(self):
        return self.disconnected


@pytest.mark.asyncio
async def test_stream_sends_a_frame_per_change_until_disconnect():
    records = MemoryRecordStore()
    flow = ReviewFlow(records)
    request = FakeRequest()
    response = await stream_submissions(request, flow, limit=None)
    frames = response.body_iterator

    event, body = parse_frame(await asyncio.wait_for(frames.__anext__(), timeout=1))
    assert (event, body["count"]) == ("submissions", 0)

    await records.push("data", {"vehicleNumber": "B", "timestamp": "2024-01-02T00:00:00Z"})
    event, body = parse_frame(await asyncio.wait_for(frames.__anext__(), timeout=1))
    assert body["count"] == 1
    assert body["submissions"][0]["identifier"] == "B"
    assert records.subscriber_count == 1

    request.disconnected = True
    await records.push("data", {"vehicleNumber": "C"})
    with pytest.raises(StopAsyncIteration):
        await frames.__anext__()
    assert records.subscriber_count == 0


def test_overlay_opens_and_closes(settings, blobs):
    records = MemoryRecordStore(
        {"data": {"a": {"timestamp": "2024-01-01T00:00:00Z", "imageUrl": "https://img/a.png"}}}
    )
    with TestClient(create_app(settings, records=records, blobs=blobs)) as client:
        wait_for_count(client, 1)
        assert client.get("/api/admin/overlay").json() == {"imageUrl": None}

        client.get("/api/admin/submissions/a/image", follow_redirects=False)
        assert client.get("/api/admin/overlay").json() == {"imageUrl": "https://img/a.png"}

        assert client.delete("/api/admin/overlay").status_code == 204
        assert client.get("/api/admin/overlay").json() == {"imageUrl": None}
