from __future__ import annotations

import asyncio

import pytest

from checkpoint.identifiers import EMAIL
from checkpoint.review import ReviewFlow, SIGNAL_FAILED, project_submissions
from checkpoint.schemas import NoticeKind
from checkpoint.stores import MemoryRecordStore


def test_projection_is_newest_first():
    snapshot = {
        "k1": {"vehicleNumber": "A", "timestamp": "2024-01-01T00:00:00Z", "imageUrl": "u1"},
        "k2": {"vehicleNumber": "B", "timestamp": "2024-01-03T00:00:00Z", "imageUrl": "u2"},
        "k3": {"vehicleNumber": "C", "timestamp": "2024-01-02T00:00:00Z", "imageUrl": "u3"},
    }

    items = project_submissions(snapshot)

    assert [item.identifier for item in items] == ["B", "C", "A"]
    assert [item.id for item in items] == ["k2", "k3", "k1"]


def test_projection_order_does_not_depend_on_insertion_order():
    stamps = ["2024-05-01T10:00:00.000Z", "2024-05-01T09:00:00.000Z", "2024-05-01T11:00:00.000Z"]
    forward = {f"k{i}": {"timestamp": ts} for i, ts in enumerate(stamps)}
    backward = dict(reversed(list(forward.items())))

    expected = ["k2", "k0", "k1"]
    assert [item.id for item in project_submissions(forward)] == expected
    assert [item.id for item in project_submissions(backward)] == expected


def test_missing_fields_use_placeholders():
    items = project_submissions({"k1": {"timestamp": "2024-01-01T00:00:00Z"}})

    assert items[0].identifier == "No Vehicle Number"
    assert items[0].image_url == ""
    assert items[0].has_image is False

    emails = project_submissions({"k1": {"timestamp": "2024-01-01T00:00:00Z"}}, EMAIL)
    assert emails[0].identifier == "No Email"


def test_empty_and_malformed_snapshots():
    assert project_submissions(None) == []
    items = project_submissions({"junk": "text", "k1": {"timestamp": "not a date"}})
    assert [item.id for item in items] == ["k1"]


@pytest.mark.asyncio
async def test_decide_writes_only_the_signal():
    records = MemoryRecordStore()
    flow = ReviewFlow(records)

    approved = await flow.decide(True)
    rejected = await flow.decide(False)

    assert approved.kind == NoticeKind.SUCCESS
    assert approved.message == "LED turned on"
    assert rejected.message == "LED turned off"
    assert records.writes == [
        ("update", "led", {"led": "on"}),
        ("update", "led", {"led": "off"}),
    ]
    assert await records.get("led") == {"led": "off"}
    assert await flow.relay.current() == "off"


@pytest.mark.asyncio
async def test_decide_failure_is_reported():
    records = MemoryRecordStore()
    records.broken.add("update")
    flow = ReviewFlow(records)

    notice = await flow.decide(True)

    assert notice.kind == NoticeKind.FAILURE
    assert notice.message == SIGNAL_FAILED


@pytest.mark.asyncio
async def test_projections_follow_store_changes():
    records = MemoryRecordStore(
        {"data": {"k1": {"vehicleNumber": "A", "timestamp": "2024-01-01T00:00:00Z"}}}
    )
    flow = ReviewFlow(records)
    stream = flow.projections()

    first = await stream.__anext__()
    assert [item.identifier for item in first] == ["A"]

    await records.push("data", {"vehicleNumber": "B", "timestamp": "2024-01-03T00:00:00Z"})
    second = await asyncio.wait_for(stream.__anext__(), timeout=1)
    assert [item.identifier for item in second] == ["B", "A"]

    # Writes elsewhere in the tree do not touch the submissions collection.
    await flow.decide(True)
    await records.push("data", {"vehicleNumber": "C", "timestamp": "2024-01-02T00:00:00Z"})
    third = await asyncio.wait_for(stream.__anext__(), timeout=1)
    assert [item.identifier for item in third] == ["B", "C", "A"]

    await stream.aclose()
    assert records.subscriber_count == 0


@pytest.mark.asyncio
async def test_run_stops_after_close():
    records = MemoryRecordStore()
    flow = ReviewFlow(records)
    task = asyncio.create_task(flow.run())

    await records.push("data", {"vehicleNumber": "A", "timestamp": "2024-01-01T00:00:00Z"})
    for _ in range(20):
        if flow.submissions:
            break
        await asyncio.sleep(0)
    assert [item.identifier for item in flow.submissions] == ["A"]

    flow.close()
    await records.push("data", {"vehicleNumber": "B", "timestamp": "2024-01-02T00:00:00Z"})
    await asyncio.wait_for(task, timeout=1)

    assert [item.identifier for item in flow.submissions] == ["A"]
    assert records.subscriber_count == 0


@pytest.mark.asyncio
async def test_overlay_selection():
    records = MemoryRecordStore(
        {
            "data": {
                "k1": {"timestamp": "2024-01-01T00:00:00Z", "imageUrl": "https://img/1.png"},
                "k2": {"timestamp": "2024-01-02T00:00:00Z"},
            }
        }
    )
    flow = ReviewFlow(records)
    stream = flow.projections()
    flow.submissions = await stream.__anext__()
    await stream.aclose()

    assert flow.select("k1") == "https://img/1.png"
    assert flow.overlay == "https://img/1.png"
    assert flow.select("k2") is None
    assert flow.select("missing") is None

    flow.close_overlay()
    assert flow.overlay is None


def test_numeric_and_nested_fields_are_tolerated():
    snapshot = {
        "k1": {"vehicleNumber": 1234, "timestamp": "2024-01-01T00:00:00Z"},
        "k2": {"vehicleNumber": "B", "timestamp": 1704153600000, "imageUrl": "u2"},
        "k3": {"vehicleNumber": {"nested": True}, "timestamp": True, "imageUrl": ["x"]},
    }

    items = project_submissions(snapshot)

    assert [item.id for item in items] == ["k2", "k1", "k3"]
    assert items[0].timestamp == "1704153600000"
    assert items[1].identifier == "1234"
    assert items[2].identifier == "No Vehicle Number"
    assert items[2].timestamp == ""
    assert items[2].image_url == ""


@pytest.mark.asyncio
async def test_run_survives_records_written_by_other_clients():
    records = MemoryRecordStore()
    flow = ReviewFlow(records)
    task = asyncio.create_task(flow.run())

    await records.push("data", {"vehicleNumber": 42})
    await records.push("data", {"vehicleNumber": "B", "timestamp": "2024-01-02T00:00:00Z"})
    for _ in range(20):
        if len(flow.submissions) == 2:
            break
        await asyncio.sleep(0)

    assert task.done() is False
    assert [item.identifier for item in flow.submissions] == ["B", "42"]

    flow.close()
    await records.push("data", {"vehicleNumber": "C"})
    await asyncio.wait_for(task, timeout=1)
