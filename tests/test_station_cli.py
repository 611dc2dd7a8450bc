from __future__ import annotations

import argparse
import importlib.util
import threading
from pathlib import Path

import pytest

from checkpoint.capture import CaptureFlow

STATION_MAIN = Path(__file__).resolve().parents[1] / "camera-capture" / "main.py"


def load_station():
    spec = importlib.util.spec_from_file_location("checkpoint_station", STATION_MAIN)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.mark.asyncio
async def test_identifier_prompt_runs_off_the_event_loop(monkeypatch, tmp_path, records, blobs, clock, png_bytes):
    station = load_station()
    loop_thread = threading.get_ident()
    prompts = []

    def fake_input(prompt):
        prompts.append((prompt, threading.get_ident()))
        return "12GA3456"

    monkeypatch.setattr("builtins.input", fake_input)
    image = tmp_path / "car.png"
    image.write_bytes(png_bytes)
    args = argparse.Namespace(image=str(image), identifier=None, save_preview=None)
    flow = CaptureFlow(records, blobs, clock=clock)

    ok = await station.process_cycle(flow, args)

    assert ok is True
    assert prompts[0][0] == "Enter vehicleNumber: "
    assert prompts[0][1] != loop_thread
    stored = await records.get("data")
    assert [record["vehicleNumber"] for record in stored.values()] == ["12GA3456"]


def test_parser_reads_station_options():
    station = load_station()

    args = station.build_parser().parse_args(["--identifier", "AB-1", "--continuous"])

    assert args.identifier == "AB-1"
    assert args.continuous is True
    assert args.image is None
