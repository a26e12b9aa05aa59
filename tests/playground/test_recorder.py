"""
Media capture, joint trajectory recording and playback.
"""

import asyncio
import json

import pytest

from playground_service.models import (
    JointRecorder,
    JointStateTable,
    MediaCapture,
    RecordedFrame,
    TrajectoryPlayer,
    frames_from_json,
    frames_to_json,
)
from playground_service.models.errors import (
    InvalidTrajectory,
    NothingToPlay,
    RecordingInProgress,
    RecordingNotActive,
    UnsupportedFormat,
)


# ============= Media capture =============

def test_media_capture_prefers_vp8():
    capture = MediaCapture()
    assert capture.start() == "video/webm; codecs=vp8"


def test_media_capture_falls_back_to_plain_webm():
    capture = MediaCapture()
    assert capture.start(["video/mp4", "video/webm"]) == "video/webm"


def test_media_capture_rejects_unsupported_formats():
    with pytest.raises(UnsupportedFormat):
        MediaCapture().start(["video/mp4"])


def test_media_capture_assembles_chunks_and_skips_empty_ones():
    capture = MediaCapture()
    capture.start()

    assert capture.append_chunk(b"abc") is True
    assert capture.append_chunk(b"") is False
    assert capture.append_chunk(b"def") is True

    media = capture.stop()
    assert media.data == b"abcdef"
    assert media.mime_type == "video/webm; codecs=vp8"
    assert not capture.active


def test_media_capture_requires_start():
    capture = MediaCapture()
    with pytest.raises(RecordingNotActive):
        capture.append_chunk(b"x")
    with pytest.raises(RecordingNotActive):
        capture.stop()


# ============= Joint recording =============

def test_manual_ticks_produce_one_frame_each():
    async def scenario():
        table = JointStateTable({"HEAD_JOINT0": 0.0})
        recorder = JointRecorder(table, interval_ms=60_000)
        recorder.start()
        for i in range(5):
            table.update({"HEAD_JOINT0": i * 0.1})
            recorder.tick()
        return await recorder.stop()

    frames = asyncio.run(scenario())
    assert len(frames) == 5
    assert [f.joints["HEAD_JOINT0"] for f in frames] == pytest.approx([0.0, 0.1, 0.2, 0.3, 0.4])


def test_timer_ticks_are_recorded():
    async def scenario():
        table = JointStateTable({"HEAD_JOINT0": 0.25})
        recorder = JointRecorder(table, interval_ms=10)
        recorder.start()
        while len(recorder.frames) < 5:
            await asyncio.sleep(0.001)
        return await recorder.stop()

    frames = asyncio.run(scenario())
    assert len(frames) in (5, 6)
    assert all(f.joints == {"HEAD_JOINT0": 0.25} for f in frames)


def test_frames_are_snapshots():
    async def scenario():
        table = JointStateTable({"A": 1.0})
        recorder = JointRecorder(table, interval_ms=60_000)
        recorder.start()
        recorder.tick()
        table.update({"A": 2.0})
        return await recorder.stop()

    frames = asyncio.run(scenario())
    assert frames[0].joints == {"A": 1.0}


def test_recorder_cannot_start_twice():
    async def scenario():
        recorder = JointRecorder(JointStateTable(), interval_ms=60_000)
        recorder.start()
        try:
            with pytest.raises(RecordingInProgress):
                recorder.start()
        finally:
            await recorder.stop()

    asyncio.run(scenario())


def test_stop_without_start():
    with pytest.raises(RecordingNotActive):
        asyncio.run(JointRecorder(JointStateTable()).stop())


# ============= Playback =============

def test_player_replays_every_frame_in_order():
    frames = [RecordedFrame({"A": float(i), "B": -float(i)}, timestamp=i) for i in range(4)]
    applied = []
    finished = []

    async def scenario():
        table = JointStateTable({"A": 0.0, "B": 0.0})
        player = TrajectoryPlayer(
            table,
            applied.append,
            interval_ms=1,
            grace_ms=1000,
            on_finished=lambda: finished.append(True),
        )
        player.play(frames)
        await player.wait()
        return table, player

    table, player = asyncio.run(scenario())
    assert [states["A"] for states in applied] == [0.0, 1.0, 2.0, 3.0]
    assert "timestamp" not in applied[0]
    assert table.snapshot() == {"A": 3.0, "B": -3.0}
    assert player.position == 4
    assert not player.is_playing
    assert finished == [True]


def test_player_stop_interrupts_playback():
    frames = [RecordedFrame({"A": float(i)}, timestamp=i) for i in range(100)]
    applied = []

    async def scenario():
        player = TrajectoryPlayer(JointStateTable(), applied.append, interval_ms=5)
        player.play(frames)
        await asyncio.sleep(0.02)
        await player.stop()
        return player

    player = asyncio.run(scenario())
    assert not player.is_playing
    assert len(applied) < 100


def test_replaced_playback_reports_completion_once():
    frames = [RecordedFrame({"A": float(i)}, timestamp=i) for i in range(3)]
    finished = []

    async def scenario():
        player = TrajectoryPlayer(
            JointStateTable(),
            lambda states: None,
            interval_ms=5,
            on_finished=lambda: finished.append(player.position),
        )
        player.play(frames * 20)
        await asyncio.sleep(0.02)
        player.play(frames)
        await player.wait()
        await asyncio.sleep(0.01)
        return player

    player = asyncio.run(scenario())
    assert finished == [3]
    assert player.total == 3


def test_player_needs_frames():
    with pytest.raises(NothingToPlay):
        TrajectoryPlayer(JointStateTable(), lambda states: None).play([])


def test_playback_budget_includes_grace():
    player = TrajectoryPlayer(JointStateTable(), lambda states: None, interval_ms=33, grace_ms=1000)
    assert player.budget_ms(30) == 30 * 33 + 1000


# ============= JSON export =============

def test_export_uses_flat_frame_objects():
    payload = json.loads(frames_to_json([RecordedFrame({"A": 0.5}, timestamp=10.0)], interval_ms=33))
    assert payload == {"interval_ms": 33, "frames": [{"A": 0.5, "timestamp": 10.0}]}


def test_import_accepts_bare_list():
    frames = frames_from_json('[{"A": 1, "timestamp": 5}]')
    assert frames == [RecordedFrame({"A": 1.0}, timestamp=5.0)]


@pytest.mark.parametrize("text", ["not json", '{"frames": 3}', '[{"A": "left"}]', "[1, 2]"])
def test_import_rejects_malformed_trajectories(text):
    with pytest.raises(InvalidTrajectory):
        frames_from_json(text)
