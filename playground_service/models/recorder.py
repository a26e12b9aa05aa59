"""
ROBOSTORE Playground - Recorder / Player

Two independent recorders run side by side during a take:
- MediaCapture buffers encoded video chunks of the rendered scene and
  assembles them into one media object on stop.
- JointRecorder samples the joint-state table on a fixed timer.

TrajectoryPlayer replays the sampled frames on the same interval. Video and
joint playback are not frame-locked; they simply start close together.
"""

import asyncio
import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from core.config import settings
from shared.utils import now_ms

from .errors import (
    InvalidTrajectory,
    NothingToPlay,
    RecordingInProgress,
    RecordingNotActive,
    UnsupportedFormat,
)
from .joint_mapper import JointStateTable

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = ("video/webm; codecs=vp8", "video/webm")


def _normalize_mime(mime_type: str) -> str:
    return "; ".join(part.strip() for part in mime_type.lower().split(";") if part.strip())


# ═══════════════════════════════════════════════════════════════════════════════
# MEDIA CAPTURE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class RecordedMedia:
    data: bytes
    mime_type: str
    created_at: float = field(default_factory=now_ms)

    @property
    def size(self) -> int:
        return len(self.data)

    def to_dict(self) -> Dict[str, Any]:
        return {"size": self.size, "mime_type": self.mime_type, "created_at": self.created_at}


class MediaCapture:
    """Buffers encoded chunks of one recording."""

    def __init__(self):
        self._chunks: List[bytes] = []
        self.mime_type: Optional[str] = None
        self.active = False

    @staticmethod
    def choose_mime_type(requested: Optional[Iterable[str]] = None) -> str:
        """
        First supported type among the requested ones, in order.
        Without a request, the preferred supported type is used.
        """
        candidates = list(requested) if requested else list(SUPPORTED_MIME_TYPES)
        for candidate in candidates:
            normalized = _normalize_mime(candidate)
            if normalized in SUPPORTED_MIME_TYPES:
                return normalized
        raise UnsupportedFormat(
            f"No supported recording format in {candidates}. Supported: {list(SUPPORTED_MIME_TYPES)}"
        )

    def start(self, mime_type: Optional[Iterable[str]] = None) -> str:
        if self.active:
            raise RecordingInProgress("Media capture is already running")
        self.mime_type = self.choose_mime_type(mime_type)
        self._chunks = []
        self.active = True
        return self.mime_type

    def append_chunk(self, data: bytes) -> bool:
        """Buffer an encoded chunk. Empty chunks are ignored."""
        if not self.active:
            raise RecordingNotActive("Media capture is not running")
        if not data:
            return False
        self._chunks.append(bytes(data))
        return True

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    def stop(self) -> RecordedMedia:
        if not self.active:
            raise RecordingNotActive("Media capture is not running")
        media = RecordedMedia(data=b"".join(self._chunks), mime_type=self.mime_type)
        self._chunks = []
        self.active = False
        logger.info(f"🎞️ Media assembled: {media.size} bytes ({media.mime_type})")
        return media

    def reset(self):
        self._chunks = []
        self.mime_type = None
        self.active = False


# ═══════════════════════════════════════════════════════════════════════════════
# JOINT TRAJECTORY
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RecordedFrame:
    """A copy of the joint-state table at capture time."""
    joints: Dict[str, float]
    timestamp: float

    def to_dict(self) -> Dict[str, float]:
        return {**self.joints, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordedFrame":
        if not isinstance(data, dict):
            raise InvalidTrajectory(f"Frame must be an object, got {type(data).__name__}")
        joints = {}
        for name, value in data.items():
            if name == "timestamp":
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
                raise InvalidTrajectory(f"Joint '{name}' has a non-numeric value")
            joints[name] = float(value)
        return cls(joints=joints, timestamp=float(data.get("timestamp", 0.0)))


def frames_to_json(frames: List[RecordedFrame], interval_ms: Optional[float] = None) -> str:
    return json.dumps({
        "interval_ms": settings.RECORDING_INTERVAL_MS if interval_ms is None else interval_ms,
        "frames": [frame.to_dict() for frame in frames],
    })


def frames_from_json(text: str) -> List[RecordedFrame]:
    """Accepts either {"frames": [...]} or a bare list of frames."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidTrajectory(f"Trajectory is not valid JSON: {e}") from e

    raw = payload.get("frames") if isinstance(payload, dict) else payload
    if not isinstance(raw, list):
        raise InvalidTrajectory("Trajectory must contain a list of frames")
    return [RecordedFrame.from_dict(item) for item in raw]


class JointRecorder:
    """Samples a JointStateTable every interval while armed."""

    def __init__(self, table: JointStateTable, interval_ms: Optional[float] = None):
        self.table = table
        self.interval_ms = settings.RECORDING_INTERVAL_MS if interval_ms is None else interval_ms
        self.frames: List[RecordedFrame] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def is_recording(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> RecordedFrame:
        frame = RecordedFrame(joints=self.table.snapshot(), timestamp=now_ms())
        self.frames.append(frame)
        return frame

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval_ms / 1000)
            self.tick()

    def start(self):
        """Arm the timer with an empty frame list. Needs a running event loop."""
        if self.is_recording:
            raise RecordingInProgress("Joint recording is already running")
        self.frames = []
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> List[RecordedFrame]:
        if self._task is None:
            raise RecordingNotActive("Joint recording is not running")
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"⏺️ Joint recording stopped: {len(self.frames)} frames")
        return list(self.frames)

    def reset(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.frames = []


class TrajectoryPlayer:
    """
    Replays recorded frames into the joint table on a fixed interval.

    Each frame's joints are written to the table and handed to apply_fn
    (normally RobotModel.apply_joint_states). Playback ends after the last
    frame, or when len(frames) * interval + grace has elapsed.
    """

    def __init__(
        self,
        table: JointStateTable,
        apply_fn: Callable[[Dict[str, float]], Any],
        interval_ms: Optional[float] = None,
        grace_ms: Optional[float] = None,
        on_finished: Optional[Callable[[], Any]] = None,
    ):
        self.table = table
        self.apply_fn = apply_fn
        self.interval_ms = settings.RECORDING_INTERVAL_MS if interval_ms is None else interval_ms
        self.grace_ms = settings.PLAYBACK_GRACE_MS if grace_ms is None else grace_ms
        self.on_finished = on_finished
        self.position = 0
        self.total = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_playing(self) -> bool:
        return self._task is not None and not self._task.done()

    def budget_ms(self, frame_count: int) -> float:
        return frame_count * self.interval_ms + self.grace_ms

    async def _run(self, frames: List[RecordedFrame]):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.budget_ms(len(frames)) / 1000
        try:
            for frame in frames:
                await asyncio.sleep(self.interval_ms / 1000)
                if loop.time() > deadline:
                    logger.warning(f"Playback cut off at frame {self.position}/{self.total}")
                    break
                self.table.update(frame.joints)
                self.apply_fn(frame.joints)
                self.position += 1
        finally:
            # A cancelled or superseded run never reports completion
            if self.on_finished is not None and asyncio.current_task() is self._task:
                self.on_finished()

    def play(self, frames: List[RecordedFrame]):
        """Start replaying frames. Needs a running event loop."""
        if not frames:
            raise NothingToPlay("No joint recording to play")
        self.cancel()
        self.position = 0
        self.total = len(frames)
        self._task = asyncio.get_running_loop().create_task(self._run(list(frames)))

    async def wait(self):
        if self._task is not None:
            await self._task

    def cancel(self):
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def stop(self):
        task = self._task
        self.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def get_progress(self) -> Dict[str, Any]:
        return {"playing": self.is_playing, "position": self.position, "total": self.total}
