"""
ROBOSTORE Playground - Pose Tracker

MediaPipe Holistic on camera frames, with the same admission control the
browser tracker used: frames arriving within the throttle window, or while
a frame is still being processed, are dropped rather than queued.
"""

import logging
from typing import Any, List, Optional

import cv2
import numpy as np

from core.config import settings
from core.threading import run_ml_inference
from shared.utils import now_ms

from .errors import FrameDecodeError, PoseBackendUnavailable
from .joint_mapper import HolisticFrame, Landmark

logger = logging.getLogger(__name__)


def decode_frame(data: bytes) -> np.ndarray:
    """Decode a JPEG/PNG camera frame into an RGB image (H, W, 3)."""
    if not data:
        raise FrameDecodeError("Empty camera frame")

    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise FrameDecodeError("Camera frame is not a decodable image")

    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def _to_landmarks(result: Any) -> Optional[List[Optional[Landmark]]]:
    if result is None:
        return None
    return [
        Landmark(x=lm.x, y=lm.y, z=lm.z, visibility=getattr(lm, "visibility", 1.0))
        for lm in result.landmark
    ]


class PoseTracker:
    """
    Holistic pose + hand landmark detector for one camera stream.

    The MediaPipe graph is created on first use so that sessions that only
    receive landmark JSON never load the model.
    """

    def __init__(self, throttle_ms: Optional[float] = None):
        self.throttle_ms = settings.FRAME_THROTTLE_MS if throttle_ms is None else throttle_ms
        self._holistic = None
        self._last_accepted_ms: Optional[float] = None
        self._in_flight = False
        self.frames_processed = 0
        self.frames_dropped = 0

    def _ensure_backend(self):
        if self._holistic is not None:
            return self._holistic

        try:
            import mediapipe as mp
            self._holistic = mp.solutions.holistic.Holistic(
                static_image_mode=False,
                model_complexity=settings.POSE_MODEL_COMPLEXITY,
                smooth_landmarks=True,
                min_detection_confidence=settings.POSE_MIN_DETECTION_CONFIDENCE,
                min_tracking_confidence=settings.POSE_MIN_TRACKING_CONFIDENCE,
            )
        except (ImportError, AttributeError) as e:
            raise PoseBackendUnavailable(f"Pose tracking is unavailable: {e}") from e

        logger.info("✅ MediaPipe holistic tracker initialized")
        return self._holistic

    def should_accept(self, timestamp_ms: float) -> bool:
        """Admission check for a frame arriving at timestamp_ms."""
        if self._in_flight:
            return False
        if self._last_accepted_ms is not None and timestamp_ms - self._last_accepted_ms < self.throttle_ms:
            return False
        return True

    def infer(self, rgb: np.ndarray, timestamp_ms: float) -> HolisticFrame:
        """Run the holistic graph on one RGB frame. Blocking; called on the ML pool."""
        holistic = self._ensure_backend()
        results = holistic.process(rgb)
        return HolisticFrame(
            pose=_to_landmarks(results.pose_landmarks),
            left_hand=_to_landmarks(results.left_hand_landmarks),
            right_hand=_to_landmarks(results.right_hand_landmarks),
            timestamp=timestamp_ms,
        )

    async def process_frame(self, rgb: np.ndarray, timestamp_ms: Optional[float] = None) -> Optional[HolisticFrame]:
        """
        Detect landmarks on a frame, or return None if the frame is dropped.

        Args:
            rgb: RGB image as numpy array (H, W, 3)
            timestamp_ms: Arrival time in milliseconds (defaults to now)
        """
        timestamp_ms = now_ms() if timestamp_ms is None else timestamp_ms
        if not self.should_accept(timestamp_ms):
            self.drop()
            return None

        self._in_flight = True
        self._last_accepted_ms = timestamp_ms
        try:
            frame = await run_ml_inference(self.infer, rgb, timestamp_ms)
        finally:
            self._in_flight = False

        self.frames_processed += 1
        return frame

    def drop(self):
        """Count a frame refused before it reached the tracker."""
        self.frames_dropped += 1

    def get_stats(self) -> dict:
        return {
            "frames_processed": self.frames_processed,
            "frames_dropped": self.frames_dropped,
            "backend_loaded": self._holistic is not None,
        }

    def close(self):
        """Release the MediaPipe graph."""
        if self._holistic is not None and hasattr(self._holistic, "close"):
            self._holistic.close()
        self._holistic = None
        self._last_accepted_ms = None
        self._in_flight = False
