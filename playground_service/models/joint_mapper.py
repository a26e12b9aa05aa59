"""
ROBOSTORE Playground - Limb-to-Joint Mappers

Turns holistic body/hand landmarks into robot joint-angle targets.
Each limb linearly rescales a landmark coordinate, or a three-point angle,
into a fixed joint range and only reports a change when one of its
outputs moved by more than the update threshold.
"""

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from core.config import settings


# ═══════════════════════════════════════════════════════════════════════════════
# LANDMARKS
# ═══════════════════════════════════════════════════════════════════════════════

class PoseLandmark(IntEnum):
    """MediaPipe pose landmark indices used by the mappers."""
    NOSE = 0
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


HAND_WRIST = 0


@dataclass
class Landmark:
    """A normalized landmark; x and y are in [0, 1] when in frame."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Landmark"]:
        if not data:
            return None
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            z=float(data.get("z", 0.0)),
            visibility=float(data.get("visibility", 1.0)),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z, "visibility": self.visibility}


LandmarkList = List[Optional[Landmark]]


def _landmark_list(raw: Optional[Iterable[Any]]) -> Optional[LandmarkList]:
    if raw is None:
        return None
    return [lm if isinstance(lm, Landmark) else Landmark.from_dict(lm) for lm in raw]


def _point(landmarks: Optional[Sequence[Optional[Landmark]]], index: int) -> Optional[Landmark]:
    if not landmarks or index >= len(landmarks):
        return None
    return landmarks[index]


@dataclass
class HolisticFrame:
    """Landmarks of one camera frame. Any part may be absent."""
    pose: Optional[LandmarkList] = None
    left_hand: Optional[LandmarkList] = None
    right_hand: Optional[LandmarkList] = None
    timestamp: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HolisticFrame":
        """Accepts snake_case keys or the tracker's camelCase result keys."""
        if not isinstance(data, dict):
            raise TypeError(f"Landmark frame must be an object, got {type(data).__name__}")
        return cls(
            pose=_landmark_list(data.get("pose", data.get("poseLandmarks"))),
            left_hand=_landmark_list(data.get("left_hand", data.get("leftHandLandmarks"))),
            right_hand=_landmark_list(data.get("right_hand", data.get("rightHandLandmarks"))),
            timestamp=float(data.get("timestamp", 0.0)),
        )

    @property
    def has_pose(self) -> bool:
        return bool(self.pose)

    def pose_point(self, index: int) -> Optional[Landmark]:
        return _point(self.pose, index)


# ═══════════════════════════════════════════════════════════════════════════════
# MATH
# ═══════════════════════════════════════════════════════════════════════════════

def map_range(value: float, in_min: float, in_max: float, out_min: float, out_max: float) -> float:
    """Clamp value into [in_min, in_max] and rescale linearly onto [out_min, out_max]."""
    clamped = max(in_min, min(value, in_max))
    return (clamped - in_min) * (out_max - out_min) / (in_max - in_min) + out_min


def calculate_angle(a: Optional[Landmark], b: Optional[Landmark], c: Optional[Landmark]) -> float:
    """
    Angle at b formed by a-b-c in the image plane, in radians [0, pi].
    Returns 0 when any point is missing.
    """
    if a is None or b is None or c is None:
        return 0.0
    rad = math.atan2(c.y - b.y, c.x - b.x) - math.atan2(a.y - b.y, a.x - b.x)
    angle = abs(rad)
    if angle > math.pi:
        angle = 2 * math.pi - angle
    return angle


@dataclass(frozen=True)
class JointMapping:
    """Linear rescale of one input quantity onto one joint."""
    joint: str
    in_min: float
    in_max: float
    out_min: float
    out_max: float
    sign: float = 1.0

    def raw(self, value: float) -> float:
        return map_range(value, self.in_min, self.in_max, self.out_min, self.out_max)

    @property
    def limits(self) -> Tuple[float, float]:
        """Range of the value written to the joint (after sign)."""
        lo, hi = sorted((self.sign * self.out_min, self.sign * self.out_max))
        return lo, hi


# ═══════════════════════════════════════════════════════════════════════════════
# JOINT STATE TABLE
# ═══════════════════════════════════════════════════════════════════════════════

class JointStateTable:
    """
    Joint name -> target angle (radians).

    Written by the body mapper or the trajectory player once per tick;
    read by the model applier and the recorder.
    """

    def __init__(self, initial: Optional[Dict[str, float]] = None):
        self._angles: Dict[str, float] = dict(initial or {})

    def update(self, partial: Dict[str, float]):
        self._angles.update(partial)

    def get(self, joint: str, default: Optional[float] = None) -> Optional[float]:
        return self._angles.get(joint, default)

    def snapshot(self) -> Dict[str, float]:
        return dict(self._angles)

    def reset(self, joint_names: Iterable[str] = ()):
        """Replace the table with the given joints, all at 0."""
        self._angles = {name: 0.0 for name in joint_names}

    def clear(self):
        self._angles = {}

    def __len__(self) -> int:
        return len(self._angles)

    def __contains__(self, joint: str) -> bool:
        return joint in self._angles


# ═══════════════════════════════════════════════════════════════════════════════
# LIMB MAPPERS
# ═══════════════════════════════════════════════════════════════════════════════

class LimbMapper:
    """
    Base class: remembers the last emitted outputs per limb and gates
    updates on the threshold.
    """

    def __init__(self, threshold: Optional[float] = None):
        self.threshold = settings.JOINT_UPDATE_THRESHOLD if threshold is None else threshold
        self._last: Dict[str, Dict[str, float]] = {}

    def _changed(self, limb: str, values: Dict[str, float]) -> bool:
        previous = self._last.get(limb)
        if previous is None:
            return True
        return any(abs(previous[key] - value) > self.threshold for key, value in values.items())

    def _gate(self, limb: str, values: Dict[str, float]) -> bool:
        """Record values and return True if the limb moved enough to report."""
        if not self._changed(limb, values):
            return False
        self._last[limb] = dict(values)
        return True

    def map(self, frame: HolisticFrame) -> Dict[str, float]:
        raise NotImplementedError

    def joint_limits(self) -> Dict[str, Tuple[float, float]]:
        raise NotImplementedError

    def reset(self):
        self._last.clear()


class HeadMapper(LimbMapper):
    """Nose position drives head yaw and pitch."""

    YAW = JointMapping("HEAD_JOINT0", 0.0, 1.0, math.pi / 4, -math.pi / 4)
    PITCH = JointMapping("HEAD_JOINT1", 0.0, 1.0, -math.pi / 4, math.pi / 4)

    def map(self, frame: HolisticFrame) -> Dict[str, float]:
        nose = frame.pose_point(PoseLandmark.NOSE)
        if nose is None:
            return {}

        values = {"yaw": self.YAW.raw(nose.x), "pitch": self.PITCH.raw(nose.y)}
        if not self._gate("head", values):
            return {}

        return {self.YAW.joint: values["yaw"], self.PITCH.joint: values["pitch"]}

    def joint_limits(self) -> Dict[str, Tuple[float, float]]:
        return {m.joint: m.limits for m in (self.YAW, self.PITCH)}


class ArmMapper(LimbMapper):
    """
    Wrist position drives shoulder roll/pitch; the shoulder-elbow-wrist
    angle drives the elbow. The wrist comes from the hand landmarks.
    """

    SIDES = {
        "left": ("LARM", PoseLandmark.LEFT_SHOULDER, PoseLandmark.LEFT_ELBOW, "left_hand"),
        "right": ("RARM", PoseLandmark.RIGHT_SHOULDER, PoseLandmark.RIGHT_ELBOW, "right_hand"),
    }

    @staticmethod
    def mappings(prefix: str) -> Dict[str, JointMapping]:
        return {
            "shoulder_roll": JointMapping(f"{prefix}_JOINT0", 0.0, 1.0, math.pi / 4, -math.pi / 4, sign=-1.0),
            "shoulder_pitch": JointMapping(f"{prefix}_JOINT1", 0.0, 0.75, math.pi, -math.pi / 6, sign=-1.0),
            "elbow": JointMapping(f"{prefix}_JOINT4", 0.1, math.pi - 0.1, math.pi / 2, 0.0, sign=-1.0),
        }

    def map(self, frame: HolisticFrame) -> Dict[str, float]:
        updates: Dict[str, float] = {}

        for side, (prefix, shoulder_idx, elbow_idx, hand_attr) in self.SIDES.items():
            wrist = _point(getattr(frame, hand_attr), HAND_WRIST)
            shoulder = frame.pose_point(shoulder_idx)
            elbow = frame.pose_point(elbow_idx)
            if wrist is None or shoulder is None or elbow is None:
                continue

            mappings = self.mappings(prefix)
            values = {
                "shoulder_roll": mappings["shoulder_roll"].raw(wrist.x),
                "shoulder_pitch": mappings["shoulder_pitch"].raw(wrist.y),
                "elbow": mappings["elbow"].raw(calculate_angle(shoulder, elbow, wrist)),
            }
            if not self._gate(side, values):
                continue

            for key, mapping in mappings.items():
                updates[mapping.joint] = mapping.sign * values[key]

        return updates

    def joint_limits(self) -> Dict[str, Tuple[float, float]]:
        return {
            m.joint: m.limits
            for prefix, *_ in self.SIDES.values()
            for m in self.mappings(prefix).values()
        }


class LegMapper(LimbMapper):
    """
    Hip, knee and ankle three-point angles drive the leg pitch joints.
    Yaw/roll joints (0, 2, 5) are held at zero.
    """

    SIDES = {
        "left": ("LLEG", PoseLandmark.LEFT_SHOULDER, PoseLandmark.LEFT_HIP, PoseLandmark.LEFT_KNEE,
                 PoseLandmark.LEFT_ANKLE, PoseLandmark.LEFT_FOOT_INDEX),
        "right": ("RLEG", PoseLandmark.RIGHT_SHOULDER, PoseLandmark.RIGHT_HIP, PoseLandmark.RIGHT_KNEE,
                  PoseLandmark.RIGHT_ANKLE, PoseLandmark.RIGHT_FOOT_INDEX),
    }
    HELD_JOINTS = (0, 2, 5)

    @staticmethod
    def mappings(prefix: str) -> Dict[str, JointMapping]:
        return {
            "hip": JointMapping(f"{prefix}_JOINT1", 0.0, math.pi, -math.pi / 3, math.pi / 3),
            "knee": JointMapping(f"{prefix}_JOINT3", 0.0, math.pi, 0.0, math.pi / 2),
            "ankle": JointMapping(f"{prefix}_JOINT4", 0.0, math.pi, -math.pi / 6, math.pi / 6),
        }

    def map(self, frame: HolisticFrame) -> Dict[str, float]:
        updates: Dict[str, float] = {}

        for side, (prefix, shoulder_idx, hip_idx, knee_idx, ankle_idx, foot_idx) in self.SIDES.items():
            hip = frame.pose_point(hip_idx)
            knee = frame.pose_point(knee_idx)
            ankle = frame.pose_point(ankle_idx)
            if hip is None or knee is None or ankle is None:
                continue

            mappings = self.mappings(prefix)
            values = {
                "hip": mappings["hip"].raw(calculate_angle(knee, hip, frame.pose_point(shoulder_idx))),
                "knee": mappings["knee"].raw(calculate_angle(hip, knee, ankle)),
                "ankle": mappings["ankle"].raw(calculate_angle(knee, ankle, frame.pose_point(foot_idx))),
            }
            if not self._gate(side, values):
                continue

            for index in self.HELD_JOINTS:
                updates[f"{prefix}_JOINT{index}"] = 0.0
            for key, mapping in mappings.items():
                updates[mapping.joint] = values[key]

        return updates

    def joint_limits(self) -> Dict[str, Tuple[float, float]]:
        limits: Dict[str, Tuple[float, float]] = {}
        for prefix, *_ in self.SIDES.values():
            for index in self.HELD_JOINTS:
                limits[f"{prefix}_JOINT{index}"] = (0.0, 0.0)
            limits.update({m.joint: m.limits for m in self.mappings(prefix).values()})
        return limits


class BodyMapper:
    """
    Runs the head, arm and leg mappers in that order for every frame and
    merges their partial updates into the joint state table. If two
    mappers ever target the same joint, the later one wins.
    """

    def __init__(self, threshold: Optional[float] = None):
        self.mappers: List[LimbMapper] = [
            HeadMapper(threshold),
            ArmMapper(threshold),
            LegMapper(threshold),
        ]

    def map(self, frame: HolisticFrame) -> Dict[str, float]:
        merged: Dict[str, float] = {}
        for mapper in self.mappers:
            merged.update(mapper.map(frame))
        return merged

    def update(self, frame: HolisticFrame, table: JointStateTable) -> Dict[str, float]:
        """Map a frame and write the result into the table. Returns the partial update."""
        partial = self.map(frame)
        if partial:
            table.update(partial)
        return partial

    def joint_limits(self) -> Dict[str, Tuple[float, float]]:
        limits: Dict[str, Tuple[float, float]] = {}
        for mapper in self.mappers:
            limits.update(mapper.joint_limits())
        return limits

    def reset(self):
        for mapper in self.mappers:
            mapper.reset()
