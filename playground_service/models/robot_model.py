"""
ROBOSTORE Playground - URDF Robot Model

Loads a URDF description together with uploaded mesh files, computes the
rest-pose bounding box, picks a display scale/orientation per robot, and
applies joint-angle targets to the named joints.
"""

import io
import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import trimesh

from core.config import settings

from .errors import RobotLoadError, UnsupportedCommand, UnsupportedMeshFile

logger = logging.getLogger(__name__)

MESH_EXTENSIONS = {".dae", ".stl", ".obj", ".ply", ".fbx", ".gltf", ".glb"}
MOVABLE_JOINT_TYPES = {"revolute", "continuous", "prismatic"}
IGNORED_STATE_KEYS = {"timestamp", "cmd"}


# ═══════════════════════════════════════════════════════════════════════════════
# MESH FILE LOOKUP
# ═══════════════════════════════════════════════════════════════════════════════

def reference_basename(reference: str) -> str:
    """Last path component of a mesh reference (handles package:// and Windows paths)."""
    return reference.replace("\\", "/").rstrip("/").split("/")[-1]


def _is_angle(value: Any) -> bool:
    return not isinstance(value, bool) and isinstance(value, (int, float)) and not math.isnan(value)


def _stem(filename: str) -> str:
    return filename.split(".")[0]


class MeshFileMap:
    """
    Uploaded mesh files keyed by filename.

    URDF mesh references are resolved by basename so that files uploaded
    without their package directory structure still satisfy relative paths.
    Lookup order: exact name, case-insensitive name, then extension-less stem.
    """

    def __init__(self):
        self._files: Dict[str, bytes] = {}

    @staticmethod
    def is_supported(filename: str) -> bool:
        return PurePosixPath(filename.lower()).suffix in MESH_EXTENSIONS

    def add(self, filename: str, data: bytes):
        name = reference_basename(filename)
        if not self.is_supported(name):
            raise UnsupportedMeshFile(
                f"Unsupported mesh file '{name}'. Use one of: {', '.join(sorted(MESH_EXTENSIONS))}"
            )
        self._files[name] = data

    def resolve(self, reference: str) -> Optional[str]:
        """Name of the uploaded file satisfying a mesh reference, or None."""
        filename = reference_basename(reference)
        if filename in self._files:
            return filename

        lowered = filename.lower()
        for name in self._files:
            if name.lower() == lowered:
                return name

        stem = _stem(filename).lower()
        if stem:
            for name in self._files:
                if _stem(name).lower() == stem:
                    return name

        return None

    def get(self, name: str) -> bytes:
        return self._files[name]

    def names(self) -> List[str]:
        return list(self._files)

    def clear(self):
        self._files.clear()

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, name: str) -> bool:
        return name in self._files


# ═══════════════════════════════════════════════════════════════════════════════
# URDF STRUCTURE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class JointLimit:
    lower: float = 0.0
    upper: float = 0.0
    effort: float = 0.0
    velocity: float = 0.0


@dataclass
class UrdfJoint:
    name: str
    joint_type: str
    parent: str
    child: str
    origin_xyz: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    origin_rpy: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    axis: Tuple[float, float, float] = (1.0, 0.0, 0.0)
    limit: Optional[JointLimit] = None
    angle: float = 0.0

    @property
    def is_movable(self) -> bool:
        return self.joint_type in MOVABLE_JOINT_TYPES

    def set_joint_value(self, value: float) -> bool:
        """
        Move the joint, clamping revolute and prismatic joints to their limits.
        Returns True if the stored angle changed.
        """
        if not self.is_movable:
            return False

        if self.joint_type != "continuous" and self.limit is not None:
            value = max(self.limit.lower, min(value, self.limit.upper))

        if value == self.angle:
            return False
        self.angle = value
        return True


@dataclass
class UrdfVisual:
    link: str
    mesh_reference: str
    scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    origin_xyz: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    origin_rpy: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    resolved_name: Optional[str] = None


@dataclass
class RobotTransform:
    """Display transform of the whole model: Euler XYZ rotation, uniform scale, position."""
    rotation: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    scale: float = 1.0
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rotation": list(self.rotation),
            "scale": self.scale,
            "position": list(self.position),
        }


def _floats(text: Optional[str], default: Sequence[float]) -> Tuple[float, ...]:
    if not text:
        return tuple(default)
    return tuple(float(v) for v in text.split())


def _origin(element: Optional[ET.Element]) -> Tuple[Tuple[float, ...], Tuple[float, ...]]:
    if element is None:
        return (0.0, 0.0, 0.0), (0.0, 0.0, 0.0)
    return _floats(element.get("xyz"), (0, 0, 0)), _floats(element.get("rpy"), (0, 0, 0))


def _origin_matrix(xyz: Sequence[float], rpy: Sequence[float]) -> np.ndarray:
    matrix = trimesh.transformations.euler_matrix(rpy[0], rpy[1], rpy[2], axes="sxyz")
    matrix[:3, 3] = xyz
    return matrix


class RobotModel:
    """A parsed URDF with resolved meshes and mutable joint angles."""

    def __init__(
        self,
        name: str,
        links: List[str],
        joints: Dict[str, UrdfJoint],
        visuals: List[UrdfVisual],
    ):
        self.name = name
        self.links = links
        self.joints = joints
        self.visuals = visuals
        self.bounds: Optional[np.ndarray] = None
        self.transform = RobotTransform()

    def joint_names(self) -> List[str]:
        return list(self.joints)

    def movable_joint_names(self) -> List[str]:
        return [name for name, joint in self.joints.items() if joint.is_movable]

    def joint_angles(self) -> Dict[str, float]:
        return {name: joint.angle for name, joint in self.joints.items()}

    def apply_joint_states(self, states: Dict[str, Any], epsilon: Optional[float] = None) -> List[str]:
        """
        Move every named joint whose angle differs from its target by more
        than epsilon. Unknown joints and non-numeric targets are ignored.
        Returns the names of joints that actually moved.
        """
        epsilon = settings.JOINT_APPLY_EPSILON if epsilon is None else epsilon
        changed = []

        for joint_name, target in states.items():
            if joint_name in IGNORED_STATE_KEYS:
                continue
            joint = self.joints.get(joint_name)
            if joint is None:
                continue
            if not _is_angle(target):
                continue
            if abs(joint.angle - target) > epsilon and joint.set_joint_value(float(target)):
                changed.append(joint_name)

        return changed

    def set_joint_values(self, values: Dict[str, Any]) -> List[str]:
        """
        Direct joint control: targets are clamped to [-pi, pi] and then to the
        joint's own limits. Unknown joints and non-numeric values are ignored.
        """
        changed = []
        for joint_name, value in values.items():
            joint = self.joints.get(joint_name)
            if joint is None or not _is_angle(value):
                continue
            if joint.set_joint_value(max(-math.pi, min(float(value), math.pi))):
                changed.append(joint_name)
        return changed

    def nudge_joints(self, joint_names: Iterable[str], delta: float) -> List[str]:
        """Move each named joint by delta from its current angle."""
        changed = []
        for joint_name in joint_names:
            joint = self.joints.get(joint_name)
            if joint is not None and joint.set_joint_value(joint.angle + delta):
                changed.append(joint_name)
        return changed

    def translate(self, offset: Sequence[float]):
        self.transform.position = tuple(p + d for p, d in zip(self.transform.position, offset))

    def link_transforms(self) -> Dict[str, np.ndarray]:
        """World transform of every link at the rest pose (URDF origins only)."""
        children = {joint.child for joint in self.joints.values()}
        roots = [link for link in self.links if link not in children] or self.links[:1]
        by_parent: Dict[str, List[UrdfJoint]] = {}
        for joint in self.joints.values():
            by_parent.setdefault(joint.parent, []).append(joint)

        transforms: Dict[str, np.ndarray] = {}
        stack = [(root, np.eye(4)) for root in roots]
        while stack:
            link, matrix = stack.pop()
            if link in transforms:
                continue
            transforms[link] = matrix
            for joint in by_parent.get(link, []):
                stack.append((joint.child, matrix @ _origin_matrix(joint.origin_xyz, joint.origin_rpy)))
        return transforms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "links": len(self.links),
            "joints": self.joint_names(),
            "movable_joints": self.movable_joint_names(),
            "meshes": sorted({v.resolved_name for v in self.visuals if v.resolved_name}),
            "bounds": self.bounds.tolist() if self.bounds is not None else None,
            "transform": self.transform.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# LOADING
# ═══════════════════════════════════════════════════════════════════════════════

def parse_urdf(urdf_text: str) -> RobotModel:
    """Parse URDF XML into links, joints and mesh visuals."""
    try:
        root = ET.fromstring(urdf_text)
    except ET.ParseError as e:
        raise RobotLoadError(f"Invalid URDF XML: {e}") from e

    if root.tag != "robot":
        raise RobotLoadError(f"URDF root element must be <robot>, got <{root.tag}>")

    links: List[str] = []
    visuals: List[UrdfVisual] = []
    for link_el in root.findall("link"):
        link_name = link_el.get("name")
        if not link_name:
            raise RobotLoadError("URDF link without a name")
        links.append(link_name)

        for visual_el in link_el.findall("visual"):
            mesh_el = visual_el.find("geometry/mesh")
            if mesh_el is None or not mesh_el.get("filename"):
                continue
            xyz, rpy = _origin(visual_el.find("origin"))
            visuals.append(UrdfVisual(
                link=link_name,
                mesh_reference=mesh_el.get("filename"),
                scale=_floats(mesh_el.get("scale"), (1, 1, 1)),
                origin_xyz=xyz,
                origin_rpy=rpy,
            ))

    joints: Dict[str, UrdfJoint] = {}
    for joint_el in root.findall("joint"):
        name = joint_el.get("name")
        parent_el = joint_el.find("parent")
        child_el = joint_el.find("child")
        if not name or parent_el is None or child_el is None:
            raise RobotLoadError(f"Malformed joint '{name or '?'}' in URDF")

        limit = None
        limit_el = joint_el.find("limit")
        if limit_el is not None:
            limit = JointLimit(
                lower=float(limit_el.get("lower", 0.0)),
                upper=float(limit_el.get("upper", 0.0)),
                effort=float(limit_el.get("effort", 0.0)),
                velocity=float(limit_el.get("velocity", 0.0)),
            )

        axis_el = joint_el.find("axis")
        xyz, rpy = _origin(joint_el.find("origin"))
        joints[name] = UrdfJoint(
            name=name,
            joint_type=joint_el.get("type", "fixed"),
            parent=parent_el.get("link"),
            child=child_el.get("link"),
            origin_xyz=xyz,
            origin_rpy=rpy,
            axis=_floats(axis_el.get("xyz") if axis_el is not None else None, (1, 0, 0)),
            limit=limit,
        )

    return RobotModel(root.get("name", "robot"), links, joints, visuals)


def _mesh_bounds(data: bytes, filename: str) -> Optional[np.ndarray]:
    file_type = PurePosixPath(filename.lower()).suffix.lstrip(".")
    try:
        mesh = trimesh.load(io.BytesIO(data), file_type=file_type, force="mesh")
    except Exception as e:
        logger.debug(f"Skipping bounds for {filename}: {e}")
        return None
    if mesh is None or getattr(mesh, "bounds", None) is None:
        return None
    return np.asarray(mesh.bounds, dtype=float)


def _corners(bounds: np.ndarray) -> np.ndarray:
    lo, hi = bounds
    return np.array([[x, y, z] for x in (lo[0], hi[0]) for y in (lo[1], hi[1]) for z in (lo[2], hi[2])])


def _transform_bounds(bounds: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    points = trimesh.transformations.transform_points(_corners(bounds), matrix)
    return np.array([points.min(axis=0), points.max(axis=0)])


def compute_bounds(model: RobotModel, mesh_map: MeshFileMap) -> Optional[np.ndarray]:
    """Axis-aligned bounds of all readable visual meshes at the rest pose."""
    link_frames = model.link_transforms()
    boxes = []

    for visual in model.visuals:
        if visual.resolved_name is None:
            continue
        local = _mesh_bounds(mesh_map.get(visual.resolved_name), visual.resolved_name)
        if local is None:
            continue
        local = local * np.asarray(visual.scale, dtype=float)
        local = np.array([local.min(axis=0), local.max(axis=0)])
        matrix = link_frames.get(visual.link, np.eye(4)) @ _origin_matrix(visual.origin_xyz, visual.origin_rpy)
        boxes.append(_transform_bounds(local, matrix))

    if not boxes:
        return None
    stacked = np.vstack(boxes)
    return np.array([stacked.min(axis=0), stacked.max(axis=0)])


def load_urdf(urdf_text: str, mesh_map: MeshFileMap) -> RobotModel:
    """
    Parse a URDF and resolve every mesh reference against the uploaded files.

    Raises:
        RobotLoadError: bad XML, or mesh references with no matching upload.
    """
    model = parse_urdf(urdf_text)

    missing = []
    for visual in model.visuals:
        visual.resolved_name = mesh_map.resolve(visual.mesh_reference)
        if visual.resolved_name is None:
            missing.append(reference_basename(visual.mesh_reference))

    if missing:
        raise RobotLoadError(f"Missing mesh files: {', '.join(sorted(set(missing)))}")

    model.bounds = compute_bounds(model, mesh_map)
    logger.info(
        f"🦾 Loaded URDF '{model.name}': {len(model.links)} links, "
        f"{len(model.joints)} joints, {len(model.visuals)} meshes"
    )
    return model


# ═══════════════════════════════════════════════════════════════════════════════
# DISPLAY ORIENTATION
# ═══════════════════════════════════════════════════════════════════════════════

MILLIMETRE_ROBOTS = {"jaxon_jvrc"}
UNROTATED_ROBOTS = {"hexapod_robot", "trial"}


def apply_orientation(
    robot_id: str,
    bounds: Optional[np.ndarray],
    scale: float = 1.0,
    initial_position: Iterable[float] = (0.0, 0.0, 0.0),
) -> RobotTransform:
    """
    Hand-tuned display correction per robot id.

    Models authored in millimetres are scaled by 1/1000; known robots keep
    their authored orientation; anything else is turned so its longest
    axis points up (Y). The result is lifted to stand on the ground plane.
    """
    initial = tuple(float(v) for v in initial_position)
    rotation = (0.0, 0.0, 0.0)

    if robot_id in MILLIMETRE_ROBOTS:
        uniform = scale * 0.001
    elif robot_id in UNROTATED_ROBOTS:
        uniform = scale
    else:
        uniform = scale
        if bounds is not None:
            size = bounds[1] - bounds[0]
            max_size = float(size.max())
            if size[2] > size[1] and size[2] == max_size:
                rotation = (-math.pi / 2, 0.0, 0.0)
            elif size[0] > size[1] and size[0] == max_size:
                rotation = (0.0, 0.0, math.pi / 2)

    ground_offset = 0.0
    if bounds is not None:
        matrix = trimesh.transformations.euler_matrix(*rotation, axes="sxyz")
        matrix[:3, :3] *= uniform
        ground_offset = -float(_transform_bounds(bounds, matrix)[0][1])

    return RobotTransform(
        rotation=rotation,
        scale=uniform,
        position=(initial[0], initial[1] + ground_offset, initial[2]),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# HEXAPOD MOVEMENT COMMANDS
# ═══════════════════════════════════════════════════════════════════════════════

HEXAPOD_ROBOT = "hexapod_robot"
HEXAPOD_COMMANDS = ("forward", "backward", "left", "right", "up", "down", "jump")

RIGHT_COXA_JOINTS = ("coxa_joint_r1", "coxa_joint_r2", "coxa_joint_r3")
LEFT_COXA_JOINTS = ("coxa_joint_l1", "coxa_joint_l2", "coxa_joint_l3")
FEMUR_JOINTS = (
    "femur_joint_r1", "femur_joint_r2", "femur_joint_r3",
    "femur_joint_l1", "femur_joint_l2", "femur_joint_l3",
)

TURN_STEP = 0.1    # coxa rotation per turn command (rad)
LIFT_STEP = 0.1    # femur travel for a jump (rad)
MOVE_STEP = 0.5    # body translation per move command
JUMP_HOLD_MS = 300

_MOVES = {
    "forward": (0.0, 0.0, -MOVE_STEP),
    "backward": (0.0, 0.0, MOVE_STEP),
    "up": (0.0, MOVE_STEP, 0.0),
    "down": (0.0, -MOVE_STEP, 0.0),
}


def apply_hexapod_command(model: RobotModel, command: str) -> List[str]:
    """
    Apply one movement command to a hexapod.

    Moves translate the whole body; turns rotate the coxa joints of each
    side in opposite directions; jump crouches the femur joints (the caller
    restores them with land_hexapod after JUMP_HOLD_MS).
    Returns the joints that moved.
    """
    if command in _MOVES:
        model.translate(_MOVES[command])
        return []
    if command == "left":
        return model.nudge_joints(RIGHT_COXA_JOINTS, TURN_STEP) + model.nudge_joints(LEFT_COXA_JOINTS, -TURN_STEP)
    if command == "right":
        return model.nudge_joints(RIGHT_COXA_JOINTS, -TURN_STEP) + model.nudge_joints(LEFT_COXA_JOINTS, TURN_STEP)
    if command == "jump":
        return model.nudge_joints(FEMUR_JOINTS, -LIFT_STEP)
    raise UnsupportedCommand(f"Unknown command '{command}'. Use one of: {', '.join(HEXAPOD_COMMANDS)}")


def land_hexapod(model: RobotModel) -> List[str]:
    return model.nudge_joints(FEMUR_JOINTS, LIFT_STEP)
