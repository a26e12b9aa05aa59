"""
ROBOSTORE Playground Service Models

Pose-driven URDF robot control: landmark mappers, robot loading,
recording/playback and per-viewer sessions.
"""

from .errors import (
    PlaygroundError,
    RobotLoadError,
    UnsupportedMeshFile,
    InvalidUrdfFile,
    RobotNotLoaded,
    PoseBackendUnavailable,
    FrameDecodeError,
    UnsupportedFormat,
    RecordingNotActive,
    RecordingInProgress,
    NothingToPlay,
    InvalidTrajectory,
    UnsupportedCommand,
)

from .joint_mapper import (
    Landmark,
    HolisticFrame,
    PoseLandmark,
    JointStateTable,
    HeadMapper,
    ArmMapper,
    LegMapper,
    BodyMapper,
    map_range,
    calculate_angle,
)

from .robot_model import (
    MeshFileMap,
    RobotModel,
    RobotTransform,
    UrdfJoint,
    load_urdf,
    apply_orientation,
    apply_hexapod_command,
    HEXAPOD_COMMANDS,
)

from .pose_tracker import (
    PoseTracker,
    decode_frame,
)

from .recorder import (
    MediaCapture,
    RecordedMedia,
    RecordedFrame,
    JointRecorder,
    TrajectoryPlayer,
    frames_to_json,
    frames_from_json,
)

from .playground_session import (
    PlaygroundSession,
    PlaygroundSessionHandler,
    get_session_handler,
)

__all__ = [
    # Errors
    "PlaygroundError",
    "RobotLoadError",
    "UnsupportedMeshFile",
    "InvalidUrdfFile",
    "RobotNotLoaded",
    "PoseBackendUnavailable",
    "FrameDecodeError",
    "UnsupportedFormat",
    "RecordingNotActive",
    "RecordingInProgress",
    "NothingToPlay",
    "InvalidTrajectory",
    "UnsupportedCommand",
    # Joint mapping
    "Landmark",
    "HolisticFrame",
    "PoseLandmark",
    "JointStateTable",
    "HeadMapper",
    "ArmMapper",
    "LegMapper",
    "BodyMapper",
    "map_range",
    "calculate_angle",
    # Robot model
    "MeshFileMap",
    "RobotModel",
    "RobotTransform",
    "UrdfJoint",
    "load_urdf",
    "apply_orientation",
    "apply_hexapod_command",
    "HEXAPOD_COMMANDS",
    # Pose tracking
    "PoseTracker",
    "decode_frame",
    # Recording
    "MediaCapture",
    "RecordedMedia",
    "RecordedFrame",
    "JointRecorder",
    "TrajectoryPlayer",
    "frames_to_json",
    "frames_from_json",
    # Sessions
    "PlaygroundSession",
    "PlaygroundSessionHandler",
    "get_session_handler",
]
