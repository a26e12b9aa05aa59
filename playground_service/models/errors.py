"""
ROBOSTORE Playground - Errors

Resource failures inside the pipeline. They are caught at the session
boundary and shown to the user as the session status; nothing is retried.
"""


class PlaygroundError(Exception):
    """Base class for errors surfaced to the user as a status message."""

    status_code = 400


class RobotLoadError(PlaygroundError):
    """The URDF could not be parsed or its meshes could not be found."""


class UnsupportedMeshFile(PlaygroundError):
    """An uploaded mesh has an extension the viewer cannot load."""


class InvalidUrdfFile(PlaygroundError):
    """The uploaded robot description is not a .urdf file."""


class RobotNotLoaded(PlaygroundError):
    """An operation needs a loaded robot model."""

    status_code = 409


class PoseBackendUnavailable(PlaygroundError):
    """The holistic pose detector could not be started."""


class FrameDecodeError(PlaygroundError):
    """A camera frame could not be decoded as an image."""


class UnsupportedFormat(PlaygroundError):
    """None of the requested recording formats is supported."""


class RecordingNotActive(PlaygroundError):
    """Stop or append was called without an active recording."""

    status_code = 409


class RecordingInProgress(PlaygroundError):
    """A recording is already running."""

    status_code = 409


class NothingToPlay(PlaygroundError):
    """Playback was requested before anything was recorded."""

    status_code = 409


class InvalidTrajectory(PlaygroundError):
    """An imported trajectory is not a list of joint frames."""


class UnsupportedCommand(PlaygroundError):
    """A movement command the loaded robot does not understand."""
