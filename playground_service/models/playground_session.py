"""
ROBOSTORE Playground - Session Management

One playground session per open viewer: uploaded URDF and meshes, the
loaded robot, the joint-state table fed by the body mapper, and the
current recording. Errors raised by the pipeline are turned into the
session status before they reach the caller.
"""

import asyncio
import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import (
    InvalidUrdfFile,
    PlaygroundError,
    RecordingInProgress,
    RecordingNotActive,
    RobotLoadError,
    RobotNotLoaded,
    UnsupportedCommand,
    UnsupportedMeshFile,
)
from .joint_mapper import BodyMapper, HolisticFrame, JointStateTable
from .pose_tracker import PoseTracker, decode_frame
from .recorder import (
    JointRecorder,
    MediaCapture,
    RecordedFrame,
    RecordedMedia,
    TrajectoryPlayer,
    frames_from_json,
    frames_to_json,
)
from .robot_model import (
    HEXAPOD_ROBOT,
    JUMP_HOLD_MS,
    MeshFileMap,
    RobotModel,
    apply_hexapod_command,
    apply_orientation,
    land_hexapod,
    load_urdf,
)

logger = logging.getLogger(__name__)

INITIAL_STATUS = "Upload a URDF file and its mesh files to begin."


class PlaygroundSession:
    """State of one robot playground."""

    def __init__(self, session_id: str, user_id: Optional[str] = None):
        self.session_id = session_id
        self.user_id = user_id
        self.created_at = datetime.now()

        self.urdf_filename: Optional[str] = None
        self.urdf_text: Optional[str] = None
        self.mesh_map = MeshFileMap()
        self.model: Optional[RobotModel] = None
        self.robot_id: Optional[str] = None
        self.scale = 1.0

        self.joint_table = JointStateTable()
        self.mapper = BodyMapper()
        self.tracker = PoseTracker()

        self.media_capture = MediaCapture()
        self.recorder = JointRecorder(self.joint_table)
        self.recorded_frames: List[RecordedFrame] = []
        self.recorded_media: Optional[RecordedMedia] = None
        self.player = TrajectoryPlayer(
            self.joint_table,
            self._apply_to_model,
            on_finished=self._on_playback_finished,
        )

        self.status = INITIAL_STATUS

    @contextmanager
    def _boundary(self):
        try:
            yield
        except PlaygroundError as e:
            self.status = f"Error: {e}"
            logger.warning(f"Session {self.session_id}: {e}")
            raise

    # ============= Files =============

    def set_urdf(self, filename: str, content: str):
        with self._boundary():
            if not filename or not filename.lower().endswith(".urdf"):
                raise InvalidUrdfFile("Please select a valid URDF file (.urdf extension).")
            self.urdf_filename = filename
            self.urdf_text = content
            self.status = f"URDF file selected: {filename}"

    def add_meshes(self, files: Iterable[Tuple[str, bytes]]) -> List[str]:
        """
        Store uploaded mesh files. Unsupported files are skipped; the upload
        fails only when none of the files is a mesh.
        """
        with self._boundary():
            accepted, skipped = [], []
            for filename, data in files:
                if MeshFileMap.is_supported(filename):
                    self.mesh_map.add(filename, data)
                    accepted.append(filename)
                else:
                    skipped.append(filename)

            if not accepted:
                raise UnsupportedMeshFile(
                    "No valid mesh files found. Please select .dae, .stl, .obj, .ply, .fbx, .gltf, or .glb files."
                )
            if skipped:
                logger.info(f"Session {self.session_id}: skipped non-mesh files {skipped}")

            self.status = f"{len(self.mesh_map)} mesh files loaded successfully."
            return accepted

    def load_robot(
        self,
        robot_id: Optional[str] = None,
        scale: float = 1.0,
        initial_position: Sequence[float] = (0.0, 0.0, 0.0),
    ) -> RobotModel:
        """Build the robot from the uploaded files and zero every joint."""
        with self._boundary():
            if self.urdf_text is None:
                raise RobotLoadError("No URDF file uploaded")

            model = load_urdf(self.urdf_text, self.mesh_map)
            self.robot_id = robot_id or model.name
            self.scale = scale
            model.transform = apply_orientation(self.robot_id, model.bounds, scale, initial_position)

            self.model = model
            self.joint_table.reset(model.joint_names())
            self.mapper.reset()
            self.status = f"Robot '{model.name}' loaded with {len(model.joints)} joints."
            return model

    # ============= Tracking =============

    def _apply_to_model(self, states: Dict[str, float]) -> List[str]:
        if self.model is None:
            return []
        return self.model.apply_joint_states(states)

    def apply_landmarks(self, frame: HolisticFrame) -> Dict[str, float]:
        """Map one frame of landmarks onto the joint table and the robot."""
        if self.model is None:
            return {}
        partial = self.mapper.update(frame, self.joint_table)
        if partial:
            self._apply_to_model(partial)
        return partial

    async def process_camera_frame(self, data: bytes) -> Optional[Dict[str, float]]:
        """Run pose tracking on an encoded frame; None when the frame was dropped."""
        with self._boundary():
            rgb = decode_frame(data)
            frame = await self.tracker.process_frame(rgb)
            if frame is None:
                return None
            return self.apply_landmarks(frame)

    # ============= Manual Control =============

    def _sync_table(self, joint_names: Iterable[str]):
        self.joint_table.update({name: self.model.joints[name].angle for name in joint_names})

    def set_joint_values(self, values: Dict[str, Any]) -> List[str]:
        """Slider control: set joints directly, bypassing the mappers."""
        with self._boundary():
            if self.model is None:
                raise RobotNotLoaded("Load a robot before moving its joints")
            changed = self.model.set_joint_values(values)
            self._sync_table(changed)
            return changed

    async def send_command(self, command: str) -> List[str]:
        """Movement command; only the hexapod understands them. A jump holds the crouch before landing."""
        with self._boundary():
            if self.model is None:
                raise RobotNotLoaded("Load a robot before sending commands")
            if self.robot_id != HEXAPOD_ROBOT:
                raise UnsupportedCommand(
                    f"Command '{command}' ignored for {self.robot_id}. Only the hexapod robot supports movement."
                )

            moved = apply_hexapod_command(self.model, command)
            self._sync_table(moved)
            if command == "jump":
                await asyncio.sleep(JUMP_HOLD_MS / 1000)
                if self.model is not None:
                    self._sync_table(land_hexapod(self.model))

            self.status = f"Hexapod: {command}"
            return moved

    # ============= Recording =============

    @property
    def is_recording(self) -> bool:
        return self.recorder.is_recording or self.media_capture.active

    def start_recording(self, mime_types: Optional[Iterable[str]] = None) -> str:
        """Start media capture and joint sampling together. Needs a running event loop."""
        with self._boundary():
            if self.model is None:
                raise RobotNotLoaded("Load a robot before recording")
            mime_type = self.media_capture.start(mime_types)
            try:
                self.recorder.start()
            except PlaygroundError:
                self.media_capture.reset()
                raise
            self.recorded_frames = []
            self.recorded_media = None
            self.status = "Recording..."
            return mime_type

    def append_media_chunk(self, data: bytes) -> bool:
        with self._boundary():
            return self.media_capture.append_chunk(data)

    async def stop_recording(self) -> Dict[str, Any]:
        with self._boundary():
            if not self.is_recording:
                raise RecordingNotActive("No recording in progress")

            if self.recorder.is_recording:
                self.recorded_frames = await self.recorder.stop()
            if self.media_capture.active:
                self.recorded_media = self.media_capture.stop()

            self.status = f"Recording stopped: {len(self.recorded_frames)} frames captured."
            return self.recording_summary()

    def import_frames(self, text: str) -> int:
        with self._boundary():
            self.recorded_frames = frames_from_json(text)
            self.status = f"Imported {len(self.recorded_frames)} frames."
            return len(self.recorded_frames)

    def export_frames(self) -> str:
        return frames_to_json(self.recorded_frames, self.recorder.interval_ms)

    def recording_summary(self) -> Dict[str, Any]:
        return {
            "recording": self.is_recording,
            "frames": len(self.recorded_frames),
            "media": self.recorded_media.to_dict() if self.recorded_media else None,
        }

    # ============= Playback =============

    def _on_playback_finished(self):
        self.status = f"Playback finished ({self.player.position}/{self.player.total} frames)."

    async def play_recording(self):
        with self._boundary():
            if self.model is None:
                raise RobotNotLoaded("Robot not loaded, cannot play recorded data")
            if self.is_recording:
                raise RecordingInProgress("Stop the recording before playing it back")
            await self.player.stop()
            self.player.play(self.recorded_frames)
            self.status = "Playing recording..."

    async def stop_playback(self):
        await self.player.stop()
        self.status = "Playback stopped."

    # ============= Reset =============

    async def clear_files(self):
        """Drop every upload, the loaded robot and all recording artefacts."""
        await self.player.stop()
        self.recorder.reset()
        self.media_capture.reset()

        self.urdf_filename = None
        self.urdf_text = None
        self.mesh_map.clear()
        self.model = None
        self.robot_id = None
        self.scale = 1.0

        self.joint_table.clear()
        self.mapper.reset()
        self.recorded_frames = []
        self.recorded_media = None
        self.status = INITIAL_STATUS
        logger.info(f"🧹 Session {self.session_id} cleared")

    async def close(self):
        await self.clear_files()
        self.tracker.close()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat(),
            "status": self.status,
            "urdf_file": self.urdf_filename,
            "mesh_files": self.mesh_map.names(),
            "robot_id": self.robot_id,
            "robot": self.model.to_dict() if self.model else None,
            "joint_states": self.joint_table.snapshot(),
            "recording": self.recording_summary(),
            "playback": self.player.get_progress(),
            "tracking": self.tracker.get_stats(),
        }


class PlaygroundSessionHandler:
    """Creates, looks up and tears down playground sessions."""

    def __init__(self):
        self.sessions: Dict[str, PlaygroundSession] = {}

    def create_session(self, user_id: Optional[str] = None) -> PlaygroundSession:
        session_id = str(uuid.uuid4())
        session = PlaygroundSession(session_id, user_id=user_id)
        self.sessions[session_id] = session
        logger.info(f"🤖 Playground session {session_id} created")
        return session

    def get_session(self, session_id: str) -> Optional[PlaygroundSession]:
        return self.sessions.get(session_id)

    async def remove_session(self, session_id: str) -> bool:
        session = self.sessions.pop(session_id, None)
        if session is None:
            return False
        await session.close()
        logger.info(f"Playground session {session_id} removed")
        return True

    async def close_all(self):
        for session_id in list(self.sessions):
            await self.remove_session(session_id)

    def get_stats(self) -> Dict[str, Any]:
        sessions = list(self.sessions.values())
        return {
            "active_sessions": len(sessions),
            "robots_loaded": sum(1 for s in sessions if s.model is not None),
            "recording": sum(1 for s in sessions if s.is_recording),
            "playing": sum(1 for s in sessions if s.player.is_playing),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_handler_instance: Optional[PlaygroundSessionHandler] = None


def get_session_handler() -> PlaygroundSessionHandler:
    """Get or create the global playground session handler."""
    global _handler_instance
    if _handler_instance is None:
        _handler_instance = PlaygroundSessionHandler()
    return _handler_instance
