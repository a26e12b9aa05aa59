"""
ROBOSTORE Playground Service Router

Endpoints for the URDF robot playground: file uploads, robot loading,
landmark-driven joint control, recording and playback. Camera frames and
landmark frames can also be streamed over the session WebSocket.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.responses import Response
from pydantic import BaseModel, Field

from shared.utils import success_response

from .models import (
    HolisticFrame,
    NothingToPlay,
    PlaygroundError,
    PlaygroundSession,
    get_session_handler,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============= Pydantic Models =============

class LoadRobotRequest(BaseModel):
    robot_id: Optional[str] = None
    scale: float = Field(1.0, gt=0)
    initial_position: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0], min_length=3, max_length=3)


class StartRecordingRequest(BaseModel):
    mime_types: Optional[List[str]] = None


class CommandRequest(BaseModel):
    command: str


class JointValuesRequest(BaseModel):
    joints: Dict[str, float]


# ============= Helpers =============

def _get_session(session_id: str) -> PlaygroundSession:
    session = get_session_handler().get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


def _http_error(e: PlaygroundError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


def _parse_frame(payload: Dict[str, Any]) -> HolisticFrame:
    try:
        return HolisticFrame.from_dict(payload)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid landmark frame: {e}")


# ============= Sessions =============

@router.post("/sessions", status_code=201)
async def create_session():
    """Open a new playground session."""
    session = get_session_handler().create_session()
    return success_response(session.to_dict(), "Session created")


@router.get("/sessions/{session_id}")
async def get_session(session_id: str):
    return success_response(_get_session(session_id).to_dict())


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    if not await get_session_handler().remove_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return success_response({"session_id": session_id}, "Session removed")


# ============= Files & Robot =============

@router.post("/sessions/{session_id}/urdf")
async def upload_urdf(session_id: str, file: UploadFile = File(...)):
    """Upload the robot description (.urdf)."""
    session = _get_session(session_id)
    raw = await file.read()
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="URDF file must be UTF-8 text")

    try:
        session.set_urdf(file.filename, content)
    except PlaygroundError as e:
        raise _http_error(e)
    return success_response({"urdf_file": session.urdf_filename}, session.status)


@router.post("/sessions/{session_id}/meshes")
async def upload_meshes(session_id: str, files: List[UploadFile] = File(...)):
    """Upload mesh files referenced by the URDF."""
    session = _get_session(session_id)
    uploads = [(f.filename, await f.read()) for f in files]
    try:
        accepted = session.add_meshes(uploads)
    except PlaygroundError as e:
        raise _http_error(e)
    return success_response({"accepted": accepted, "mesh_files": session.mesh_map.names()}, session.status)


@router.post("/sessions/{session_id}/load")
async def load_robot(session_id: str, request: Optional[LoadRobotRequest] = None):
    """Build the robot from the uploaded files."""
    session = _get_session(session_id)
    request = request or LoadRobotRequest()
    try:
        model = session.load_robot(request.robot_id, request.scale, request.initial_position)
    except PlaygroundError as e:
        raise _http_error(e)
    return success_response(
        {"robot": model.to_dict(), "joint_states": session.joint_table.snapshot()},
        session.status,
    )


@router.post("/sessions/{session_id}/clear")
async def clear_files(session_id: str):
    """Drop uploads, the loaded robot and recordings."""
    session = _get_session(session_id)
    await session.clear_files()
    return success_response(session.to_dict(), "Files cleared")


# ============= Joint Control =============

@router.post("/sessions/{session_id}/landmarks")
async def apply_landmarks(session_id: str, payload: Dict[str, Any]):
    """Apply one frame of holistic landmarks to the robot."""
    session = _get_session(session_id)
    frame = _parse_frame(payload)
    updates = session.apply_landmarks(frame)
    return success_response({
        "updates": updates,
        "joint_states": session.joint_table.snapshot(),
    })


# ============= Manual Control =============

@router.post("/sessions/{session_id}/joints")
async def set_joint_values(session_id: str, request: JointValuesRequest):
    """Set joint angles directly (slider control)."""
    session = _get_session(session_id)
    try:
        moved = session.set_joint_values(request.joints)
    except PlaygroundError as e:
        raise _http_error(e)
    return success_response({"moved": moved, "joint_states": session.joint_table.snapshot()})


@router.post("/sessions/{session_id}/command")
async def send_command(session_id: str, request: CommandRequest):
    """Hexapod movement: forward, backward, left, right, up, down or jump."""
    session = _get_session(session_id)
    try:
        moved = await session.send_command(request.command)
    except PlaygroundError as e:
        raise _http_error(e)
    return success_response({
        "command": request.command,
        "moved": moved,
        "transform": session.model.transform.to_dict() if session.model else None,
        "joint_states": session.joint_table.snapshot(),
    }, session.status)


# ============= Recording & Playback =============

@router.post("/sessions/{session_id}/recording/start")
async def start_recording(session_id: str, request: Optional[StartRecordingRequest] = None):
    session = _get_session(session_id)
    mime_types = request.mime_types if request else None
    try:
        mime_type = session.start_recording(mime_types)
    except PlaygroundError as e:
        raise _http_error(e)
    return success_response({"mime_type": mime_type}, session.status)


@router.post("/sessions/{session_id}/recording/chunk")
async def append_chunk(session_id: str, request: Request):
    """Append an encoded video chunk (raw request body)."""
    session = _get_session(session_id)
    data = await request.body()
    try:
        stored = session.append_media_chunk(data)
    except PlaygroundError as e:
        raise _http_error(e)
    return success_response({"stored": stored, "chunks": session.media_capture.chunk_count})


@router.post("/sessions/{session_id}/recording/stop")
async def stop_recording(session_id: str):
    session = _get_session(session_id)
    try:
        summary = await session.stop_recording()
    except PlaygroundError as e:
        raise _http_error(e)
    return success_response(summary, session.status)


@router.get("/sessions/{session_id}/recording/media")
async def get_recorded_media(session_id: str):
    """Download the assembled recording."""
    session = _get_session(session_id)
    media = session.recorded_media
    if media is None or media.size == 0:
        raise _http_error(NothingToPlay("No recorded video available"))
    return Response(content=media.data, media_type=media.mime_type)


@router.get("/sessions/{session_id}/recording/frames")
async def export_frames(session_id: str):
    """Recorded joint trajectory as JSON."""
    session = _get_session(session_id)
    return Response(content=session.export_frames(), media_type="application/json")


@router.post("/sessions/{session_id}/recording/frames")
async def import_frames(session_id: str, request: Request):
    """Replace the recorded trajectory with an exported one."""
    session = _get_session(session_id)
    body = await request.body()
    try:
        count = session.import_frames(body.decode("utf-8", errors="replace"))
    except PlaygroundError as e:
        raise _http_error(e)
    return success_response({"frames": count}, session.status)


@router.post("/sessions/{session_id}/recording/play")
async def play_recording(session_id: str):
    session = _get_session(session_id)
    try:
        await session.play_recording()
    except PlaygroundError as e:
        raise _http_error(e)
    return success_response(session.player.get_progress(), session.status)


@router.post("/sessions/{session_id}/recording/playback/stop")
async def stop_playback(session_id: str):
    session = _get_session(session_id)
    await session.stop_playback()
    return success_response(session.player.get_progress(), session.status)


# ============= WebSocket Endpoints =============

@router.websocket("/ws/{session_id}")
async def playground_stream(websocket: WebSocket, session_id: str):
    """
    Real-time joint control.

    Accepts:
    - binary messages: encoded camera frames (JPEG/PNG)
    - text messages: a holistic landmark frame as JSON

    Replies with JOINT_STATE, FRAME_DROPPED or ERROR messages.
    Only one camera frame is tracked at a time; frames arriving while it
    is in flight are answered with FRAME_DROPPED instead of being queued.
    """
    await websocket.accept()

    session = get_session_handler().get_session(session_id)
    if session is None:
        await websocket.send_json({
            "type": "ERROR",
            "message": f"Session {session_id} not found"
        })
        await websocket.close()
        return

    logger.info(f"🔌 Playground stream connected: {session_id}")

    send_lock = asyncio.Lock()
    tracking: Optional[asyncio.Task] = None

    async def reply(payload: Dict[str, Any]):
        async with send_lock:
            await websocket.send_json(payload)

    async def reply_joint_state(updates: Dict[str, float]):
        await reply({
            "type": "JOINT_STATE",
            "updates": updates,
            "joint_states": session.joint_table.snapshot()
        })

    async def reply_error(e: Exception):
        await reply({
            "type": "ERROR",
            "message": str(e),
            "status": session.status
        })

    async def track(data: bytes):
        try:
            updates = await session.process_camera_frame(data)
        except PlaygroundError as e:
            await reply_error(e)
            return
        if updates is None:
            await reply({"type": "FRAME_DROPPED"})
        else:
            await reply_joint_state(updates)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            if message.get("bytes") is not None:
                if tracking is not None and not tracking.done():
                    session.tracker.drop()
                    await reply({"type": "FRAME_DROPPED"})
                else:
                    tracking = asyncio.create_task(track(message["bytes"]))
                continue

            try:
                frame = HolisticFrame.from_dict(json.loads(message.get("text") or "{}"))
                updates = session.apply_landmarks(frame)
            except (PlaygroundError, KeyError, TypeError, ValueError) as e:
                await reply_error(e)
                continue

            await reply_joint_state(updates)

    except WebSocketDisconnect:
        logger.info(f"Playground stream {session_id} disconnected")
    finally:
        if tracking is not None and not tracking.done():
            tracking.cancel()
