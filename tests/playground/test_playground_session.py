"""
Playground session lifecycle: uploads, robot loading, landmark control,
recording and clearing.
"""

import asyncio
import math

import pytest

from playground_service.models import (
    HolisticFrame,
    InvalidUrdfFile,
    PlaygroundSessionHandler,
    RecordingNotActive,
    RobotLoadError,
    RecordedFrame,
    RobotNotLoaded,
    UnsupportedCommand,
    UnsupportedMeshFile,
)
from playground_service.models.playground_session import INITIAL_STATUS


@pytest.fixture
def session():
    return PlaygroundSessionHandler().create_session()


@pytest.fixture
def loaded_session(session, urdf_text, torso_stl):
    session.set_urdf("mini.urdf", urdf_text)
    session.add_meshes([("torso.stl", torso_stl)])
    session.load_robot()
    return session


def test_non_urdf_upload_sets_error_status(session):
    with pytest.raises(InvalidUrdfFile):
        session.set_urdf("robot.xml", "<robot/>")
    assert session.status.startswith("Error:")
    assert session.urdf_text is None


def test_mesh_upload_skips_other_files(session, torso_stl):
    accepted = session.add_meshes([("torso.stl", torso_stl), ("README.md", b"docs")])
    assert accepted == ["torso.stl"]
    assert session.status == "1 mesh files loaded successfully."


def test_mesh_upload_without_meshes_fails(session):
    with pytest.raises(UnsupportedMeshFile):
        session.add_meshes([("README.md", b"docs")])


def test_load_without_urdf_fails(session):
    with pytest.raises(RobotLoadError):
        session.load_robot()
    assert session.model is None


def test_load_zeroes_every_joint(loaded_session):
    assert loaded_session.model.name == "mini_humanoid"
    assert loaded_session.robot_id == "mini_humanoid"
    assert loaded_session.joint_table.snapshot() == {"HEAD_JOINT0": 0.0, "HEAD_JOINT1": 0.0}
    # tall torso -> turned upright
    assert loaded_session.model.transform.rotation[0] == pytest.approx(-math.pi / 2)


def test_landmarks_drive_table_and_model(loaded_session, nose_frame):
    updates = loaded_session.apply_landmarks(HolisticFrame.from_dict(nose_frame(0.0, 0.5)))

    assert updates["HEAD_JOINT0"] == pytest.approx(math.pi / 4)
    assert loaded_session.joint_table.get("HEAD_JOINT0") == pytest.approx(math.pi / 4)
    assert loaded_session.model.joints["HEAD_JOINT0"].angle == pytest.approx(math.pi / 4)


def test_recording_requires_a_robot(session):
    async def scenario():
        session.start_recording()

    with pytest.raises(RobotNotLoaded):
        asyncio.run(scenario())


def test_stop_without_recording(loaded_session):
    with pytest.raises(RecordingNotActive):
        asyncio.run(loaded_session.stop_recording())


def test_record_then_play_back(loaded_session, nose_frame):
    async def scenario():
        loaded_session.recorder.interval_ms = 60_000
        loaded_session.player.interval_ms = 1

        loaded_session.start_recording()
        loaded_session.append_media_chunk(b"\x1a\x45\xdf\xa3")
        for x in (0.0, 0.5, 1.0):
            loaded_session.apply_landmarks(HolisticFrame.from_dict(nose_frame(x, 0.5)))
            loaded_session.recorder.tick()
        summary = await loaded_session.stop_recording()

        loaded_session.apply_landmarks(HolisticFrame.from_dict(nose_frame(0.5, 0.5)))
        await loaded_session.play_recording()
        await loaded_session.player.wait()
        return summary

    summary = asyncio.run(scenario())

    assert summary["frames"] == 3
    assert summary["media"]["size"] == 4
    assert loaded_session.status.startswith("Playback finished")
    # last recorded frame was nose.x = 1.0
    assert loaded_session.model.joints["HEAD_JOINT0"].angle == pytest.approx(-math.pi / 4)


def test_clear_files_resets_everything(loaded_session, nose_frame):
    async def scenario():
        loaded_session.recorder.interval_ms = 60_000
        loaded_session.apply_landmarks(HolisticFrame.from_dict(nose_frame(0.2, 0.2)))
        loaded_session.start_recording()
        loaded_session.recorder.tick()
        await loaded_session.stop_recording()
        await loaded_session.clear_files()

    asyncio.run(scenario())

    assert loaded_session.joint_table.snapshot() == {}
    assert loaded_session.model is None
    assert loaded_session.urdf_text is None
    assert loaded_session.mesh_map.names() == []
    assert loaded_session.recorded_frames == []
    assert loaded_session.recorded_media is None
    assert not loaded_session.is_recording
    assert not loaded_session.player.is_playing
    assert loaded_session.status == INITIAL_STATUS


def test_handler_removes_sessions():
    handler = PlaygroundSessionHandler()
    session = handler.create_session()

    assert handler.get_session(session.session_id) is session
    assert asyncio.run(handler.remove_session(session.session_id)) is True
    assert handler.get_session(session.session_id) is None
    assert asyncio.run(handler.remove_session(session.session_id)) is False


def test_landmarks_are_ignored_until_a_robot_is_loaded(session, urdf_text, torso_stl, nose_frame):
    assert session.apply_landmarks(HolisticFrame.from_dict(nose_frame(0.1, 0.1))) == {}
    assert session.joint_table.snapshot() == {}

    session.set_urdf("mini.urdf", urdf_text)
    session.add_meshes([("torso.stl", torso_stl)])
    session.load_robot()

    # The mapper saw nothing earlier, so the first real frame still emits
    updates = session.apply_landmarks(HolisticFrame.from_dict(nose_frame(0.1, 0.1)))
    assert set(updates) == {"HEAD_JOINT0", "HEAD_JOINT1"}


def test_playback_requires_a_robot(session):
    session.import_frames('[{"HEAD_JOINT0": 0.3, "timestamp": 1}]')

    with pytest.raises(RobotNotLoaded):
        asyncio.run(session.play_recording())
    assert session.status == "Error: Robot not loaded, cannot play recorded data"
    assert not session.player.is_playing


def test_replay_keeps_playing_status(loaded_session):
    async def scenario():
        loaded_session.player.interval_ms = 20
        loaded_session.recorded_frames = [
            RecordedFrame({"HEAD_JOINT0": 0.01 * i}, timestamp=float(i)) for i in range(50)
        ]
        await loaded_session.play_recording()
        await asyncio.sleep(0.05)
        await loaded_session.play_recording()
        await asyncio.sleep(0.01)
        observed = (loaded_session.status, loaded_session.player.is_playing)
        await loaded_session.stop_playback()
        return observed

    status, playing = asyncio.run(scenario())
    assert status == "Playing recording..."
    assert playing


# ============= Manual control =============

@pytest.fixture
def hexapod_session(hexapod_urdf):
    session = PlaygroundSessionHandler().create_session()
    session.set_urdf("hexapod.urdf", hexapod_urdf)
    session.load_robot("hexapod_robot")
    return session


def test_joint_sliders_set_angles_directly(loaded_session):
    moved = loaded_session.set_joint_values({"HEAD_JOINT0": 0.5, "HEAD_JOINT1": 9.0, "ELBOW": 1.0})

    assert moved == ["HEAD_JOINT0", "HEAD_JOINT1"]
    assert loaded_session.model.joints["HEAD_JOINT0"].angle == pytest.approx(0.5)
    # clamped to the URDF limit
    assert loaded_session.joint_table.get("HEAD_JOINT1") == pytest.approx(1.57)
    assert "ELBOW" not in loaded_session.joint_table.snapshot()


def test_joint_sliders_require_a_robot(session):
    with pytest.raises(RobotNotLoaded):
        session.set_joint_values({"HEAD_JOINT0": 0.5})


def test_hexapod_turns_with_its_coxa_joints(hexapod_session):
    moved = asyncio.run(hexapod_session.send_command("left"))

    assert len(moved) == 6
    table = hexapod_session.joint_table
    assert table.get("coxa_joint_r1") == pytest.approx(0.1)
    assert table.get("coxa_joint_l3") == pytest.approx(-0.1)
    assert hexapod_session.status == "Hexapod: left"


def test_hexapod_moves_its_body(hexapod_session):
    start = hexapod_session.model.transform.position

    asyncio.run(hexapod_session.send_command("forward"))
    asyncio.run(hexapod_session.send_command("up"))

    x, y, z = hexapod_session.model.transform.position
    assert (x, y, z) == pytest.approx((start[0], start[1] + 0.5, start[2] - 0.5))


def test_hexapod_jump_lands_again(hexapod_session):
    moved = asyncio.run(hexapod_session.send_command("jump"))

    assert len(moved) == 6
    assert all(
        hexapod_session.model.joints[name].angle == pytest.approx(0.0)
        for name in moved
    )
    assert hexapod_session.joint_table.get("femur_joint_l2") == pytest.approx(0.0)


def test_commands_are_only_for_the_hexapod(loaded_session, hexapod_session):
    with pytest.raises(UnsupportedCommand):
        asyncio.run(loaded_session.send_command("forward"))
    assert loaded_session.status.startswith("Error: Command 'forward' ignored")

    with pytest.raises(UnsupportedCommand):
        asyncio.run(hexapod_session.send_command("moonwalk"))
