"""
Playground HTTP and WebSocket endpoints.
"""

import json
import math
import time
from collections import Counter

import cv2
import numpy as np
import pytest

from playground_service.models import HolisticFrame, Landmark, PoseTracker

BASE = "/api/playground"


@pytest.fixture
def session_id(client):
    response = client.post(f"{BASE}/sessions")
    assert response.status_code == 201
    return response.json()["data"]["session_id"]


@pytest.fixture
def loaded_session_id(client, session_id, urdf_text, torso_stl):
    client.post(f"{BASE}/sessions/{session_id}/urdf", files={"file": ("mini.urdf", urdf_text, "application/xml")})
    client.post(f"{BASE}/sessions/{session_id}/meshes", files=[("files", ("torso.stl", torso_stl, "model/stl"))])
    response = client.post(f"{BASE}/sessions/{session_id}/load", json={"robot_id": "mini", "scale": 2.0})
    assert response.status_code == 200
    return session_id


def test_unknown_session_is_not_found(client):
    assert client.get(f"{BASE}/sessions/missing").status_code == 404
    assert client.post(f"{BASE}/sessions/missing/clear").status_code == 404


def test_urdf_upload_requires_urdf_extension(client, session_id):
    response = client.post(
        f"{BASE}/sessions/{session_id}/urdf",
        files={"file": ("robot.txt", "<robot/>", "text/plain")},
    )
    assert response.status_code == 400
    status = client.get(f"{BASE}/sessions/{session_id}").json()["data"]["status"]
    assert status.startswith("Error:")


def test_load_reports_missing_meshes(client, session_id, urdf_text):
    client.post(f"{BASE}/sessions/{session_id}/urdf", files={"file": ("mini.urdf", urdf_text, "application/xml")})

    response = client.post(f"{BASE}/sessions/{session_id}/load")

    assert response.status_code == 400
    assert "torso.stl" in response.json()["detail"]


def test_load_returns_robot_and_zeroed_joints(client, loaded_session_id):
    data = client.get(f"{BASE}/sessions/{loaded_session_id}").json()["data"]

    assert data["robot_id"] == "mini"
    assert data["robot"]["transform"]["scale"] == 2.0
    assert data["joint_states"] == {"HEAD_JOINT0": 0.0, "HEAD_JOINT1": 0.0}


def test_landmarks_update_joint_states(client, loaded_session_id, nose_frame):
    response = client.post(f"{BASE}/sessions/{loaded_session_id}/landmarks", json=nose_frame(1.0, 0.5))

    body = response.json()["data"]
    assert response.status_code == 200
    assert body["updates"]["HEAD_JOINT0"] == pytest.approx(-math.pi / 4)
    assert body["joint_states"]["HEAD_JOINT0"] == pytest.approx(-math.pi / 4)


def test_malformed_landmarks_are_rejected(client, loaded_session_id):
    response = client.post(f"{BASE}/sessions/{loaded_session_id}/landmarks", json={"pose": [{"y": 0.1}]})
    assert response.status_code == 422


def test_recording_endpoints_without_robot_or_recording(client, session_id):
    assert client.post(f"{BASE}/sessions/{session_id}/recording/start").status_code == 409
    assert client.post(f"{BASE}/sessions/{session_id}/recording/stop").status_code == 409
    assert client.post(f"{BASE}/sessions/{session_id}/recording/play").status_code == 409
    assert client.get(f"{BASE}/sessions/{session_id}/recording/media").status_code == 409


def test_trajectory_import_and_export(client, session_id):
    trajectory = {"frames": [{"HEAD_JOINT0": 0.1, "timestamp": 1.0}, {"HEAD_JOINT0": 0.2, "timestamp": 34.0}]}

    imported = client.post(f"{BASE}/sessions/{session_id}/recording/frames", content=json.dumps(trajectory))
    assert imported.json()["data"]["frames"] == 2

    exported = client.get(f"{BASE}/sessions/{session_id}/recording/frames").json()
    assert exported["frames"] == trajectory["frames"]


def test_clear_resets_session(client, loaded_session_id):
    response = client.post(f"{BASE}/sessions/{loaded_session_id}/clear")

    data = response.json()["data"]
    assert data["robot"] is None
    assert data["joint_states"] == {}
    assert data["mesh_files"] == []
    assert data["urdf_file"] is None


def test_delete_session(client, session_id):
    assert client.delete(f"{BASE}/sessions/{session_id}").status_code == 200
    assert client.get(f"{BASE}/sessions/{session_id}").status_code == 404


def test_websocket_landmark_stream(client, loaded_session_id, nose_frame):
    with client.websocket_connect(f"{BASE}/ws/{loaded_session_id}") as ws:
        ws.send_text(json.dumps(nose_frame(0.0, 0.5)))
        message = ws.receive_json()
        assert message["type"] == "JOINT_STATE"
        assert message["joint_states"]["HEAD_JOINT0"] == pytest.approx(math.pi / 4)

        ws.send_text("{not json")
        assert ws.receive_json()["type"] == "ERROR"

        ws.send_bytes(b"definitely not a jpeg")
        assert ws.receive_json()["type"] == "ERROR"


def test_websocket_unknown_session(client):
    with client.websocket_connect(f"{BASE}/ws/missing") as ws:
        message = ws.receive_json()
        assert message["type"] == "ERROR"


def test_health_and_stats(client, session_id):
    health = client.get("/health").json()
    assert health["database"] == "memory"
    assert health["playground_sessions"] == 1

    stats = client.get("/stats").json()
    assert stats["playground"]["active_sessions"] == 1


def test_playback_needs_a_loaded_robot(client, session_id):
    trajectory = [{"HEAD_JOINT0": 0.1, "timestamp": 1.0}]
    client.post(f"{BASE}/sessions/{session_id}/recording/frames", content=json.dumps(trajectory))

    response = client.post(f"{BASE}/sessions/{session_id}/recording/play")

    assert response.status_code == 409
    assert response.json()["detail"] == "Robot not loaded, cannot play recorded data"


def test_landmarks_without_robot_change_nothing(client, session_id, nose_frame):
    response = client.post(f"{BASE}/sessions/{session_id}/landmarks", json=nose_frame(0.1, 0.1))

    assert response.status_code == 200
    assert response.json()["data"] == {"updates": {}, "joint_states": {}}


@pytest.mark.parametrize("text", ["[1]", "null", "3", '{"pose": 5}'])
def test_websocket_survives_non_object_frames(client, loaded_session_id, nose_frame, text):
    with client.websocket_connect(f"{BASE}/ws/{loaded_session_id}") as ws:
        ws.send_text(text)
        assert ws.receive_json()["type"] == "ERROR"

        ws.send_text(json.dumps(nose_frame(0.0, 0.5)))
        assert ws.receive_json()["type"] == "JOINT_STATE"


def test_websocket_drops_frames_while_tracking(client, loaded_session_id, monkeypatch):
    def slow_infer(self, rgb, timestamp_ms):
        time.sleep(0.2)
        return HolisticFrame(pose=[Landmark(x=0.0, y=0.5)], timestamp=timestamp_ms)

    monkeypatch.setattr(PoseTracker, "infer", slow_infer)
    _, encoded = cv2.imencode(".jpg", np.zeros((8, 8, 3), dtype=np.uint8))

    with client.websocket_connect(f"{BASE}/ws/{loaded_session_id}") as ws:
        for _ in range(4):
            ws.send_bytes(encoded.tobytes())
        replies = [ws.receive_json() for _ in range(4)]

    kinds = Counter(reply["type"] for reply in replies)
    assert kinds == {"FRAME_DROPPED": 3, "JOINT_STATE": 1}
    assert replies[-1]["joint_states"]["HEAD_JOINT0"] == pytest.approx(math.pi / 4)

    tracking = client.get(f"{BASE}/sessions/{loaded_session_id}").json()["data"]["tracking"]
    assert tracking == {"frames_processed": 1, "frames_dropped": 3, "backend_loaded": False}


def test_joint_slider_endpoint(client, loaded_session_id):
    response = client.post(
        f"{BASE}/sessions/{loaded_session_id}/joints",
        json={"joints": {"HEAD_JOINT0": 0.4, "UNKNOWN": 1.0}},
    )

    body = response.json()["data"]
    assert response.status_code == 200
    assert body["moved"] == ["HEAD_JOINT0"]
    assert body["joint_states"]["HEAD_JOINT0"] == pytest.approx(0.4)


def test_joint_slider_endpoint_needs_a_robot(client, session_id):
    response = client.post(f"{BASE}/sessions/{session_id}/joints", json={"joints": {"HEAD_JOINT0": 0.4}})
    assert response.status_code == 409


def test_hexapod_command_endpoint(client, session_id, hexapod_urdf):
    client.post(f"{BASE}/sessions/{session_id}/urdf", files={"file": ("hexapod.urdf", hexapod_urdf, "application/xml")})
    assert client.post(f"{BASE}/sessions/{session_id}/load", json={"robot_id": "hexapod_robot"}).status_code == 200

    turned = client.post(f"{BASE}/sessions/{session_id}/command", json={"command": "right"}).json()["data"]
    assert turned["joint_states"]["coxa_joint_r2"] == pytest.approx(-0.1)
    assert turned["joint_states"]["coxa_joint_l2"] == pytest.approx(0.1)

    moved = client.post(f"{BASE}/sessions/{session_id}/command", json={"command": "backward"}).json()["data"]
    assert moved["moved"] == []
    assert moved["transform"]["position"][2] == pytest.approx(0.5)

    unknown = client.post(f"{BASE}/sessions/{session_id}/command", json={"command": "moonwalk"})
    assert unknown.status_code == 400


def test_command_endpoint_rejects_other_robots(client, loaded_session_id):
    response = client.post(f"{BASE}/sessions/{loaded_session_id}/command", json={"command": "jump"})

    assert response.status_code == 400
    assert "Only the hexapod robot supports movement" in response.json()["detail"]
