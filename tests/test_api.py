"""
Tests for the monitor API, log sink endpoints and proctor relay
"""

import json


def start(client, **overrides):
    body = {
        "student_id": "student123",
        "student_name": "Test Student",
        "exam_id": "exam001",
        "exam_duration_ms": 3600000,
    }
    body.update(overrides)
    response = client.post("/api/monitor/start", json=body)
    assert response.status_code == 200
    return response.json()["session_id"]


TURNED = {
    "nose": {"x": 400, "y": 100},
    "leftEar": {"x": 50, "y": 100},
    "rightEar": {"x": 150, "y": 100},
}

FACING = {
    "nose": {"x": 100, "y": 100},
    "leftEar": {"x": 50, "y": 100},
    "rightEar": {"x": 150, "y": 100},
}


class TestHealthEndpoints:

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "integrity-service"}

    def test_root_endpoint(self, client):
        data = client.get("/").json()

        assert "service" in data
        assert "docs" in data

    def test_shutdown_ends_running_sessions(self, app):
        from fastapi.testclient import TestClient
        from integrity_service.monitor import api

        with TestClient(app) as running:
            session_id = start(running)

        session = api._sessions[session_id]
        assert session.phase.value == "ended"
        assert session.end_reason == "Service shutdown"

    def test_monitor_health(self, client):
        start(client)
        data = client.get("/api/monitor/health").json()

        assert data["status"] == "healthy"
        assert data["active_sessions"] == 1


class TestSessionEndpoints:

    def test_start_session(self, client):
        response = client.post("/api/monitor/start", json={"student_id": "s1"})
        data = response.json()

        assert response.status_code == 200
        assert data["session_id"].startswith("MON_")
        assert data["status"] == "running"
        assert data["exam_duration_ms"] == 3600000

    def test_unknown_session(self, client):
        for path, body in [
            ("/api/monitor/sample", {"session_id": "nope", "face_presence": 1.0}),
            ("/api/monitor/environment", {"session_id": "nope", "reason": "TAB_SWITCHED"}),
            ("/api/monitor/tick", {"session_id": "nope"}),
            ("/api/monitor/end", {"session_id": "nope"}),
        ]:
            assert client.post(path, json=body).status_code == 404

        assert client.get("/api/monitor/status/nope").status_code == 404

    def test_sample_with_angles(self, client):
        session_id = start(client)

        data = client.post("/api/monitor/sample", json={
            "session_id": session_id,
            "face_presence": 0.97,
            "keypoints": TURNED,
        }).json()

        assert data["processed"] is True
        assert data["face_present"] is True
        assert data["horizontal_angle"] > 60
        assert data["rotation_logged"] is False

    def test_rotation_is_logged(self, client):
        from integrity_service.monitor import api

        session_id = start(client)
        base = 1_700_000_000_000
        for offset, points in [(0, TURNED), (1000, TURNED), (3200, FACING)]:
            data = client.post("/api/monitor/sample", json={
                "session_id": session_id,
                "face_presence": 0.97,
                "keypoints": points,
                "timestamp_ms": base + offset,
            }).json()

        assert data["rotation_logged"] is True
        rotations = api.log_store.entries("head_rotation")
        assert len(rotations) == 1
        assert rotations[0]["payload"]["duration"] == 3.2
        assert rotations[0]["payload"]["studentId"] == "student123"

    def test_invalid_presence_rejected(self, client):
        session_id = start(client)

        response = client.post("/api/monitor/sample", json={
            "session_id": session_id,
            "face_presence": 1.5,
        })

        assert response.status_code == 422

    def test_environment_violations_end_session(self, client):
        from integrity_service.monitor import api

        session_id = start(client)

        counts = []
        for reason in ("FULLSCREEN_EXITED", "Browser tab switched", "RESTRICTED_SHORTCUT"):
            data = client.post("/api/monitor/environment", json={
                "session_id": session_id,
                "reason": reason,
            }).json()
            counts.append(data["warning_count"])

        assert counts == [1, 2, 3]
        assert data["phase"] == "ended"
        assert data["message"] == "Security violation detected: Restricted keyboard shortcut used"

        response = client.post("/api/monitor/environment", json={
            "session_id": session_id,
            "reason": "TAB_SWITCHED",
        })
        assert response.status_code == 400

        status = client.get(f"/api/monitor/status/{session_id}").json()
        assert status["end_reason"] == "Security violations exceeded maximum limit"
        assert len(api.log_store.entries("violation")) == 3
        assert len(api.log_store.entries("exam_results")) == 1

    def test_unknown_reason(self, client):
        session_id = start(client)

        response = client.post("/api/monitor/environment", json={
            "session_id": session_id,
            "reason": "sneezed",
        })

        assert response.status_code == 400

    def test_keyboard(self, client):
        session_id = start(client)

        allowed = client.post("/api/monitor/keyboard", json={
            "session_id": session_id, "key": "a",
        }).json()
        restricted = client.post("/api/monitor/keyboard", json={
            "session_id": session_id, "key": "Tab", "alt": True,
        }).json()

        assert allowed["recorded"] is False
        assert allowed["message"] is None
        assert restricted["recorded"] is True
        assert restricted["warning_count"] == 1

    def test_activity_and_tick(self, client):
        session_id = start(client, exam_duration_ms=600000)

        assert client.post("/api/monitor/activity", json={"session_id": session_id}).json() == {"recorded": True}

        data = client.post("/api/monitor/tick", json={"session_id": session_id}).json()
        assert data["phase"] == "running"
        assert 0 < data["remaining_ms"] <= 600000
        assert data["remaining_display"] in ("10:00", "9:59")

    def test_ticks_do_not_check_inactivity(self, client, monkeypatch):
        """The 1 s timer tick leaves the inactivity rule to its 5 s check"""
        from integrity_service.monitor import api

        monkeypatch.setattr(api.settings, "INACTIVITY_TRIGGER", "every_check")
        session_id = start(client)
        session = api._sessions[session_id]
        now = [session.exam_start_ms + 31000]
        session.clock = lambda: now[0]

        phases = []
        for _ in range(5):
            phases.append(client.post("/api/monitor/tick", json={"session_id": session_id}).json()["phase"])
            now[0] += 1000

        assert phases == ["running"] * 5
        assert session.violations == []

        first = client.post("/api/monitor/inactivity", json={"session_id": session_id}).json()
        assert first["recorded"] is True
        assert first["warning_count"] == 1
        assert first["message"] == "Security violation detected: Prolonged inactivity detected"

    def test_inactivity_check_with_recent_activity(self, client):
        session_id = start(client)
        client.post("/api/monitor/activity", json={"session_id": session_id})

        data = client.post("/api/monitor/inactivity", json={"session_id": session_id}).json()

        assert data["recorded"] is False
        assert data["warning_count"] == 0

    def test_face_absence_is_not_an_environment_event(self, client):
        session_id = start(client)

        response = client.post("/api/monitor/environment", json={
            "session_id": session_id,
            "reason": "FACE_NOT_DETECTED",
        })

        assert response.status_code == 400
        status = client.get(f"/api/monitor/status/{session_id}").json()
        assert status["warning_count"] == 0

    def test_end_and_results(self, client):
        session_id = start(client)

        first = client.post("/api/monitor/end", json={"session_id": session_id}).json()
        second = client.post("/api/monitor/end", json={"session_id": session_id, "reason": "again"}).json()

        assert first["end_reason"] == "Exam completed"
        assert second["end_reason"] == "Exam completed"

        results = client.get(f"/api/monitor/results/{session_id}").json()
        assert results["endReason"] == "Exam completed"
        assert results["studentInfo"]["id"] == "student123"
        assert results["violations"] == []

    def test_results_before_end(self, client):
        session_id = start(client)

        assert client.get(f"/api/monitor/results/{session_id}").status_code == 400

    def test_sample_after_end(self, client):
        session_id = start(client)
        client.post("/api/monitor/end", json={"session_id": session_id})

        response = client.post("/api/monitor/sample", json={
            "session_id": session_id,
            "face_presence": 1.0,
        })

        assert response.status_code == 400


class TestLogSinkEndpoints:

    def test_log_endpoints(self, client):
        for path in ("/api/log-violation", "/api/log-head-rotation", "/api/save-exam-results"):
            response = client.post(path, json={"studentId": "s1"})
            assert response.json() == {"success": True}

        data = client.get("/api/logs").json()
        assert data["count"] == 3
        assert [e["kind"] for e in data["entries"]] == ["violation", "head_rotation", "exam_results"]

        assert client.get("/api/logs", params={"kind": "violation"}).json()["count"] == 1


class TestProctorRelay:

    def test_broadcast_to_other_clients(self, client):
        with client.websocket_connect("/ws/proctor") as student_ws:
            with client.websocket_connect("/ws/proctor") as proctor_ws:
                student_ws.send_text(json.dumps({"type": "ping"}))

                assert json.loads(proctor_ws.receive_text()) == {"type": "ping"}

    def test_rotation_alert_reaches_proctor(self, client):
        session_id = start(client)
        base = 1_700_000_000_000

        with client.websocket_connect("/ws/proctor") as proctor_ws:
            for offset, points in [(0, TURNED), (3000, FACING)]:
                client.post("/api/monitor/sample", json={
                    "session_id": session_id,
                    "face_presence": 0.97,
                    "keypoints": points,
                    "timestamp_ms": base + offset,
                })

            alert = json.loads(proctor_ws.receive_text())

        assert alert["type"] == "head_rotation"
        assert alert["studentId"] == "student123"
        assert alert["duration"] == 3.0
        assert alert["angles"]["horizontal"] > 60
