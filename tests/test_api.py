"""
Tests for the HTTP surface: proctoring endpoints and the event log service
"""

import base64
import csv
import io
import os
import time
from unittest.mock import AsyncMock, MagicMock

import cv2
import numpy as np

from examguard.proctor.dependencies import get_event_mirror
from examguard.proctor.sinks import MongoEventMirror

CENTERED = {"box": [270, 190, 100, 100]}


def start(client, name="Jane Doe"):
    response = client.post("/api/proctor/start", json={"candidate_name": name})
    assert response.status_code == 200
    return response.json()


class TestSessionEndpoints:
    """Tests for /api/proctor"""

    def test_start_session(self, client):
        data = start(client)

        assert data["session_id"].startswith("EXM_")
        assert data["status"] == "active"
        assert data["detection_mode"] == "disabled"
        assert "detection disabled" in data["message"]

    def test_second_live_session_conflicts(self, client):
        start(client)
        response = client.post("/api/proctor/start", json={"candidate_name": "John"})
        assert response.status_code == 409

    def test_restart_after_stop(self, client):
        first = start(client)
        client.post("/api/proctor/stop")
        second = start(client, "John")

        assert second["session_id"] != first["session_id"]

    def test_status_without_session(self, client):
        assert client.get("/api/proctor/status").status_code == 404

    def test_detections_flow(self, client):
        start(client)
        base = time.time() * 1000

        events = []
        for offset in range(0, 10_601, 500):
            response = client.post("/api/proctor/detections", json={
                "faces": [],
                "objects": None,
                "frame_width": 640,
                "frame_height": 480,
                "timestamp_ms": base + offset
            })
            assert response.status_code == 200
            events += response.json()["events"]

        assert [e["type"] for e in events] == ["no_face"]
        assert events[0]["detail"]["duration_ms"] == 10500

        status = client.get("/api/proctor/status").json()
        assert status["counts"]["no_face"] == 1
        assert status["current_score"] == 88
        assert status["ticks_processed"] == 22

    def test_detections_with_objects(self, client):
        start(client)
        response = client.post("/api/proctor/detections", json={
            "faces": [CENTERED, CENTERED, CENTERED],
            "objects": [{"label": "cell phone", "score": 0.91, "bbox": [0, 0, 50, 90]}],
            "frame_width": 640,
            "frame_height": 480
        })

        data = response.json()
        assert [e["type"] for e in data["events"]] == ["multiple_faces", "object_detected"]
        assert data["events"][0]["detail"] == {"count": 3}
        assert data["current_score"] == 77

    def test_detections_skip_malformed_objects(self, client):
        """A null object entry is dropped; the rest of the tick still counts"""
        start(client)
        response = client.post("/api/proctor/detections", json={
            "faces": [CENTERED, CENTERED],
            "objects": [None, {"label": "cell phone", "score": 0.9, "bbox": [0, 0, 50, 90]}],
            "frame_width": 640,
            "frame_height": 480
        })

        assert response.status_code == 200
        assert [e["type"] for e in response.json()["events"]] == ["multiple_faces", "object_detected"]

    def test_detections_validation(self, client):
        start(client)
        response = client.post("/api/proctor/detections", json={
            "faces": [],
            "frame_width": 0,
            "frame_height": 480
        })
        assert response.status_code == 422

    def test_detections_after_stop(self, client):
        start(client)
        client.post("/api/proctor/stop")
        response = client.post("/api/proctor/detections", json={
            "faces": [],
            "frame_width": 640,
            "frame_height": 480
        })
        assert response.status_code == 400

    def test_stream_frame(self, client):
        start(client)
        ok, jpeg = cv2.imencode(".jpg", np.zeros((480, 640, 3), dtype=np.uint8))
        assert ok

        response = client.post("/api/proctor/stream", json={
            "frame_base64": base64.b64encode(jpeg.tobytes()).decode()
        })

        assert response.status_code == 200
        assert response.json()["events"] == []

    def test_stream_invalid_frame(self, client):
        start(client)
        response = client.post("/api/proctor/stream", json={"frame_base64": "not-an-image"})
        assert response.status_code == 400

    def test_stop_and_reports(self, client):
        start(client)
        client.post("/api/proctor/detections", json={
            "faces": [CENTERED, CENTERED],
            "frame_width": 640,
            "frame_height": 480
        })

        report = client.post("/api/proctor/stop").json()
        assert report["candidate_name"] == "Jane Doe"
        assert report["integrity_score"] == 80
        assert report["grade"] == "B"
        assert report["counts_by_kind"]["multiple_faces"] == 1

        again = client.post("/api/proctor/stop").json()
        assert again == report

        json_report = client.get("/api/proctor/report")
        assert json_report.status_code == 200
        assert json_report.json()["integrity_score"] == 80

        csv_report = client.get("/api/proctor/report", params={"format": "csv"})
        assert csv_report.headers["content-type"].startswith("text/csv")
        assert 'filename="Jane_Doe_proctoring_report.csv"' in csv_report.headers["content-disposition"]
        assert ["Integrity Score", "80"] in list(csv.reader(io.StringIO(csv_report.text)))

        pdf_report = client.get("/api/proctor/report", params={"format": "pdf"})
        assert pdf_report.content.startswith(b"%PDF")

    def test_report_before_stop(self, client):
        start(client)
        assert client.get("/api/proctor/report").status_code == 409

    def test_report_unknown_format(self, client):
        start(client)
        client.post("/api/proctor/stop")
        assert client.get("/api/proctor/report", params={"format": "xml"}).status_code == 422

    def test_models_status(self, client):
        data = client.get("/api/proctor/models-status").json()
        assert data == {"face_model": False, "object_model": False}


class TestEventLogEndpoints:
    """Tests for the /api event log service"""

    def test_health(self, client):
        data = client.get("/api/health").json()
        assert data["ok"] is True
        assert data["active_session"] is None

        session = start(client)
        assert client.get("/api/health").json()["active_session"] == session["session_id"]

    def test_log_and_list(self, client):
        response = client.post("/api/log", json={"type": "looking_away", "detail": {"duration_ms": 5200}})
        assert response.json() == {"ok": True}

        logs = client.get("/api/logs").json()
        assert logs[-1]["type"] == "looking_away"
        assert "received_at" in logs[-1]

    def test_log_is_mirrored(self, app, client):
        collection = MagicMock()
        collection.insert_one = AsyncMock()
        app.dependency_overrides[get_event_mirror] = lambda: MongoEventMirror("mongodb://db.local", collection=collection)

        client.post("/api/log", json={"type": "no_face", "detail": {"duration_ms": 10500}})

        collection.insert_one.assert_awaited_once()
        mirrored = collection.insert_one.await_args.args[0]
        assert mirrored["type"] == "no_face"
        assert "received_at" in mirrored

    def test_session_events_reach_log(self, client):
        start(client)
        client.post("/api/proctor/stop")

        types = [entry["type"] for entry in client.get("/api/logs").json()]
        assert types == ["session_start", "session_report"]

    def test_logs_csv(self, client):
        client.post("/api/log", json={"timestamp": "t", "type": "no_face", "detail": {"duration_ms": 1}})
        response = client.get("/api/report")

        assert response.headers["content-type"].startswith("text/csv")
        assert response.text.splitlines()[0] == "Timestamp,Event,Detail"

    def test_upload_video(self, client, test_settings):
        response = client.post(
            "/api/upload-video",
            files={"video": ("Jane_Doe.webm", b"webm-bytes", "video/webm")}
        )

        assert response.status_code == 200
        path = response.json()["path"]
        assert os.path.dirname(path) == test_settings.UPLOADS_DIR
        with open(path, "rb") as f:
            assert f.read() == b"webm-bytes"

    def test_upload_by_extension(self, client):
        response = client.post(
            "/api/upload-video",
            files={"video": ("clip.mkv", b"data", "text/plain")}
        )
        assert response.status_code == 200

    def test_upload_rejects_other_types(self, client):
        response = client.post(
            "/api/upload-video",
            files={"video": ("notes.txt", b"data", "text/plain")}
        )
        assert response.status_code == 400

    def test_upload_rejects_empty(self, client):
        response = client.post(
            "/api/upload-video",
            files={"video": ("empty.webm", b"", "video/webm")}
        )
        assert response.status_code == 400

    def test_upload_too_large(self, client, test_settings, monkeypatch):
        monkeypatch.setattr(test_settings, "MAX_UPLOAD_BYTES", 4)
        response = client.post(
            "/api/upload-video",
            files={"video": ("big.webm", b"12345", "video/webm")}
        )
        assert response.status_code == 413
