"""End-to-end tests for the timeline, playback and export routes."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app import app
from config import get_settings
from dependencies import get_export_pipeline, get_gallery, get_playback_registry, get_timeline_repository
from services.export_jobs import export_registry
from services.export_pipeline import ArtifactPublisher, ExportPipeline
from services.playback import PlaybackRegistry
from services.timeline_store import MemoryTimelineRepository

from conftest import FakeMediaHandle, fake_fetch

CLIP_A = {"source_url": "https://cdn.example.com/a.mp4", "source_duration": 10.0, "default_duration": 5.0}
CLIP_B = {"source_url": "https://cdn.example.com/b.mp4", "source_duration": 8.0, "default_duration": 8.0}


@pytest.fixture
def client(engine, gallery):
    repository = MemoryTimelineRepository()
    registry = PlaybackRegistry(FakeMediaHandle)
    s3 = MagicMock()
    s3.is_configured.return_value = False
    pipeline = ExportPipeline(engine, ArtifactPublisher(s3, get_settings().export_dir), gallery, fetch=fake_fetch)

    app.dependency_overrides[get_timeline_repository] = lambda: repository
    app.dependency_overrides[get_gallery] = lambda: gallery
    app.dependency_overrides[get_playback_registry] = lambda: registry
    app.dependency_overrides[get_export_pipeline] = lambda: pipeline

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def session_of(client):
    return client.cookies.get(get_settings().session_cookie_name)


def add_two_clips(client):
    a = client.post("/timeline/clips", json=CLIP_A).json()
    b = client.post("/timeline/clips", json=CLIP_B).json()
    client.patch(f"/timeline/clips/{b['id']}/trim", json={"field": "start", "value": 2.0})
    return a, b


class TestTimelineRoutes:
    def test_health(self, client):
        assert client.get("/").json()["status"] == "ok"
        assert client.get("/health").json() == {"status": "healthy", "database": "not used"}

    def test_append_and_list(self, client):
        response = client.post("/timeline/clips", json=CLIP_A)

        assert response.status_code == 201
        clip = response.json()
        assert clip["trim_start"] == 0.0
        assert clip["trim_end"] == 5.0
        assert clip["clip_duration"] == 5.0

        timeline = client.get("/timeline").json()
        assert [c["id"] for c in timeline["clips"]] == [clip["id"]]
        assert timeline["total_duration"] == 5.0

    def test_append_uses_render_duration_fallback(self, client):
        clip = client.post("/timeline/clips", json={
            "source_url": "https://cdn.example.com/long.mp4",
            "source_duration": 30.0,
        }).json()
        assert clip["trim_end"] == get_settings().default_render_duration

    def test_append_rejects_bad_duration(self, client):
        response = client.post("/timeline/clips", json={**CLIP_A, "source_duration": 0})
        assert response.status_code == 400
        assert client.get("/timeline").json()["clips"] == []

    @pytest.mark.parametrize("source_url", ["/etc/passwd", "file:///etc/passwd"])
    def test_append_rejects_server_files(self, client, source_url):
        response = client.post("/timeline/clips", json={**CLIP_A, "source_url": source_url})

        assert response.status_code == 400
        assert client.get("/timeline").json()["clips"] == []

    def test_sessions_are_isolated(self, client):
        client.post("/timeline/clips", json=CLIP_A)

        with TestClient(app) as other:
            assert other.get("/timeline").json()["clips"] == []

    def test_trim_is_clamped(self, client):
        a, _ = add_two_clips(client)

        response = client.patch(f"/timeline/clips/{a['id']}/trim", json={"field": "end", "value": 99})
        assert response.status_code == 200
        assert response.json()["trim_end"] == 10.0

    def test_trim_unknown_clip(self, client):
        response = client.patch("/timeline/clips/missing/trim", json={"field": "start", "value": 1})
        assert response.status_code == 404

    def test_move_and_remove(self, client):
        a, b = add_two_clips(client)

        timeline = client.post(f"/timeline/clips/{a['id']}/move", json={"direction": "right"}).json()
        assert [c["id"] for c in timeline["clips"]] == [b["id"], a["id"]]

        assert client.delete(f"/timeline/clips/{b['id']}").status_code == 204
        assert client.delete("/timeline/clips/nonexistent-id").status_code == 204
        assert [c["id"] for c in client.get("/timeline").json()["clips"]] == [a["id"]]

    def test_selection_and_clear(self, client):
        a, _ = add_two_clips(client)

        assert client.put("/timeline/selection", json={"clip_id": a["id"]}).json()["selected_id"] == a["id"]
        assert client.put("/timeline/selection", json={"clip_id": "missing"}).json()["selected_id"] is None

        cleared = client.delete("/timeline").json()
        assert cleared["clips"] == []
        assert cleared["total_duration"] == 0

    def test_edits_refused_while_exporting(self, client):
        a, _ = add_two_clips(client)

        with export_registry.track(session_of(client)):
            response = client.patch(f"/timeline/clips/{a['id']}/trim", json={"field": "start", "value": 1})
            assert response.status_code == 409
            assert client.post("/timeline/clips", json=CLIP_A).status_code == 409
            assert client.post("/timeline/export").status_code == 409
            assert client.post("/timeline/export/cancel").json() == {"cancelled": True}

        assert client.post("/timeline/export/cancel").json() == {"cancelled": False}
        assert len(client.get("/timeline").json()["clips"]) == 2

    def test_cancel_export(self, client):
        add_two_clips(client)
        assert client.post("/timeline/export/cancel").json() == {"cancelled": False}

        with export_registry.track(session_of(client)) as token:
            response = client.post("/timeline/export/cancel")
            assert response.status_code == 200
            assert response.json() == {"cancelled": True}
            assert token.cancelled

        # Another session's export is not touched
        with export_registry.track("someone-else") as other:
            assert client.post("/timeline/export/cancel").json() == {"cancelled": False}
            assert not other.cancelled

    def test_clear_releases_preview_session(self, client):
        add_two_clips(client)
        client.get("/timeline/playhead/frame")
        registry = app.dependency_overrides[get_playback_registry]()
        handle = registry.sessions[session_of(client)].media

        client.delete("/timeline")

        assert session_of(client) not in registry.sessions
        assert handle.commands[-1] == ("close",)


class TestPlaybackRoutes:
    def test_seek_reports_clip_position(self, client):
        _, b = add_two_clips(client)

        state = client.post("/timeline/playhead/seek", json={"time": 6}).json()

        assert state["total_duration"] == 11.0
        assert state["position"]["clip_id"] == b["id"]
        assert state["position"]["local_time"] == pytest.approx(1.0)
        assert state["position"]["source_time"] == pytest.approx(3.0)

    def test_play_and_pause(self, client):
        add_two_clips(client)

        assert client.post("/timeline/playhead/play").json()["is_playing"] is True
        paused = client.post("/timeline/playhead/pause").json()
        assert paused["is_playing"] is False
        assert paused["state"] == "paused"

    def test_trim_after_seek_clamps_playhead(self, client):
        _, b = add_two_clips(client)
        client.post("/timeline/playhead/seek", json={"time": 10})

        client.patch(f"/timeline/clips/{b['id']}/trim", json={"field": "end", "value": 3.0})

        state = client.get("/timeline/playhead").json()
        assert state["total_duration"] == pytest.approx(6.0)
        assert state["current_time"] == pytest.approx(6.0)

    def test_preview_unknown_clip(self, client):
        add_two_clips(client)
        assert client.post("/timeline/clips/missing/preview").status_code == 404

    def test_capture_frame(self, client):
        assert client.get("/timeline/playhead/frame").status_code == 404

        add_two_clips(client)
        response = client.get("/timeline/playhead/frame")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.content.startswith(b"\xff\xd8")


class TestExportRoutes:
    def test_export_empty_timeline(self, client, engine):
        response = client.post("/timeline/export")
        assert response.status_code == 400
        assert response.json()["detail"] == "Nothing to export"
        assert engine.calls == []

    def test_export_and_history(self, client):
        add_two_clips(client)

        response = client.post("/timeline/export")

        assert response.status_code == 200
        body = response.json()
        assert body["clip_count"] == 2
        assert body["duration"] == pytest.approx(11.0)
        assert client.get(body["video_url"]).status_code == 200

        history = client.get("/timeline/export/history").json()
        assert [h["export_id"] for h in history] == [body["export_id"]]

        # The lock is released once the export finishes
        assert client.delete("/timeline").status_code == 200

    def test_export_failure_is_generic(self, client, engine):
        add_two_clips(client)
        engine.fail_on = "concat"

        response = client.post("/timeline/export")

        assert response.status_code == 500
        assert response.json() == {"detail": "Video processing failed"}
        assert client.get("/timeline/export/history").json() == []
        assert len(client.get("/timeline").json()["clips"]) == 2
