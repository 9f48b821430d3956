from fastapi.testclient import TestClient

import config
from errors import PersistenceError


def test_health_and_time(client):
    resp = client.get("/api/test")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Global Debate Hub API is running!"

    resp = client.get("/api/time")
    assert resp.status_code == 200
    assert isinstance(resp.json()["timestamp"], int)


def test_stats_counts_requests(client):
    client.get("/api/test")
    client.get("/api/test")
    body = client.get("/api/stats").json()
    assert body["siteStats"]["totalVisits"] == 3
    assert body["siteStats"]["todayVisits"] == 3
    assert body["latestSpeeches"] == []


def test_stats_returns_five_latest_speeches(client, feed):
    for i in range(7):
        feed.append(f"S{i}", f"speech {i}")
    latest = client.get("/api/stats").json()["latestSpeeches"]
    assert [s["speaker"] for s in latest] == ["S6", "S5", "S4", "S3", "S2"]


def test_post_and_list_speeches(client):
    resp = client.post("/api/speeches", json={"speaker": "A", "content": "hello"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    speech_id = body["speechId"]

    speeches = client.get("/api/speeches", params={"limit": 5}).json()
    assert speeches[0]["id"] == speech_id
    assert speeches[0]["debateTopic"] == "General Debate"
    assert speeches[0]["duration"] == 60


def test_post_speech_requires_speaker_and_content(client):
    resp = client.post("/api/speeches", json={"speaker": "A"})
    assert resp.status_code == 400
    assert "required" in resp.json()["error"]
    assert client.get("/api/speeches").json() == []


def test_invalid_limit_falls_back_to_default(client, feed):
    for i in range(12):
        feed.append("A", f"speech {i}")
    assert len(client.get("/api/speeches", params={"limit": "lots"}).json()) == 10


def test_register_list_and_download_resource(client):
    resp = client.post("/api/resources", json={
        "filename": "f.pdf", "originalname": "Brief.pdf", "mimetype": "application/pdf",
        "size": 10, "category": "evidence", "public_url": "https://x/y",
    })
    assert resp.status_code == 200
    body = resp.json()
    resource_id = body["resource"]["id"]
    assert body["downloadUrl"] == f"/api/resources/{resource_id}/download"

    listed = client.get("/api/resources", params={"category": "evidence", "sort": "popular"}).json()
    assert [r["id"] for r in listed] == [resource_id]

    resp = client.get(body["downloadUrl"], follow_redirects=False)
    assert resp.status_code == 307
    assert resp.headers["location"] == "https://x/y"
    assert client.get("/api/resources").json()[0]["download_count"] == 1


def test_register_resource_missing_fields(client):
    resp = client.post("/api/resources", json={"filename": "f.pdf"})
    assert resp.status_code == 400


def test_download_unknown_resource(client):
    resp = client.get("/api/resources/missing/download", follow_redirects=False)
    assert resp.status_code == 404
    assert resp.json() == {"error": "Resource not found"}


def test_upload_resource(client, store):
    resp = client.post(
        "/api/resources/upload",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        data={"category": "notes", "uploader": "Ana"},
    )
    assert resp.status_code == 200
    resource = resp.json()["resource"]
    assert resource["uploader"] == "Ana"
    assert resource["storage_path"] in store.objects


def test_upload_too_large(client, monkeypatch):
    monkeypatch.setattr(config, "MAX_UPLOAD_BYTES", 4)
    resp = client.post("/api/resources/upload", files={"file": ("big.bin", b"123456789", "application/octet-stream")})
    assert resp.status_code == 413


def test_upload_with_storage_down(client, store):
    store.configured = False
    resp = client.post("/api/resources/upload", files={"file": ("a.txt", b"x", "text/plain")})
    assert resp.status_code == 502


def test_timer_endpoints(client, broadcaster):
    inbox = broadcaster.subscribe()
    state = client.get("/api/timer").json()
    assert state["isRunning"] is False
    assert state["remainingTime"] == 300

    resp = client.post("/api/timer", json={
        "is_running": False, "remaining_time": 240, "total_time": 240, "current_speaker": "Ana",
    })
    assert resp.status_code == 200
    assert resp.json()["timer"]["currentSpeaker"] == "Ana"

    resp = client.post("/api/timer", json={
        "isRunning": False, "remainingTime": 500, "totalTime": 100, "currentSpeaker": "",
    })
    assert resp.json()["timer"]["remainingTime"] == 500

    resp = client.post("/api/timer/reset", json={"total_time": 120})
    timer = resp.json()["timer"]
    assert timer["remainingTime"] == timer["totalTime"] == 120

    assert [e for e, _ in inbox.drain()] == ["timer_update", "timer_update", "timer_reset"]


def test_timer_reset_without_body(client):
    client.post("/api/timer", json={"is_running": False, "remaining_time": 10, "total_time": 60})
    resp = client.post("/api/timer/reset")
    assert resp.status_code == 200
    assert resp.json()["timer"]["remainingTime"] == 60


def test_timer_replace_requires_numbers(client):
    resp = client.post("/api/timer", json={"is_running": True})
    assert resp.status_code == 400
    assert client.get("/api/timer").json()["isRunning"] is False


def test_persistence_failure_is_500(client, timer, monkeypatch):
    def boom(*args, **kwargs):
        raise PersistenceError("disk I/O error")

    monkeypatch.setattr(timer.db, "save_timer_state", boom)
    resp = client.post("/api/timer/reset", json={})
    assert resp.status_code == 500
    assert "disk" not in resp.json()["error"]


def test_unhandled_errors_are_generic(app, feed, monkeypatch):
    def boom(limit=10):
        raise RuntimeError("secret internals")

    monkeypatch.setattr(feed, "latest", boom)
    with TestClient(app, raise_server_exceptions=False) as c:
        resp = c.get("/api/speeches")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Something went wrong!"}


def test_spa_shell_and_static_files(client):
    resp = client.get("/")
    assert "debate hub shell" in resp.text
    resp = client.get("/some/client/route")
    assert "debate hub shell" in resp.text
    resp = client.get("/app.js")
    assert "console.log" in resp.text
    resp = client.get("/missing.css")
    assert "debate hub shell" in resp.text


def test_huge_speech_limit_is_clamped(client, feed):
    feed.append("A", "only one")
    resp = client.get("/api/speeches", params={"limit": str(10 ** 30)})
    assert resp.status_code == 200
    assert len(resp.json()) == 1


def test_huge_resource_limit_is_clamped(client):
    resp = client.get("/api/resources", params={"limit": str(10 ** 30)})
    assert resp.status_code == 200
    assert resp.json() == []


def test_huge_speech_duration_is_rejected(client):
    resp = client.post("/api/speeches", json={"speaker": "A", "content": "x", "duration": 10 ** 30})
    assert resp.status_code == 400
    assert client.get("/api/speeches").json() == []


def test_huge_timer_value_is_rejected(client):
    resp = client.post("/api/timer", json={"is_running": False, "remaining_time": 10 ** 30, "total_time": 60})
    assert resp.status_code == 400
    assert client.get("/api/timer").json()["remainingTime"] == 300


def test_malformed_body_is_400(client):
    resp = client.post("/api/timer", json={"is_running": False, "remaining_time": "soon", "total_time": 60})
    assert resp.status_code == 400
    assert "error" in resp.json()
