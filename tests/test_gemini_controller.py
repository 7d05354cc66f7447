import base64
import asyncio
from unittest.mock import AsyncMock, patch
import httpx
import pytest
from fastapi.testclient import TestClient
from controller.controller_dependencies import (
    get_key_validation_service,
    get_meeting_service,
    submit_rate_limiter,
)
from main import app
from repository.job_repository import JobRepository
from service.api_key_validation_service import ApiKeyValidationService
from service.meeting_service import MeetingService

UPLOAD_URL = "https://generativelanguage.googleapis.com/upload/v1beta/files?upload_id=abc"


async def _no_limit():
    return None


@pytest.fixture
def repo(fake_redis):
    return JobRepository(ttl_seconds=600, client=fake_redis)


@pytest.fixture
def client(repo):
    app.dependency_overrides[submit_rate_limiter] = _no_limit
    app.dependency_overrides[get_meeting_service] = lambda: MeetingService(repo, api_key="test-key")
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def keyless_client(repo):
    app.dependency_overrides[submit_rate_limiter] = _no_limit
    app.dependency_overrides[get_meeting_service] = lambda: MeetingService(repo, api_key="")
    app.dependency_overrides[get_key_validation_service] = lambda: ApiKeyValidationService(api_key="")
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_unknown_action_is_rejected(client):
    resp = client.post("/api/v1/gemini", json={"action": "delete_everything"})
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Invalid Action"}


def test_missing_server_key(keyless_client):
    resp = keyless_client.post(
        "/api/v1/gemini",
        json={"action": "authorize_upload", "mimeType": "audio/mp3", "fileSize": "10"},
    )
    assert resp.status_code == 500
    assert resp.json() == {"detail": "API_KEY not configured on server"}


def test_authorize_upload(client):
    start = AsyncMock(return_value=(UPLOAD_URL, "262144"))
    with patch("core.gemini_client.start_resumable_upload", new=start):
        resp = client.post(
            "/api/v1/gemini",
            json={"action": "authorize_upload", "mimeType": "audio/mp3", "fileSize": "4096"},
        )
    assert resp.status_code == 200
    assert resp.json() == {"uploadUrl": UPLOAD_URL, "granularity": "262144"}
    assert start.await_args.kwargs["file_size"] == 4096
    assert start.await_args.kwargs["api_key"] == "test-key"


def test_authorize_upload_invalid_size(client):
    resp = client.post(
        "/api/v1/gemini",
        json={"action": "authorize_upload", "mimeType": "audio/mp3", "fileSize": 0},
    )
    assert resp.status_code == 400
    assert "fileSize" in resp.json()["detail"]


def test_unexpected_failure_is_a_500_with_message(client):
    with patch(
        "core.gemini_client.start_resumable_upload",
        new=AsyncMock(side_effect=RuntimeError("boom")),
    ):
        resp = client.post(
            "/api/v1/gemini",
            json={"action": "authorize_upload", "mimeType": "audio/mp3", "fileSize": 1},
        )
    assert resp.status_code == 500
    assert resp.json() == {"error": "boom"}


def test_upload_chunk_relays_decoded_bytes(client):
    relay = AsyncMock(return_value={"file": {"uri": "files/abc"}})
    with patch("core.gemini_client.upload_chunk", new=relay):
        resp = client.post(
            "/api/v1/gemini",
            json={
                "action": "upload_chunk",
                "uploadUrl": UPLOAD_URL,
                "chunkData": base64.b64encode(b"audio-bytes").decode(),
                "offset": "262144",
                "isLastChunk": True,
            },
        )
    assert resp.status_code == 200
    assert resp.json() == {"file": {"uri": "files/abc"}}
    kwargs = relay.await_args.kwargs
    assert kwargs["data"] == b"audio-bytes"
    assert kwargs["offset"] == 262144
    assert kwargs["finalize"] is True


def test_upload_chunk_refuses_foreign_url(client):
    with patch("core.gemini_client.upload_chunk", new=AsyncMock()) as relay:
        resp = client.post(
            "/api/v1/gemini",
            json={
                "action": "upload_chunk",
                "uploadUrl": "https://evil.example.com/collect",
                "chunkData": base64.b64encode(b"x").decode(),
                "offset": 0,
            },
        )
    assert resp.status_code == 400
    relay.assert_not_awaited()


def test_upload_chunk_rejects_bad_base64(client):
    resp = client.post(
        "/api/v1/gemini",
        json={"action": "upload_chunk", "uploadUrl": UPLOAD_URL, "chunkData": "***", "offset": 0},
    )
    assert resp.status_code == 400


def test_check_status_absent_is_processing(client):
    resp = client.post("/api/v1/gemini", json={"action": "check_status", "jobId": "job_x"})
    assert resp.status_code == 200
    assert resp.json() == {"status": "PROCESSING"}


def test_check_status_reports_terminal_record(client, repo):
    async def seed():
        await repo.mark_processing("job_done")
        await repo.mark_completed("job_done", '{"summary": "s"}')

    asyncio.run(seed())
    resp = client.post("/api/v1/gemini", json={"action": "check_status", "jobId": "job_done"})
    assert resp.json() == {"status": "COMPLETED", "result": '{"summary": "s"}'}


def test_background_submission_is_accepted(client, repo):
    worker = AsyncMock()
    job = {
        "jobId": "job_1700000000000_abcdef01",
        "fileUri": "files/abc",
        "mimeType": "audio/mp3",
        "mode": "TRANSCRIPT_ONLY",
        "model": "gemini-2.0-flash",
    }
    with patch("controller.gemini_controller.run_background_job", new=worker):
        resp = client.post("/api/v1/gemini-background", json=job)

    assert resp.status_code == 202
    assert resp.json() == {"jobId": job["jobId"]}
    accepted, jobs = worker.await_args.args
    assert accepted.jobId == job["jobId"]
    assert jobs is repo


def test_background_submission_validates_body(client):
    resp = client.post("/api/v1/gemini-background", json={"jobId": "job_1"})
    assert resp.status_code == 422


def test_background_submission_without_key(keyless_client):
    with patch("controller.gemini_controller.run_background_job", new=AsyncMock()) as worker:
        resp = keyless_client.post(
            "/api/v1/gemini-background",
            json={"jobId": "j", "fileUri": "f", "mimeType": "audio/mp3", "model": "m"},
        )
    assert resp.status_code == 500
    worker.assert_not_awaited()


def test_validate_server_key_ok(client):
    app.dependency_overrides[get_key_validation_service] = lambda: ApiKeyValidationService(api_key="k")
    with patch(
        "service.api_key_validation_service.ping_model",
        new=AsyncMock(return_value=httpx.Response(200, json={})),
    ):
        resp = client.get("/api/v1/validate-server-key")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


def test_validate_server_key_rejected(client):
    app.dependency_overrides[get_key_validation_service] = lambda: ApiKeyValidationService(api_key="k")
    with patch(
        "service.api_key_validation_service.ping_model",
        new=AsyncMock(return_value=httpx.Response(403)),
    ):
        resp = client.get("/api/v1/validate-server-key")
    assert resp.status_code == 401
    assert "HTTP Referrer" in resp.json()["detail"]


def test_validate_server_key_missing(keyless_client):
    resp = keyless_client.get("/api/v1/validate-server-key")
    assert resp.status_code == 500


def test_healthz(client):
    with patch("main.redis_available", new=AsyncMock(return_value=False)):
        resp = client.get("/healthz")
    assert resp.json() == {"ok": True, "redis": False}
