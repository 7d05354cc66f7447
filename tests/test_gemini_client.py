import json
import httpx
import pytest
from core import gemini_client
from model.meeting import ProcessingMode
from util.errors import GeminiApiError

BASE = "https://generativelanguage.googleapis.com"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize(
    "mode,props",
    [
        (ProcessingMode.ALL, ["transcription", "summary", "conclusions", "actionItems"]),
        (ProcessingMode.NOTES_ONLY, ["summary", "conclusions", "actionItems"]),
        (ProcessingMode.TRANSCRIPT_ONLY, ["transcription"]),
    ],
)
def test_build_task_schema_matches_mode(mode, props):
    instruction, schema = gemini_client.build_task(mode)
    assert instruction
    assert list(schema["properties"]) == props
    assert schema["required"] == props


@pytest.mark.asyncio
async def test_start_resumable_upload_sends_protocol_headers():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            headers={
                "x-goog-upload-url": f"{BASE}/upload/v1beta/files?upload_id=xyz",
                "x-goog-upload-chunk-granularity": "262144",
            },
        )

    async with _client(handler) as c:
        url, granularity = await gemini_client.start_resumable_upload(
            api_key="secret",
            mime_type="audio/mp3",
            file_size=1234,
            display_name="Meeting_Audio_1",
            api_base=BASE,
            client=c,
        )

    assert url.endswith("upload_id=xyz")
    assert "secret" not in url
    assert granularity == "262144"
    req = seen[0]
    assert req.url.params["key"] == "secret"
    assert req.headers["X-Goog-Upload-Protocol"] == "resumable"
    assert req.headers["X-Goog-Upload-Command"] == "start"
    assert req.headers["X-Goog-Upload-Header-Content-Length"] == "1234"
    assert req.headers["X-Goog-Upload-Header-Content-Type"] == "audio/mp3"
    assert json.loads(req.content) == {"file": {"display_name": "Meeting_Audio_1"}}


@pytest.mark.asyncio
async def test_start_resumable_upload_rejected():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, text='{"error": {"message": "denied"}}')

    async with _client(handler) as c:
        with pytest.raises(GeminiApiError) as ei:
            await gemini_client.start_resumable_upload(
                api_key="k", mime_type="audio/mp3", file_size=1, display_name="d",
                api_base=BASE, client=c,
            )
    assert ei.value.status_code == 403
    assert "denied" in ei.value.body


@pytest.mark.asyncio
async def test_wait_for_file_active_polls_until_active():
    states = iter(["PROCESSING", "PROCESSING", "ACTIVE"])
    sleeps = []

    async def fake_sleep(s):
        sleeps.append(s)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"state": next(states)})

    async with _client(handler) as c:
        await gemini_client.wait_for_file_active(
            file_uri=f"{BASE}/v1beta/files/abc", api_key="k",
            max_checks=5, interval=0.5, sleep=fake_sleep, client=c,
        )
    assert sleeps == [0.5, 0.5]


@pytest.mark.asyncio
async def test_wait_for_file_active_failures():
    async def fake_sleep(s):
        return None

    def not_found(request):
        return httpx.Response(404)

    def failed(request):
        return httpx.Response(200, json={"state": "FAILED"})

    def stuck(request):
        return httpx.Response(200, json={"state": "PROCESSING"})

    for handler, exc in ((not_found, GeminiApiError), (failed, RuntimeError), (stuck, TimeoutError)):
        async with _client(handler) as c:
            with pytest.raises(exc):
                await gemini_client.wait_for_file_active(
                    file_uri=f"{BASE}/v1beta/files/abc", api_key="k",
                    max_checks=3, interval=0, sleep=fake_sleep, client=c,
                )


@pytest.mark.asyncio
async def test_generate_content_payload_and_text():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": '{"summary":'}, {"text": ' "s"}'}]}}]},
        )

    async with _client(handler) as c:
        text = await gemini_client.generate_content(
            api_key="k", model="gemini-2.0-flash", file_uri="files/abc",
            mime_type="audio/mp3", mode=ProcessingMode.NOTES_ONLY, api_base=BASE, client=c,
        )

    assert text == '{"summary": "s"}'
    req = seen[0]
    assert req.url.path == "/v1beta/models/gemini-2.0-flash:generateContent"
    body = json.loads(req.content)
    assert body["contents"][0]["parts"][0] == {
        "file_data": {"file_uri": "files/abc", "mime_type": "audio/mp3"}
    }
    cfg = body["generation_config"]
    assert cfg["response_mime_type"] == "application/json"
    assert cfg["response_schema"]["required"] == ["summary", "conclusions", "actionItems"]
    assert "meeting secretary" in body["system_instruction"]["parts"][0]["text"]


@pytest.mark.asyncio
async def test_generate_content_without_candidates_returns_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"promptFeedback": {"blockReason": "OTHER"}})

    async with _client(handler) as c:
        text = await gemini_client.generate_content(
            api_key="k", model="m", file_uri="f", mime_type="audio/mp3",
            mode=ProcessingMode.ALL, api_base=BASE, client=c,
        )
    assert text == ""
