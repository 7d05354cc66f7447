# core/gemini_client.py
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional
import httpx
from config.settings import settings
from model.meeting import ProcessingMode
from util.constants import ExternalURIs, UploadCommands, UploadHeaders
from util.errors import GeminiApiError
from util.timing import timed

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@asynccontextmanager
async def _http(
    client: Optional[httpx.AsyncClient], timeout: float
) -> AsyncIterator[httpx.AsyncClient]:
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout) as c:
        yield c


def _with_key(url: str, api_key: str) -> str:
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{httpx.QueryParams({'key': api_key})}"


def _raise_for_status(resp: httpx.Response, operation: str) -> None:
    if resp.is_success:
        return
    body = resp.text
    raise GeminiApiError(operation, resp.status_code, body)


def _json_or_empty(resp: httpx.Response) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


# ---------------- Resumable upload ----------------


async def start_resumable_upload(
    *,
    api_key: str,
    mime_type: str,
    file_size: int,
    display_name: str,
    api_base: str = settings.GEMINI_API_BASE,
    client: Optional[httpx.AsyncClient] = None,
) -> tuple[str, Optional[str]]:
    """
    Open a resumable upload session. Returns (upload_url, granularity_hint).
    The returned URL is pre-authorized and never carries the API key.
    """
    headers = {
        UploadHeaders.PROTOCOL: "resumable",
        UploadHeaders.COMMAND: UploadCommands.START,
        UploadHeaders.HEADER_CONTENT_LENGTH: str(file_size),
        UploadHeaders.HEADER_CONTENT_TYPE: mime_type,
        "Content-Type": "application/json",
    }
    url = _with_key(f"{api_base}{ExternalURIs.UPLOAD_FILES}", api_key)
    with timed(logger, "gemini.upload.start", bytes=file_size, mime=mime_type):
        async with _http(client, 30.0) as c:
            resp = await c.post(
                url, headers=headers, json={"file": {"display_name": display_name}}
            )
            _raise_for_status(resp, "Google Handshake")

    upload_url = resp.headers.get(UploadHeaders.UPLOAD_URL)
    if not upload_url:
        raise GeminiApiError("Google Handshake", resp.status_code, "No upload URL returned")
    return upload_url, resp.headers.get(UploadHeaders.CHUNK_GRANULARITY)


async def upload_chunk(
    *,
    upload_url: str,
    data: bytes,
    offset: int,
    finalize: bool,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """
    Send one segment. Returns the provider JSON for the finalize call, {} otherwise.
    """
    headers = {
        "Content-Length": str(len(data)),
        "Content-Type": "application/octet-stream",
        UploadHeaders.OFFSET: str(offset),
        UploadHeaders.COMMAND: (
            UploadCommands.UPLOAD_FINALIZE if finalize else UploadCommands.UPLOAD
        ),
    }
    async with _http(client, settings.GEMINI_HTTP_TIMEOUT_SECONDS) as c:
        resp = await c.post(upload_url, headers=headers, content=data)
        _raise_for_status(resp, "Google Chunk Upload")
    if not finalize:
        return {}
    return _json_or_empty(resp)


# ---------------- File state ----------------


async def wait_for_file_active(
    *,
    file_uri: str,
    api_key: str,
    max_checks: int = settings.FILE_ACTIVE_MAX_CHECKS,
    interval: float = settings.FILE_ACTIVE_INTERVAL_SECONDS,
    sleep: Sleep = asyncio.sleep,
    client: Optional[httpx.AsyncClient] = None,
) -> None:
    """
    Gemini processes uploaded media before it can be referenced.
    Poll the file resource until state == ACTIVE. 404 and FAILED are fatal,
    other non-2xx answers are retried.
    """
    url = _with_key(file_uri, api_key)
    with timed(logger, "gemini.file.wait", checks=max_checks):
        async with _http(client, 30.0) as c:
            for attempt in range(1, max_checks + 1):
                resp = await c.get(url)
                if resp.status_code == 404:
                    raise GeminiApiError("File polling", 404, "File not found during polling")
                if resp.is_success:
                    data = _json_or_empty(resp)
                    state = data.get("state") or (data.get("file") or {}).get("state")
                    if state == "ACTIVE":
                        logger.info("gemini.file.active attempt=%d", attempt)
                        return
                    if state == "FAILED":
                        raise RuntimeError(f"File processing failed state: {state}")
                else:
                    logger.warning(
                        "gemini.file.poll.retry attempt=%d status=%d",
                        attempt,
                        resp.status_code,
                    )
                await sleep(interval)
    raise TimeoutError("Timeout waiting for file to become ACTIVE")


# ---------------- Generation ----------------

_TRANSCRIPTION = {"type": "STRING", "description": "Full verbatim transcription"}
_SUMMARY = {"type": "STRING", "description": "A concise summary"}
_CONCLUSIONS = {
    "type": "ARRAY",
    "items": {"type": "STRING"},
    "description": "Key conclusions, decisions and insights",
}
_ACTION_ITEMS = {
    "type": "ARRAY",
    "items": {"type": "STRING"},
    "description": "Explicit action items",
}


def build_task(mode: ProcessingMode) -> tuple[str, Dict[str, Any]]:
    """
    Instruction and response schema for a processing mode.
    Every property listed in the schema is also required.
    """
    if mode == ProcessingMode.TRANSCRIPT_ONLY:
        instruction = (
            "Your task is to transcribe the audio verbatim. "
            "Do not generate a summary or notes."
        )
        props = {"transcription": _TRANSCRIPTION}
    elif mode == ProcessingMode.NOTES_ONLY:
        instruction = "Your task is to create structured meeting notes."
        props = {
            "summary": _SUMMARY,
            "conclusions": _CONCLUSIONS,
            "actionItems": _ACTION_ITEMS,
        }
    else:
        instruction = (
            "Your task is to transcribe the audio verbatim "
            "AND create structured meeting notes."
        )
        props = {
            "transcription": _TRANSCRIPTION,
            "summary": _SUMMARY,
            "conclusions": _CONCLUSIONS,
            "actionItems": _ACTION_ITEMS,
        }
    schema = {"type": "OBJECT", "properties": props, "required": list(props)}
    return instruction, schema


def _first_text(data: Dict[str, Any]) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    return "".join(
        p.get("text") or "" for p in parts if isinstance(p, dict)
    )


async def generate_content(
    *,
    api_key: str,
    model: str,
    file_uri: str,
    mime_type: str,
    mode: ProcessingMode,
    api_base: str = settings.GEMINI_API_BASE,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    Ask the model for transcript/notes of an uploaded file. Returns the raw text
    (a JSON document when the model honours the response schema, possibly "").
    """
    instruction, schema = build_task(mode)
    payload = {
        "contents": [
            {
                "parts": [
                    {"file_data": {"file_uri": file_uri, "mime_type": mime_type}},
                    {"text": instruction + "\n\nReturn the output strictly in JSON format."},
                ]
            }
        ],
        "system_instruction": {"parts": [{"text": settings.SYSTEM_PROMPT}]},
        "generation_config": {
            "response_mime_type": "application/json",
            "response_schema": schema,
            "max_output_tokens": settings.GEMINI_MAX_OUTPUT_TOKENS,
        },
    }
    url = _with_key(f"{api_base}{ExternalURIs.MODELS}/{model}:generateContent", api_key)
    with timed(logger, "gemini.generate", model=model, mode=mode.value):
        async with _http(client, settings.GEMINI_HTTP_TIMEOUT_SECONDS) as c:
            resp = await c.post(url, json=payload)
            _raise_for_status(resp, "Generation")
    text = _first_text(_json_or_empty(resp))
    logger.info("gemini.generate.result model=%s chars=%d", model, len(text))
    return text


async def ping_model(
    *,
    api_key: str,
    model: str = settings.GEMINI_PREFLIGHT_MODEL,
    api_base: str = settings.GEMINI_API_BASE,
    client: Optional[httpx.AsyncClient] = None,
) -> httpx.Response:
    """Smallest possible request to check that `api_key` is accepted from this host."""
    url = _with_key(f"{api_base}{ExternalURIs.MODELS}/{model}:generateContent", api_key)
    payload = {
        "contents": [{"parts": [{"text": "ping"}]}],
        "generation_config": {"max_output_tokens": 1},
    }
    async with _http(client, 10.0) as c:
        return await c.post(url, json=payload)
