# client/chunk_transfer.py
import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional
import httpx
from util.constants import (
    DIRECT_CHUNK_SIZE,
    PROXY_CHUNK_SIZE,
    UPLOAD_GRANULARITY,
    UploadCommands,
    UploadHeaders,
)
from util.errors import (
    ChunkTransportError,
    ChunkUploadError,
    EmptyPayloadError,
    MissingFileReferenceError,
    PipelineCancelledError,
)
from util.functions import percent
from util.timing import timed
from util.types import ProgressCallback, ProgressEvent

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Segment:
    offset: int
    length: int
    finalize: bool

    @property
    def end(self) -> int:
        return self.offset + self.length


def plan_segments(total: int, chunk_size: Optional[int]) -> List[Segment]:
    """
    Cut [0, total) into consecutive segments of `chunk_size` bytes (the last may be
    shorter). `None` means one segment. Exactly one segment is final: the one that
    ends at `total`, so an exact multiple never yields an empty trailing segment.
    """
    if total <= 0:
        raise EmptyPayloadError()
    size = total if chunk_size is None else chunk_size
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")

    out: List[Segment] = []
    offset = 0
    while offset < total:
        length = min(size, total - offset)
        out.append(Segment(offset=offset, length=length, finalize=offset + length >= total))
        offset += length
    return out


@dataclass
class UploadSession:
    """Client-side view of one resumable upload."""

    total_size: int
    mime_type: str
    upload_url: str
    offset: int = 0
    file_uri: Optional[str] = None
    finalized: bool = False

    def acknowledge(self, segment: Segment) -> None:
        """Advance past a segment the server accepted. Offsets only move forward."""
        if self.finalized:
            raise ValueError("upload already finalized")
        if segment.offset != self.offset:
            raise ValueError(
                f"out-of-order segment: expected offset {self.offset}, got {segment.offset}"
            )
        if segment.end > self.total_size:
            raise ValueError(f"segment ends at {segment.end} beyond {self.total_size}")
        if segment.finalize and segment.end != self.total_size:
            raise ValueError(f"finalize at {segment.end} before end {self.total_size}")
        self.offset = segment.end
        self.finalized = segment.finalize


def extract_file_uri(body: Any) -> Optional[str]:
    """The finalize answer is either {file: {uri}} or {uri}."""
    if not isinstance(body, dict):
        return None
    file_node = body.get("file")
    if isinstance(file_node, dict) and file_node.get("uri"):
        return str(file_node["uri"])
    if body.get("uri"):
        return str(body["uri"])
    return None


def _json_body(resp: httpx.Response) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


# ---------------- Transports ----------------


class ChunkTransport(ABC):
    """How one segment reaches the resumable session."""

    # Largest raw segment the path can carry; None means unbounded
    max_chunk_bytes: Optional[int] = None
    default_chunk_size: Optional[int] = None

    @abstractmethod
    async def send(
        self, upload_url: str, data: bytes, offset: int, finalize: bool
    ) -> Dict[str, Any]:
        """Send one segment. Returns the finalize body on the last call, {} otherwise."""
        ...


class ProxiedChunkTransport(ChunkTransport):
    """
    Browser-style path: JSON + base64 through the backend, which relays to Google.
    Serverless request bodies are capped (~6 MB), so raw segments stay <= 3 MiB.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        endpoint: str,
        max_chunk_bytes: int = PROXY_CHUNK_SIZE,
    ) -> None:
        self._http = http
        self._endpoint = endpoint
        self.max_chunk_bytes = max_chunk_bytes
        self.default_chunk_size = max_chunk_bytes

    async def send(
        self, upload_url: str, data: bytes, offset: int, finalize: bool
    ) -> Dict[str, Any]:
        payload = {
            "action": "upload_chunk",
            "uploadUrl": upload_url,
            "chunkData": base64.b64encode(data).decode("ascii"),
            "offset": str(offset),
            "isLastChunk": finalize,
        }
        resp = await self._http.post(self._endpoint, json=payload)
        if not resp.is_success:
            raise ChunkTransportError(resp.status_code, resp.text)
        return _json_body(resp) if finalize else {}


class DirectChunkTransport(ChunkTransport):
    """Raw bytes straight to the pre-authorized upload URL. No size ceiling."""

    def __init__(
        self, http: httpx.AsyncClient, default_chunk_size: Optional[int] = DIRECT_CHUNK_SIZE
    ) -> None:
        self._http = http
        self.default_chunk_size = default_chunk_size

    async def send(
        self, upload_url: str, data: bytes, offset: int, finalize: bool
    ) -> Dict[str, Any]:
        headers = {
            "Content-Type": "application/octet-stream",
            UploadHeaders.OFFSET: str(offset),
            UploadHeaders.COMMAND: (
                UploadCommands.UPLOAD_FINALIZE if finalize else UploadCommands.UPLOAD
            ),
        }
        resp = await self._http.post(upload_url, headers=headers, content=data)
        if not resp.is_success:
            raise ChunkTransportError(resp.status_code, resp.text)
        return _json_body(resp) if finalize else {}


# ---------------- Progress ----------------


class ProgressThrottle:
    """Forward upload progress at decile boundaries, and every step above 90%."""

    def __init__(self, callback: Optional[ProgressCallback]) -> None:
        self._callback = callback
        self._last_decile = -1

    def update(self, done: int, total: int) -> Optional[ProgressEvent]:
        pct = percent(done, total)
        decile = int(pct // 10)
        if decile <= self._last_decile and pct <= 90:
            return None
        self._last_decile = max(decile, self._last_decile)
        event = ProgressEvent(
            phase="upload",
            percent=pct,
            message=f"Uploaded {done / 1024 / 1024:.2f} of {total / 1024 / 1024:.2f} MB ({pct:.0f}%)",
        )
        logger.info("upload.progress pct=%.1f bytes=%d total=%d", pct, done, total)
        if self._callback is not None:
            self._callback(event)
        return event


# ---------------- Engine ----------------


class ChunkTransferEngine:
    """
    Drives one resumable upload to completion:
      - segments go out strictly in offset order, one at a time
      - the last segment carries "upload, finalize" and nothing follows it
      - each segment gets `max_attempts` tries with a fixed `retry_delay`
      - the finalize answer must contain the file reference
    """

    def __init__(
        self,
        transport: ChunkTransport,
        chunk_size: Optional[int] = None,
        *,
        granularity: int = UPLOAD_GRANULARITY,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._transport = transport
        self._chunk_size = chunk_size
        self._granularity = granularity
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._sleep = sleep

    def resolve_chunk_size(
        self, total: int, granularity: Optional[int] = None
    ) -> Optional[int]:
        """
        Segment size for a payload of `total` bytes, or None for a single request.
        An explicit chunk size must be aligned and fit the transport; the
        transport default is rounded down to the alignment and clamped to the ceiling.
        """
        align = granularity or self._granularity
        ceiling = self._transport.max_chunk_bytes

        if self._chunk_size == 0:
            if ceiling is not None and total > ceiling:
                raise ValueError(
                    f"single-request upload of {total} bytes exceeds the transport limit of {ceiling}"
                )
            return None

        if self._chunk_size is None:
            default = self._transport.default_chunk_size
            if default is None:
                return None
            size = max(align, default - default % align)
            if ceiling is not None and size > ceiling:
                size = ceiling - ceiling % align
                if size <= 0:
                    raise ValueError(
                        f"alignment {align} leaves no segment size under the transport limit of {ceiling}"
                    )
            return size

        if self._chunk_size < 0 or self._chunk_size % align:
            raise ValueError(
                f"chunk size {self._chunk_size} is not a positive multiple of {align}"
            )
        if ceiling is not None and self._chunk_size > ceiling:
            raise ValueError(
                f"chunk size {self._chunk_size} exceeds the transport limit of {ceiling}"
            )
        return self._chunk_size

    async def transfer(
        self,
        payload: bytes,
        upload_url: str,
        mime_type: str,
        *,
        granularity: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """Upload `payload` and return the provider file URI."""
        total = len(payload)
        if total == 0:
            raise EmptyPayloadError()

        chunk_size = self.resolve_chunk_size(total, granularity)
        segments = plan_segments(total, chunk_size)
        session = UploadSession(total_size=total, mime_type=mime_type, upload_url=upload_url)
        throttle = ProgressThrottle(on_progress)
        view = memoryview(payload)

        logger.info(
            "upload.start bytes=%d segments=%d chunk=%s mime=%s",
            total,
            len(segments),
            chunk_size or total,
            mime_type,
        )
        with timed(logger, "upload.transfer", bytes=total, segments=len(segments)):
            for seg in segments:
                if cancel_event is not None and cancel_event.is_set():
                    raise PipelineCancelledError("upload")

                body = await self._send_with_retry(session, seg, bytes(view[seg.offset : seg.end]))
                session.acknowledge(seg)
                throttle.update(session.offset, total)

                if seg.finalize:
                    session.file_uri = extract_file_uri(body)
                    if not session.file_uri:
                        logger.error("upload.finalize.no_uri keys=%s", sorted(body))
                        raise MissingFileReferenceError(body)

        logger.info("upload.finalized uri=%s", session.file_uri)
        return session.file_uri

    async def _send_with_retry(
        self, session: UploadSession, seg: Segment, data: bytes
    ) -> Dict[str, Any]:
        last_error: Optional[BaseException] = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._transport.send(
                    session.upload_url, data, seg.offset, seg.finalize
                )
            except (httpx.HTTPError, ChunkTransportError) as e:
                last_error = e
                logger.warning(
                    "upload.chunk.failed offset=%d attempt=%d/%d err=%s",
                    seg.offset,
                    attempt,
                    self._max_attempts,
                    e,
                )
                if attempt < self._max_attempts:
                    await self._sleep(self._retry_delay)
        raise ChunkUploadError(seg.offset, self._max_attempts, last_error)
