# client/processor.py
import asyncio
import logging
from typing import Optional
import httpx
from client.chunk_transfer import (
    ChunkTransferEngine,
    ChunkTransport,
    DirectChunkTransport,
    ProxiedChunkTransport,
)
from client.handshake import UploadAuthorizationClient
from client.jobs import JobPoller, JobSubmissionClient
from client.result_parser import parse_meeting_result
from config.settings import settings
from model.meeting import MeetingResult, ProcessingMode
from util.constants import DEFAULT_MIME_TYPE, InternalURIs
from util.enums import UploadTransportKind
from util.errors import EmptyPayloadError, PipelineCancelledError, PipelineError
from util.functions import resolve_mime_type
from util.timing import timed
from util.types import LogCallback, PipelinePhase, ProgressCallback, ProgressEvent

logger = logging.getLogger(__name__)


class MeetingProcessor:
    """
    One audio payload in, structured meeting notes out:

      handshake -> chunked upload -> job submission -> polling -> parsing

    Each call to `process` is an independent pipeline; instances hold no
    per-request state, so concurrent calls are safe. Any PipelineError aborts
    the whole run. The caller still owns the audio and can simply retry.
    """

    def __init__(
        self,
        base_url: str = settings.BACKEND_BASE_URL,
        *,
        transport: str = settings.UPLOAD_TRANSPORT,
        chunk_size: Optional[int] = settings.CHUNK_SIZE_BYTES,
        chunk_attempts: int = settings.CHUNK_MAX_ATTEMPTS,
        chunk_retry_delay: float = settings.CHUNK_RETRY_DELAY_SECONDS,
        poll_interval: float = settings.POLL_INTERVAL_SECONDS,
        poll_attempts: int = settings.POLL_MAX_ATTEMPTS,
        timeout: float = settings.CLIENT_HTTP_TIMEOUT_SECONDS,
        http: Optional[httpx.AsyncClient] = None,
        sleep=asyncio.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport_kind = UploadTransportKind(transport)
        self._chunk_size = chunk_size
        self._chunk_attempts = chunk_attempts
        self._chunk_retry_delay = chunk_retry_delay
        self._poll_interval = poll_interval
        self._poll_attempts = poll_attempts
        self._timeout = timeout
        self._http = http
        self._sleep = sleep

    @property
    def action_endpoint(self) -> str:
        return f"{self._base_url}{InternalURIs.GEMINI}"

    @property
    def background_endpoint(self) -> str:
        return f"{self._base_url}{InternalURIs.GEMINI_BACKGROUND}"

    def _make_transport(self, http: httpx.AsyncClient) -> ChunkTransport:
        if self._transport_kind == UploadTransportKind.DIRECT:
            return DirectChunkTransport(http)
        return ProxiedChunkTransport(http, self.action_endpoint)

    def _poller(self, http: httpx.AsyncClient) -> JobPoller:
        return JobPoller(
            http,
            self.action_endpoint,
            interval=self._poll_interval,
            max_attempts=self._poll_attempts,
            sleep=self._sleep,
        )

    async def _run(self, work):
        if self._http is not None:
            return await work(self._http)
        async with httpx.AsyncClient(timeout=self._timeout) as http:
            return await work(http)

    async def process(
        self,
        audio: bytes,
        mime_type: Optional[str] = None,
        mode: ProcessingMode = ProcessingMode.ALL,
        model: str = settings.GEMINI_MODEL,
        *,
        filename: Optional[str] = None,
        on_log: Optional[LogCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> MeetingResult:
        if not audio:
            raise EmptyPayloadError()
        resolved = resolve_mime_type(filename, mime_type, DEFAULT_MIME_TYPE)
        reporter = _Reporter(on_log, on_progress, cancel_event)

        async def work(http: httpx.AsyncClient) -> MeetingResult:
            reporter.log(
                f"Starting upload flow. Size: {len(audio) / 1024 / 1024:.2f} MB. Type: {resolved}",
                phase="authorize",
            )
            auth = await UploadAuthorizationClient(http, self.action_endpoint).authorize(
                resolved, len(audio)
            )
            reporter.log("Upload URL received.", phase="authorize")

            reporter.checkpoint("upload")
            engine = ChunkTransferEngine(
                self._make_transport(http),
                self._chunk_size,
                max_attempts=self._chunk_attempts,
                retry_delay=self._chunk_retry_delay,
                sleep=self._sleep,
            )
            file_uri = await engine.transfer(
                audio,
                auth.upload_url,
                resolved,
                granularity=auth.granularity,
                on_progress=reporter.progress,
                cancel_event=cancel_event,
            )
            reporter.log(f"File upload finalized. URI: {file_uri}", phase="upload")

            reporter.checkpoint("submit")
            job_id = await JobSubmissionClient(http, self.background_endpoint).submit(
                file_uri, resolved, mode, model
            )
            reporter.log(
                f"Job started with ID: {job_id}. Waiting for results...", phase="submit"
            )

            raw = await self._poller(http).wait_for_result(
                job_id, on_log=reporter.poll_log, cancel_event=cancel_event
            )
            reporter.log("Job Completed! Result received.", phase="poll")
            result = parse_meeting_result(raw, mode)
            reporter.log("Notes ready.", phase="done", pct=100.0)
            return result

        try:
            with timed(logger, "pipeline.process", bytes=len(audio), mode=mode.value):
                return await self._run(work)
        except PipelineError as e:
            logger.error("pipeline.failed err=%s msg=%s", type(e).__name__, e)
            raise

    async def resume(
        self,
        job_id: str,
        mode: ProcessingMode = ProcessingMode.ALL,
        *,
        on_log: Optional[LogCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> MeetingResult:
        """Poll an already submitted job again, e.g. after a PollTimeoutError."""

        async def work(http: httpx.AsyncClient) -> MeetingResult:
            raw = await self._poller(http).wait_for_result(
                job_id, on_log=on_log, cancel_event=cancel_event
            )
            return parse_meeting_result(raw, mode)

        with timed(logger, "pipeline.resume", job=job_id):
            return await self._run(work)


class _Reporter:
    """Fans pipeline messages out to the optional caller hooks."""

    def __init__(
        self,
        on_log: Optional[LogCallback],
        on_progress: Optional[ProgressCallback],
        cancel_event: Optional[asyncio.Event],
    ) -> None:
        self._on_log = on_log
        self._on_progress = on_progress
        self._cancel_event = cancel_event

    def checkpoint(self, phase: str) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise PipelineCancelledError(phase)

    def log(self, message: str, *, phase: PipelinePhase, pct: Optional[float] = None) -> None:
        logger.info("pipeline.%s %s", phase, message)
        if self._on_log is not None:
            self._on_log(message)
        if self._on_progress is not None and pct is not None:
            self._on_progress(ProgressEvent(phase=phase, percent=pct, message=message))

    def poll_log(self, message: str) -> None:
        if self._on_log is not None:
            self._on_log(message)

    def progress(self, event: ProgressEvent) -> None:
        if self._on_log is not None:
            self._on_log(event["message"])
        if self._on_progress is not None:
            self._on_progress(event)
