# client/jobs.py
import asyncio
import logging
from typing import Awaitable, Callable, Optional
import httpx
from model.job import JobStatus, ProcessingJob
from model.meeting import ProcessingMode
from util.errors import (
    BackgroundProcessingError,
    JobSubmissionError,
    PipelineCancelledError,
    PollTimeoutError,
)
from util.functions import new_job_id
from util.types import LogCallback

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class JobSubmissionClient:
    """
    Queues background inference for an uploaded file and returns the job id.
    Submission and execution are decoupled: callers with a bounded connection
    lifetime poll instead of holding one long request open.
    """

    def __init__(self, http: httpx.AsyncClient, endpoint: str) -> None:
        self._http = http
        self._endpoint = endpoint

    async def submit(
        self,
        file_uri: str,
        mime_type: str,
        mode: ProcessingMode,
        model: str,
        job_id: Optional[str] = None,
    ) -> str:
        job = ProcessingJob(
            jobId=job_id or new_job_id(),
            fileUri=file_uri,
            mimeType=mime_type,
            mode=mode,
            model=model,
        )
        try:
            resp = await self._http.post(self._endpoint, json=job.model_dump(mode="json"))
        except httpx.HTTPError as e:
            logger.error("job.submit.request_error job=%s err=%s", job.jobId, type(e).__name__)
            raise JobSubmissionError(f"{type(e).__name__}: {e}") from e

        if resp.status_code != 202 and not resp.is_success:
            logger.error("job.submit.rejected job=%s status=%d", job.jobId, resp.status_code)
            raise JobSubmissionError(resp.text, status_code=resp.status_code)

        logger.info("job.submitted job=%s model=%s mode=%s", job.jobId, model, mode.value)
        return job.jobId


class JobPoller:
    """
    Waits for a job record to reach a terminal state.

    Unknown / PROCESSING -> keep polling
    COMPLETED + result   -> return the raw result text
    ERROR                -> BackgroundProcessingError
    attempts exhausted   -> PollTimeoutError

    A failed status request (network error, unexpected status, bad JSON) is
    logged and the loop carries on.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        endpoint: str,
        *,
        interval: float = 3.0,
        max_attempts: int = 200,
        report_every: int = 5,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._http = http
        self._endpoint = endpoint
        self._interval = interval
        self._max_attempts = max_attempts
        self._report_every = max(1, report_every)
        self._sleep = sleep

    async def wait_for_result(
        self,
        job_id: str,
        *,
        on_log: Optional[LogCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        for attempt in range(1, self._max_attempts + 1):
            await self._sleep(self._interval)
            if cancel_event is not None and cancel_event.is_set():
                raise PipelineCancelledError("polling")

            if attempt % self._report_every == 0:
                logger.info("job.poll job=%s attempt=%d", job_id, attempt)
                if on_log is not None:
                    on_log(f"Checking status (Attempt {attempt})...")

            data = await self._check(job_id, attempt)
            if data is None:
                continue

            status = data.get("status")
            if status == JobStatus.COMPLETED.value and data.get("result"):
                logger.info("job.poll.completed job=%s attempt=%d", job_id, attempt)
                return str(data["result"])
            if status == JobStatus.ERROR.value:
                logger.warning("job.poll.error job=%s", job_id)
                raise BackgroundProcessingError(str(data.get("error") or "unknown error"))

        logger.error("job.poll.timeout job=%s attempts=%d", job_id, self._max_attempts)
        raise PollTimeoutError(job_id, self._max_attempts)

    async def _check(self, job_id: str, attempt: int) -> Optional[dict]:
        try:
            resp = await self._http.post(
                self._endpoint, json={"action": "check_status", "jobId": job_id}
            )
        except httpx.HTTPError as e:
            logger.warning(
                "job.poll.request_error job=%s attempt=%d err=%s",
                job_id,
                attempt,
                type(e).__name__,
            )
            return None

        if resp.status_code != 200:
            # 404 == status store has nothing yet
            if resp.status_code != 404:
                logger.warning(
                    "job.poll.unexpected job=%s attempt=%d status=%d",
                    job_id,
                    attempt,
                    resp.status_code,
                )
            return None

        try:
            data = resp.json()
        except ValueError:
            logger.warning("job.poll.bad_json job=%s attempt=%d", job_id, attempt)
            return None
        return data if isinstance(data, dict) else None
