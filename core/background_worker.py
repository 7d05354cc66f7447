# core/background_worker.py
import logging
from typing import Optional
from config.settings import settings
from core import gemini_client
from model.job import ProcessingJob
from repository.job_repository import JobRepository
from service.api_key_validation_service import ApiKeyValidationService
from util.errors import AppError, GeminiApiError
from util.functions import clean_error_message
from util.timing import timed

logger = logging.getLogger(__name__)


class EmptyModelResponseError(RuntimeError):
    pass


def _error_message(exc: BaseException) -> str:
    if isinstance(exc, GeminiApiError):
        cleaned = clean_error_message(exc.body)
        return f"{exc.operation} failed ({exc.status_code}): {cleaned}"
    if isinstance(exc, AppError):
        return str(exc.detail)
    return clean_error_message(str(exc)) or type(exc).__name__


async def run_background_job(
    job: ProcessingJob,
    jobs: JobRepository,
    *,
    api_key: Optional[str] = None,
    preflight: Optional[bool] = None,
) -> None:
    """
    Consume one job reference and leave exactly one terminal record behind:
      1) PROCESSING, before anything else, so an early poll sees a defined state
      2) optional key pre-flight
      3) wait for the uploaded file to become ACTIVE
      4) generate transcript/notes for the requested mode
      5) COMPLETED with the raw text, or ERROR with a cleaned message
    Never raises: every failure ends up in the job record.
    """
    key = (api_key if api_key is not None else settings.GEMINI_API_KEY).strip().strip('"')
    do_preflight = settings.GEMINI_PREFLIGHT if preflight is None else preflight

    try:
        started = await jobs.mark_processing(job.jobId)
    except Exception:
        # Without a store there is nobody to report to
        logger.exception("worker.store.unavailable job=%s", job.jobId)
        return
    if not started:
        logger.warning("worker.skip.terminal job=%s", job.jobId)
        return

    logger.info(
        "worker.start job=%s mode=%s model=%s mime=%s",
        job.jobId,
        job.mode.value,
        job.model,
        job.mimeType,
    )

    try:
        with timed(logger, "worker.job", job=job.jobId):
            if not key:
                raise RuntimeError("API_KEY not configured on server")

            if do_preflight:
                await ApiKeyValidationService(api_key=key).validate_key()

            await gemini_client.wait_for_file_active(file_uri=job.fileUri, api_key=key)

            text = await gemini_client.generate_content(
                api_key=key,
                model=job.model,
                file_uri=job.fileUri,
                mime_type=job.mimeType,
                mode=job.mode,
            )
            if not text.strip():
                raise EmptyModelResponseError("Gemini returned an empty response")
    except Exception as exc:
        message = _error_message(exc)
        logger.error("worker.failed job=%s err=%s", job.jobId, type(exc).__name__)
        await _record_failure(jobs, job.jobId, message)
        return

    try:
        await jobs.mark_completed(job.jobId, text)
    except Exception as exc:
        logger.exception("worker.persist.error job=%s", job.jobId)
        await _record_failure(jobs, job.jobId, f"Could not store result: {exc}")
        return
    logger.info("worker.completed job=%s chars=%d", job.jobId, len(text))


async def _record_failure(jobs: JobRepository, job_id: str, message: str) -> None:
    try:
        await jobs.mark_failed(job_id, message)
    except Exception:
        # Record expires with its TTL; the poller times out
        logger.exception("worker.persist.error job=%s", job_id)
