# service/meeting_service.py
import base64
import binascii
import logging
import time
from typing import Any, Dict
from urllib.parse import urlsplit
from config.settings import settings
from core import gemini_client
from model.api import (
    AuthorizeUploadRequest,
    AuthorizeUploadResponse,
    CheckStatusRequest,
    CheckStatusResponse,
    UploadChunkRequest,
)
from model.job import JobStatus, ProcessingJob
from repository.job_repository import JobRepository
from util.enums import ErrorMessage
from util.errors import AppError, GeminiApiError

logger = logging.getLogger(__name__)


class MeetingService:
    """
    Trusted intermediary between the pipeline client and Gemini.
    Holds the API key; the client only ever sees pre-authorized upload URLs.
    """

    def __init__(self, jobs: JobRepository, api_key: str | None = None) -> None:
        self._jobs = jobs
        self._api_key = (
            api_key if api_key is not None else settings.GEMINI_API_KEY
        ).strip().strip('"')
        base = urlsplit(settings.GEMINI_API_BASE)
        self._upload_origin = (base.scheme, base.netloc)

    def _require_key(self) -> str:
        if not self._api_key:
            raise AppError(
                ErrorMessage.MISSING_SERVER_KEY.value.message,
                ErrorMessage.MISSING_SERVER_KEY.value.http_status,
            )
        return self._api_key

    async def authorize_upload(
        self, req: AuthorizeUploadRequest
    ) -> AuthorizeUploadResponse:
        """
        Open a resumable session on behalf of the client.
        Provider rejections surface as 502 with the raw provider body.
        """
        key = self._require_key()
        try:
            upload_url, granularity = await gemini_client.start_resumable_upload(
                api_key=key,
                mime_type=req.mimeType,
                file_size=req.fileSize,
                display_name=f"Meeting_Audio_{int(time.time() * 1000)}",
            )
        except GeminiApiError as e:
            logger.error("upload.authorize.rejected status=%d", e.status_code)
            raise AppError(str(e), ErrorMessage.INTERNAL_ERROR.value.http_status)
        logger.info("upload.authorize.ok bytes=%d mime=%s", req.fileSize, req.mimeType)
        return AuthorizeUploadResponse(uploadUrl=upload_url, granularity=granularity)

    def _check_upload_url(self, upload_url: str) -> None:
        # The proxy must not become an open relay
        parts = urlsplit(upload_url)
        if (parts.scheme, parts.netloc) != self._upload_origin:
            raise AppError(
                ErrorMessage.FOREIGN_UPLOAD_URL.value.message,
                ErrorMessage.FOREIGN_UPLOAD_URL.value.http_status,
            )

    async def upload_chunk(self, req: UploadChunkRequest) -> Dict[str, Any]:
        """
        Relay one base64 segment to the resumable session.
        Returns the provider finalize body on the last chunk, {} otherwise.
        """
        self._require_key()
        self._check_upload_url(req.uploadUrl)
        try:
            data = base64.b64decode(req.chunkData, validate=True)
        except (binascii.Error, ValueError):
            raise AppError(
                ErrorMessage.INVALID_PAYLOAD.value.message,
                ErrorMessage.INVALID_PAYLOAD.value.http_status,
            )

        try:
            body = await gemini_client.upload_chunk(
                upload_url=req.uploadUrl,
                data=data,
                offset=req.offset,
                finalize=req.isLastChunk,
            )
        except GeminiApiError as e:
            logger.warning(
                "upload.chunk.rejected offset=%d status=%d", req.offset, e.status_code
            )
            raise AppError(str(e), ErrorMessage.INTERNAL_ERROR.value.http_status)

        logger.info(
            "upload.chunk.ok offset=%d bytes=%d final=%s",
            req.offset,
            len(data),
            req.isLastChunk,
        )
        return body

    async def check_status(self, req: CheckStatusRequest) -> CheckStatusResponse:
        """Absent record == not started yet; reported as PROCESSING."""
        record = await self._jobs.get(req.jobId)
        if record is None:
            return CheckStatusResponse(status=JobStatus.PROCESSING)
        return CheckStatusResponse(
            status=record.status, result=record.result, error=record.error
        )

    def accept_job(self, job: ProcessingJob) -> ProcessingJob:
        self._require_key()
        logger.info(
            "job.accepted job=%s mode=%s model=%s", job.jobId, job.mode.value, job.model
        )
        return job

    @property
    def jobs(self) -> JobRepository:
        return self._jobs
