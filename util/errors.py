# util/errors.py
from typing import Optional
from fastapi import HTTPException, status


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed status & message.
    def __init__(
        self, message: str, http_status: int = status.HTTP_400_BAD_REQUEST
    ) -> None:
        super().__init__(status_code=http_status, detail=message)


class GeminiApiError(Exception):
    """Non-2xx answer from the Gemini REST API. Keeps the raw body for diagnosis."""

    def __init__(self, operation: str, status_code: int, body: str) -> None:
        self.operation = operation
        self.status_code = status_code
        self.body = body
        super().__init__(f"{operation} failed ({status_code}): {body}")


# ---------------- Client pipeline ----------------


class PipelineError(Exception):
    """Base for every fatal error of the upload / job / poll pipeline."""


class EmptyPayloadError(PipelineError):
    def __init__(self) -> None:
        super().__init__("Audio payload is empty; nothing to upload.")


class HandshakeError(PipelineError):
    def __init__(self, body: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Handshake Failed: {body}")


class ChunkUploadError(PipelineError):
    def __init__(self, offset: int, attempts: int, last_error: BaseException) -> None:
        self.offset = offset
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to upload chunk at offset {offset} after {attempts} attempts. "
            f"Last error: {last_error}"
        )


class ChunkTransportError(Exception):
    """A single segment request was rejected. Retried by the transfer engine."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Chunk upload failed [{status_code}]: {body}")


class MissingFileReferenceError(PipelineError):
    def __init__(self, response: object = None) -> None:
        self.response = response
        super().__init__(
            "Upload process completed but no File URI was returned from Google."
        )


class JobSubmissionError(PipelineError):
    def __init__(self, body: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Failed to start background job: {body}")


class BackgroundProcessingError(PipelineError):
    def __init__(self, message: str) -> None:
        self.error = message
        super().__init__(f"Background Processing Error: {message}")


class PollTimeoutError(PipelineError):
    def __init__(self, job_id: str, attempts: int) -> None:
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(
            f"Timeout: Background job {job_id} took too long to complete "
            f"({attempts} status checks)."
        )


class PipelineCancelledError(PipelineError):
    def __init__(self, phase: str) -> None:
        self.phase = phase
        super().__init__(f"Processing cancelled during {phase}.")
