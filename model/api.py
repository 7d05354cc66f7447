# model/api.py
from typing import Optional
from pydantic import BaseModel, Field
from model.job import JobStatus


class AuthorizeUploadRequest(BaseModel):
    mimeType: str = Field(min_length=1)
    # Sent as a string by browsers; accept both
    fileSize: int = Field(gt=0)


class AuthorizeUploadResponse(BaseModel):
    uploadUrl: str
    granularity: Optional[str] = None


class UploadChunkRequest(BaseModel):
    uploadUrl: str = Field(min_length=1)
    chunkData: str
    offset: int = Field(ge=0)
    isLastChunk: bool = False


class CheckStatusRequest(BaseModel):
    jobId: str = Field(min_length=1)


class CheckStatusResponse(BaseModel):
    status: JobStatus
    result: Optional[str] = None
    error: Optional[str] = None


class SubmitJobResponse(BaseModel):
    jobId: str


class ValidateKeyResponse(BaseModel):
    ok: bool
