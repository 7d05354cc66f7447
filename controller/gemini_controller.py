# controller/gemini_controller.py
import logging
from typing import Any, Dict
from fastapi import APIRouter, BackgroundTasks, Body, Depends, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from core.background_worker import run_background_job
from model.api import (
    AuthorizeUploadRequest,
    CheckStatusRequest,
    SubmitJobResponse,
    UploadChunkRequest,
)
from model.job import ProcessingJob
from service.meeting_service import MeetingService
from util.constants import InternalURIs
from util.enums import ErrorMessage
from util.errors import AppError
from controller.controller_dependencies import get_meeting_service, submit_rate_limiter

logger = logging.getLogger(__name__)

gemini_router = APIRouter()


def _parse(model, payload: Dict[str, Any]):
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        fields = ",".join(".".join(str(x) for x in err["loc"]) for err in e.errors())
        raise AppError(
            f"{ErrorMessage.INVALID_PAYLOAD.value.message}: {fields}",
            ErrorMessage.INVALID_PAYLOAD.value.http_status,
        )


@gemini_router.post(InternalURIs.GEMINI)
async def gemini_action(
    payload: Dict[str, Any] = Body(...),
    service: MeetingService = Depends(get_meeting_service),
):
    """
    Single entry point for the three client calls, dispatched on `action`:
      authorize_upload | upload_chunk | check_status
    """
    action = payload.get("action")
    try:
        if action == "authorize_upload":
            res = await service.authorize_upload(_parse(AuthorizeUploadRequest, payload))
            return res.model_dump(exclude_none=True)

        if action == "upload_chunk":
            return await service.upload_chunk(_parse(UploadChunkRequest, payload))

        if action == "check_status":
            res = await service.check_status(_parse(CheckStatusRequest, payload))
            return res.model_dump(mode="json", exclude_none=True)
    except AppError:
        raise
    except Exception as e:
        logger.exception("gemini.action.error action=%s", action)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e) or type(e).__name__},
        )

    raise AppError(
        ErrorMessage.INVALID_ACTION.value.message,
        ErrorMessage.INVALID_ACTION.value.http_status,
    )


@gemini_router.post(
    InternalURIs.GEMINI_BACKGROUND,
    response_model=SubmitJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(submit_rate_limiter)],
)
async def gemini_background(
    job: ProcessingJob,
    background_tasks: BackgroundTasks,
    service: MeetingService = Depends(get_meeting_service),
) -> SubmitJobResponse:
    """Queue inference for an uploaded file; the client polls check_status."""
    accepted = service.accept_job(job)
    background_tasks.add_task(run_background_job, accepted, service.jobs)
    return SubmitJobResponse(jobId=accepted.jobId)
