# controller/validation_controller.py
from fastapi import APIRouter, status
from fastapi.params import Depends
from controller.controller_dependencies import (
    get_key_validation_service,
    submit_rate_limiter,
)
from model.api import ValidateKeyResponse
from service.api_key_validation_service import ApiKeyValidationService
from util.constants import InternalURIs

validation_router = APIRouter(dependencies=[Depends(submit_rate_limiter)])


@validation_router.get(
    InternalURIs.VALIDATE_SERVER_KEY,
    response_model=ValidateKeyResponse,
    status_code=status.HTTP_200_OK,
)
async def validate_server_key(
    service: ApiKeyValidationService = Depends(get_key_validation_service),
) -> ValidateKeyResponse:
    await service.validate_key()
    return ValidateKeyResponse(ok=True)
