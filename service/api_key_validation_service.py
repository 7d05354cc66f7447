# service/api_key_validation_service.py
import httpx
from fastapi import status
from config.settings import settings
from core.gemini_client import ping_model
from util.enums import ErrorMessage
from util.errors import AppError
import logging

logger = logging.getLogger(__name__)

REFERRER_HINT = (
    "API Key Rejected by Google in Server Environment. "
    "CAUSE: Likely 'HTTP Referrer' restrictions in Google Cloud Console; "
    "server requests have no referrer. "
    "FIX: Remove restrictions or use a separate Server Key."
)


class ApiKeyValidationService:
    """
    Checks that the server-held Gemini key is accepted from this host.
    Used by the background worker pre-flight and the validate-server-key route.
    """

    def __init__(self, api_key: str | None = None) -> None:
        self._api_key: str = (api_key if api_key is not None else settings.GEMINI_API_KEY).strip().strip('"')
        self._model: str = settings.GEMINI_PREFLIGHT_MODEL

    async def validate_key(self) -> None:
        if not self._api_key:
            raise AppError(
                ErrorMessage.MISSING_SERVER_KEY.value.message,
                ErrorMessage.MISSING_SERVER_KEY.value.http_status,
            )

        try:
            res = await ping_model(api_key=self._api_key, model=self._model)
        except httpx.RequestError as e:
            logger.error("api.key.request_error err=%s", type(e).__name__)
            raise AppError(
                ErrorMessage.INTERNAL_ERROR.value.message,
                ErrorMessage.INTERNAL_ERROR.value.http_status,
            )

        if res.status_code // 100 == 2:
            logger.info("api.key.validated model=%s", self._model)
            return

        if res.status_code in (
            status.HTTP_400_BAD_REQUEST,
            status.HTTP_401_UNAUTHORIZED,
            status.HTTP_403_FORBIDDEN,
        ):
            logger.warning("api.key.invalid status=%d", res.status_code)
            raise AppError(
                f"{ErrorMessage.INVALID_SERVER_KEY.value.message}. {REFERRER_HINT}",
                ErrorMessage.INVALID_SERVER_KEY.value.http_status,
            )

        logger.error("api.key.unexpected status=%d", res.status_code)
        raise AppError(
            ErrorMessage.INTERNAL_ERROR.value.message,
            ErrorMessage.INTERNAL_ERROR.value.http_status,
        )
