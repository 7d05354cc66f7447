# client/handshake.py
import logging
from dataclasses import dataclass
from typing import Optional
import httpx
from util.errors import EmptyPayloadError, HandshakeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadAuthorization:
    upload_url: str
    # Alignment required by the provider for chunked uploads, when advertised
    granularity: Optional[int] = None


class UploadAuthorizationClient:
    """
    Asks the trusted backend to open a resumable upload session.
    The provider key never leaves the backend; we only get a short-lived URL.
    No retry here: a rejected handshake means config or quota, not a blip.
    """

    def __init__(self, http: httpx.AsyncClient, endpoint: str) -> None:
        self._http = http
        self._endpoint = endpoint

    async def authorize(self, mime_type: str, file_size: int) -> UploadAuthorization:
        if file_size <= 0:
            raise EmptyPayloadError()

        payload = {
            "action": "authorize_upload",
            "mimeType": mime_type,
            "fileSize": str(file_size),
        }
        try:
            resp = await self._http.post(self._endpoint, json=payload)
        except httpx.HTTPError as e:
            logger.error("handshake.request_error err=%s", type(e).__name__)
            raise HandshakeError(f"{type(e).__name__}: {e}") from e

        if not resp.is_success:
            logger.error("handshake.rejected status=%d", resp.status_code)
            raise HandshakeError(resp.text, status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError:
            raise HandshakeError(f"Malformed handshake response: {resp.text}")

        upload_url = data.get("uploadUrl") if isinstance(data, dict) else None
        if not upload_url:
            raise HandshakeError(f"Handshake response has no uploadUrl: {resp.text}")

        granularity = None
        raw = data.get("granularity")
        if raw not in (None, ""):
            try:
                granularity = int(raw)
            except (TypeError, ValueError):
                logger.warning("handshake.granularity.ignored value=%r", raw)

        logger.info("handshake.ok bytes=%d mime=%s", file_size, mime_type)
        return UploadAuthorization(upload_url=upload_url, granularity=granularity)
