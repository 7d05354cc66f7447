# repository/job_repository.py
import logging
from typing import Final, Optional
from redis.asyncio import Redis
from config.cache import get_redis
from config.settings import settings
from model.job import JobRecord, JobStatus
from repository.namespaces import JOBS

KEY_PREFIX: Final[str] = JOBS

logger = logging.getLogger(__name__)


class JobRepository:
    """
    Flow:
    - One JSON value per job id: {status, result?, error?}.
    - The background worker writes PROCESSING first, then exactly one terminal record.
    - Terminal records are never overwritten.
    - Every write carries a TTL so records of abandoned jobs expire on their own.
    """

    def __init__(
        self,
        ttl_seconds: int = settings.PERSISTENCE_TTL_SECONDS,
        client: Optional[Redis] = None,
    ) -> None:
        self._ttl = int(ttl_seconds)
        self._redis = client

    async def _client(self) -> Redis:
        if self._redis is not None:
            return self._redis
        return await get_redis()

    @staticmethod
    def _key(job_id: str) -> str:
        return f"{KEY_PREFIX}:{job_id}"

    # ---------------- Core CRUD ----------------

    async def get(self, job_id: str) -> Optional[JobRecord]:
        if not job_id:
            return None
        r = await self._client()
        raw = await r.get(self._key(job_id))
        if raw is None:
            return None
        try:
            return JobRecord.model_validate_json(raw)
        except ValueError:
            logger.error("job.record.malformed job=%s", job_id)
            return None

    async def _put(self, job_id: str, record: JobRecord) -> None:
        r = await self._client()
        payload = record.model_dump_json(exclude_none=True).encode("utf-8")
        await r.set(self._key(job_id), payload, ex=self._ttl)

    async def delete(self, job_id: str) -> int:
        if not job_id:
            return 0
        r = await self._client()
        return int(await r.delete(self._key(job_id)))

    # ---------------- Lifecycle transitions ----------------

    async def mark_processing(self, job_id: str) -> bool:
        """Returns False (and writes nothing) when the job already reached a terminal state."""
        current = await self.get(job_id)
        if current is not None and current.status.terminal:
            logger.warning(
                "job.transition.rejected job=%s from=%s to=PROCESSING",
                job_id,
                current.status.value,
            )
            return False
        await self._put(job_id, JobRecord(status=JobStatus.PROCESSING))
        return True

    async def mark_completed(self, job_id: str, result: str) -> bool:
        return await self._finish(
            job_id, JobRecord(status=JobStatus.COMPLETED, result=result)
        )

    async def mark_failed(self, job_id: str, error: str) -> bool:
        return await self._finish(job_id, JobRecord(status=JobStatus.ERROR, error=error))

    async def _finish(self, job_id: str, record: JobRecord) -> bool:
        current = await self.get(job_id)
        if current is not None and current.status.terminal:
            logger.warning(
                "job.transition.rejected job=%s from=%s to=%s",
                job_id,
                current.status.value,
                record.status.value,
            )
            return False
        await self._put(job_id, record)
        logger.info("job.finished job=%s status=%s", job_id, record.status.value)
        return True
