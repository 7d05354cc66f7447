# controller/controller_dependencies.py
from fastapi_limiter.depends import RateLimiter
from config.settings import settings
from repository.job_repository import JobRepository
from service.api_key_validation_service import ApiKeyValidationService
from service.meeting_service import MeetingService

# Shared instances so tests can override them via app.dependency_overrides
submit_rate_limiter = RateLimiter(
    times=settings.RATE_LIMIT_TIMES, seconds=settings.RATE_LIMIT_SECONDS
)


def get_job_repository() -> JobRepository:
    return JobRepository()


def get_meeting_service() -> MeetingService:
    return MeetingService(get_job_repository())


def get_key_validation_service() -> ApiKeyValidationService:
    return ApiKeyValidationService()
