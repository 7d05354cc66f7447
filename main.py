import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_limiter import FastAPILimiter
from starlette.middleware.cors import CORSMiddleware
import routes
from config.cache import close_redis, get_redis, redis_available
from config.settings import settings
from util.enums import Color, Environment
from util.logger import init_logger

logger = logging.getLogger(__name__)


async def _client_identifier(request: Request) -> str:
    """Rate-limit key. Behind a proxy the first X-Forwarded-For hop is the caller."""
    if settings.TRUST_PROXY:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_logger()
    print(f"{Color.GREEN}Connecting job store...{Color.RESET}")
    try:
        redis = await get_redis()
    except Exception:
        # Job status lives in Redis; without it no job can ever complete
        logger.exception("startup.redis.unavailable")
        raise
    await FastAPILimiter.init(redis, identifier=_client_identifier)

    if not settings.GEMINI_API_KEY:
        logger.warning("startup.gemini_key.missing uploads and jobs will be refused")
    logger.info(
        "startup.ready env=%s model=%s ttl=%ds",
        settings.APP_ENV,
        settings.GEMINI_MODEL,
        settings.PERSISTENCE_TTL_SECONDS,
    )
    print(f"{Color.BLUE}Meeting notes backend started{Color.RESET}")

    try:
        yield
    finally:
        try:
            await close_redis()
        except Exception:
            logger.exception("shutdown.redis.close_failed")
        print(f"{Color.RED}Meeting notes backend stopped{Color.RESET}")


app: FastAPI = FastAPI(title="Meeting Notes Pipeline", lifespan=lifespan)

# Browser clients call the proxy endpoints directly
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.ALLOWED_ORIGIN],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)


@app.get("/healthz")
async def healthz():
    return {"ok": True, "redis": await redis_available()}


@app.exception_handler(429)
async def too_many_requests(request: Request, exc):
    logger.warning("ratelimit.hit path=%s", request.url.path)
    return JSONResponse(
        status_code=429,
        content={
            "ok": False,
            "error": "rate_limited",
            "message": f"Too many requests. Try again in {settings.RATE_LIMIT_SECONDS}s.",
        },
        headers={"Retry-After": str(settings.RATE_LIMIT_SECONDS)},
    )


routes.register_routes(app)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=settings.APP_ENV == Environment.DEV,
    )
