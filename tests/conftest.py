import os
import sys
from pathlib import Path
from typing import Dict, Optional
import pytest

# Ensure repo root is on sys.path so `import client...` works in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Must be set before config.settings is imported anywhere
os.environ["APP_ENV"] = "test"
os.environ.setdefault("GEMINI_API_KEY", "test-key")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")


class FakeRedis:
    """In-memory stand-in for the redis.asyncio calls the repositories make."""

    def __init__(self) -> None:
        self.store: Dict[str, bytes] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("redis down")

    async def get(self, key: str) -> Optional[bytes]:
        self._check()
        return self.store.get(key)

    async def set(self, key: str, value, ex: Optional[int] = None) -> bool:
        self._check()
        self.store[key] = value if isinstance(value, bytes) else str(value).encode("utf-8")
        self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for k in keys:
            if self.store.pop(k, None) is not None:
                self.ttls.pop(k, None)
                removed += 1
        return removed

    async def expire(self, key: str, seconds: int) -> bool:
        if key not in self.store:
            return False
        self.ttls[key] = seconds
        return True

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self) -> None:
        return None


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def job_repo(fake_redis):
    from repository.job_repository import JobRepository

    return JobRepository(ttl_seconds=600, client=fake_redis)


@pytest.fixture
def no_sleep():
    """Injectable sleep that records requested delays and only yields to the loop."""
    import asyncio

    calls = []

    async def _sleep(seconds: float) -> None:
        calls.append(seconds)
        await asyncio.sleep(0)

    _sleep.calls = calls  # type: ignore[attr-defined]
    return _sleep
