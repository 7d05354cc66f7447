import pytest
from model.job import JobStatus


@pytest.mark.asyncio
async def test_absent_record_is_none(job_repo):
    assert await job_repo.get("job_missing") is None


@pytest.mark.asyncio
async def test_processing_then_completed(job_repo, fake_redis):
    assert await job_repo.mark_processing("job_1") is True
    rec = await job_repo.get("job_1")
    assert rec.status is JobStatus.PROCESSING

    assert await job_repo.mark_completed("job_1", '{"summary": "x"}') is True
    rec = await job_repo.get("job_1")
    assert rec.status is JobStatus.COMPLETED
    assert rec.result == '{"summary": "x"}'
    assert rec.error is None
    assert "meetingnotes:jobs:job_1" in fake_redis.store


@pytest.mark.asyncio
async def test_terminal_record_is_never_overwritten(job_repo):
    await job_repo.mark_processing("job_2")
    await job_repo.mark_failed("job_2", "quota exceeded")

    assert await job_repo.mark_completed("job_2", "late result") is False
    assert await job_repo.mark_processing("job_2") is False

    rec = await job_repo.get("job_2")
    assert rec.status is JobStatus.ERROR
    assert rec.error == "quota exceeded"
    assert rec.result is None


@pytest.mark.asyncio
async def test_every_write_carries_the_ttl(job_repo, fake_redis):
    await job_repo.mark_processing("job_3")
    assert fake_redis.ttls["meetingnotes:jobs:job_3"] == 600
    await job_repo.mark_completed("job_3", "done")
    assert fake_redis.ttls["meetingnotes:jobs:job_3"] == 600


@pytest.mark.asyncio
async def test_malformed_record_reads_as_absent(job_repo, fake_redis):
    fake_redis.store["meetingnotes:jobs:job_4"] = b"{not json"
    assert await job_repo.get("job_4") is None


@pytest.mark.asyncio
async def test_delete(job_repo):
    await job_repo.mark_processing("job_5")
    assert await job_repo.delete("job_5") == 1
    assert await job_repo.get("job_5") is None
    assert await job_repo.delete("") == 0
