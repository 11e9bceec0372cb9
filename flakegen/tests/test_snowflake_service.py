import asyncio
import threading

from flakegen.config.generator_settings import GeneratorSettings
from flakegen.services import snowflake_service
from flakegen.services.snowflake_service import AsyncLockedSnowflake, LockedSnowflake
from flakegen.utils.snowflake import Snowflake


def test_locked_generator_should_stay_unique_across_threads():
    service = LockedSnowflake(Snowflake(worker_id=4, datacenter_id=2))
    results: list[list[int]] = [[] for _ in range(8)]

    def worker(slot: int) -> None:
        for _ in range(2_000):
            results[slot].append(service.next())

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    all_ids = [x for chunk in results for x in chunk]
    assert len(set(all_ids)) == len(all_ids) == 16_000
    for chunk in results:
        assert chunk == sorted(chunk)
    parsed = service.parse(all_ids[0])
    assert (parsed.worker_id, parsed.datacenter_id) == (4, 2)


def test_locked_generator_short_should_be_53_bits():
    service = LockedSnowflake(Snowflake())

    value = service.short()

    assert 0 < value < (1 << 53)
    assert service.to_snowflake_id(1, 0) == service.generator.to_snowflake_id(1, 0)


def test_async_locked_generator_should_stay_unique_across_tasks():
    service = AsyncLockedSnowflake(Snowflake(worker_id=1, datacenter_id=3))

    async def _run() -> list[int]:
        ids = await asyncio.gather(*(service.next() for _ in range(500)))
        shorts = await asyncio.gather(*(service.short() for _ in range(50)))
        assert len(set(shorts)) == 50
        return list(ids)

    ids = asyncio.run(_run())

    assert len(set(ids)) == 500
    assert service.parse(ids[-1]).datacenter_id == 3


def test_get_snowflake_service_should_be_singleton_built_from_env(monkeypatch):
    monkeypatch.setenv("SNOWFLAKE_WORKER_ID", "9")
    monkeypatch.setenv("SNOWFLAKE_DATACENTER_ID", "8")
    snowflake_service.reset_snowflake_service()
    try:
        first = snowflake_service.get_snowflake_service()
        second = snowflake_service.get_snowflake_service()

        assert first is second
        assert (first.generator.worker_id, first.generator.datacenter_id) == (9, 8)

        value = snowflake_service.generate_snowflake_id()
        assert value.isdigit()
        assert first.parse(int(value)).worker_id == 9
    finally:
        snowflake_service.reset_snowflake_service()


def test_get_snowflake_service_should_accept_explicit_settings():
    snowflake_service.reset_snowflake_service()
    try:
        service = snowflake_service.get_snowflake_service(GeneratorSettings(worker_id=0, datacenter_id=0))

        assert service.generator.worker_id == 0
        assert service.generator.datacenter_id == 0
    finally:
        snowflake_service.reset_snowflake_service()
