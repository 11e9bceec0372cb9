"""
发号服务

Snowflake 本身不加锁，这里提供按实例加锁的包装：
- LockedSnowflake：threading.Lock，适用于多线程共享同一发号器
- AsyncLockedSnowflake：asyncio.Lock，适用于同一事件循环内的多个协程
锁只在单进程内生效；多进程/多实例部署需要为每个进程分配不同的 worker_id。
"""
from __future__ import annotations

import asyncio
import logging
import threading

from flakegen.config.generator_settings import GeneratorSettings, load_generator_settings
from flakegen.utils.snowflake import ParsedSnowflake, Snowflake

logger = logging.getLogger(__name__)


class LockedSnowflake:
    """线程安全的发号器包装"""

    def __init__(self, generator: Snowflake) -> None:
        self._generator = generator
        self._lock = threading.Lock()

    @property
    def generator(self) -> Snowflake:
        return self._generator

    def next(self) -> int:
        with self._lock:
            return self._generator.next()

    def short(self) -> int:
        with self._lock:
            return self._generator.short()

    def parse(self, snowflake_id: int) -> ParsedSnowflake:
        """解码是纯函数，不需要加锁"""
        return self._generator.parse(snowflake_id)

    def to_snowflake_id(self, relative_timestamp: int, sequence: int) -> int:
        return self._generator.to_snowflake_id(relative_timestamp, sequence)


class AsyncLockedSnowflake:
    """协程安全的发号器包装"""

    def __init__(self, generator: Snowflake) -> None:
        self._generator = generator
        self._lock = asyncio.Lock()

    @property
    def generator(self) -> Snowflake:
        return self._generator

    async def next(self) -> int:
        async with self._lock:
            return await self._generator.next_async()

    async def short(self) -> int:
        async with self._lock:
            return await self._generator.short_async()

    def parse(self, snowflake_id: int) -> ParsedSnowflake:
        return self._generator.parse(snowflake_id)


_instance: LockedSnowflake | None = None
_instance_lock = threading.Lock()


def get_snowflake_service(settings: GeneratorSettings | None = None) -> LockedSnowflake:
    """获取进程级默认发号器（首次调用时按环境变量创建）"""
    global _instance
    if _instance is None:
        with _instance_lock:
            if _instance is None:
                resolved = settings or load_generator_settings()
                _instance = LockedSnowflake(Snowflake.from_settings(resolved))
                logger.info(
                    "snowflake service created | worker_id=%s | datacenter_id=%s | epoch=%s",
                    resolved.worker_id,
                    resolved.datacenter_id,
                    _instance.generator.epoch,
                )
    return _instance


def reset_snowflake_service() -> None:
    """丢弃默认发号器，下次获取时重新读取配置"""
    global _instance
    with _instance_lock:
        _instance = None


def generate_snowflake_id() -> str:
    return str(get_snowflake_service().next())
