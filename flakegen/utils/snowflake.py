"""雪花 ID 发号器。

位布局（63 位无符号整数，高位到低位）：
- 41 位：相对 epoch 的毫秒时间戳
- 5 位：datacenter_id
- 5 位：worker_id
- 12 位：同一毫秒内的序列号

注意：Snowflake 实例不是线程安全的。last_timestamp / sequence 在 next() 中无锁修改，
多线程或多协程共享同一实例时，必须由调用方串行化访问（见 flakegen.services.snowflake_service），
否则可能产生重复或非单调的 ID。
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from pydantic import BaseModel, ConfigDict

from flakegen.utils.errors import ClockRegressionError, ConfigurationError

if TYPE_CHECKING:
    from flakegen.config.generator_settings import GeneratorSettings

logger = logging.getLogger(__name__)

DEFAULT_EPOCH_DATETIME = "2022-04-15 00:00:00"
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

ID_BITS = 63
TIMESTAMP_BITS = 41
DATACENTER_ID_BITS = 5
WORKER_ID_BITS = 5
SEQUENCE_BITS = 12

MAX_WORKER_ID = (1 << WORKER_ID_BITS) - 1
MAX_DATACENTER_ID = (1 << DATACENTER_ID_BITS) - 1
MAX_SEQUENCE = (1 << SEQUENCE_BITS) - 1

WORKER_ID_SHIFT = SEQUENCE_BITS
DATACENTER_ID_SHIFT = SEQUENCE_BITS + WORKER_ID_BITS
TIMESTAMP_LEFT_SHIFT = SEQUENCE_BITS + WORKER_ID_BITS + DATACENTER_ID_BITS

DEFAULT_TIMEOUT_MS = 1000
SEQUENCE_EXHAUSTED_WAIT_MS = 1

_UINT64_MASK = (1 << 64) - 1


def default_epoch() -> int:
    """默认 epoch（秒）：按进程本地时区解析 DEFAULT_EPOCH_DATETIME。"""
    return int(time.mktime(time.strptime(DEFAULT_EPOCH_DATETIME, DATETIME_FORMAT)))


def _system_clock() -> int:
    return time.time_ns() // 1_000_000


def _bin_to_int(raw: str) -> int:
    return int(raw, 2) if raw else 0


def _local_datetime(timestamp_ms: int) -> datetime | None:
    try:
        return datetime.fromtimestamp(int(timestamp_ms / 1000))
    except (OverflowError, OSError, ValueError):
        return None


def _require_range(field: str, value: int, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(field=field, value=value, reason="must be an integer")
    if value < low or value > high:
        raise ConfigurationError(field=field, value=value, reason=f"must be in [{low}, {high}]")
    return value


class ParsedSnowflake(BaseModel):
    """parse() 的解码结果。"""

    model_config = ConfigDict(frozen=True)

    binary_length: int
    binary: str
    binary_timestamp: str
    binary_sequence: str
    binary_worker_id: str
    binary_datacenter_id: str
    timestamp: int
    sequence: int
    worker_id: int
    datacenter_id: int
    epoch: int
    datetime: str | None = None


class Snowflake:
    """单实例雪花 ID 发号器。

    说明：
    - epoch 以秒传入，内部按毫秒保存；为 None 时使用 2022-04-15 00:00:00（本地时区）
    - worker_id / datacenter_id 必须落在 5 位范围 [0, 31]，否则构造时抛 ConfigurationError
    - clock / sleep 仅用于替换时钟与等待实现（测试用），默认读取系统时钟并 time.sleep
    - 非线程安全：并发调用 next() 需要外部加锁
    """

    def __init__(
        self,
        epoch: int | None = None,
        worker_id: int = 1,
        datacenter_id: int = 1,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        random_sequence: bool = True,
        clock: Callable[[], int] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        if epoch is None:
            epoch = default_epoch()
        if isinstance(epoch, bool) or not isinstance(epoch, int):
            raise ConfigurationError(field="epoch", value=epoch, reason="must be an integer (unix seconds)")
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
            raise ConfigurationError(field="timeout_ms", value=timeout_ms, reason="must be a positive integer")

        self._epoch = epoch * 1000
        self._worker_id = _require_range("worker_id", worker_id, 0, MAX_WORKER_ID)
        self._datacenter_id = _require_range("datacenter_id", datacenter_id, 0, MAX_DATACENTER_ID)
        self._timeout_ms = timeout_ms
        self._random_sequence = bool(random_sequence)
        self._clock = clock or _system_clock
        self._sleep = sleep or time.sleep

        self._last_timestamp = self._epoch
        self._sequence = 0

    @classmethod
    def from_settings(cls, settings: GeneratorSettings, **kwargs) -> Snowflake:
        return cls(
            settings.epoch,
            settings.worker_id,
            settings.datacenter_id,
            timeout_ms=settings.timeout_ms,
            random_sequence=settings.random_sequence,
            **kwargs,
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(epoch={self._epoch}, worker_id={self._worker_id}, "
            f"datacenter_id={self._datacenter_id})"
        )

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def worker_id(self) -> int:
        return self._worker_id

    @property
    def datacenter_id(self) -> int:
        return self._datacenter_id

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    @property
    def last_timestamp(self) -> int:
        return self._last_timestamp

    @property
    def sequence(self) -> int:
        return self._sequence

    def next(self) -> int:
        """生成一个 63 位 ID。

        时钟回拨不超过 timeout_ms 时等待后重试；同一毫秒序列号用尽时等待下一毫秒。
        单次调用累计等待超过 timeout_ms，或单次回拨超过 timeout_ms，抛 ClockRegressionError。
        """
        waited_ms = 0
        while True:
            now = self.timestamp()
            wait_ms = self._reserve(now)
            if not wait_ms:
                return self.to_snowflake_id(now - self._epoch, self._sequence)
            waited_ms = self._charge_wait(waited_ms, wait_ms, now)
            self._sleep(wait_ms / 1000)

    next_id = next

    async def next_async(self) -> int:
        """next() 的协程版本，等待时让出事件循环。"""
        waited_ms = 0
        while True:
            now = self.timestamp()
            wait_ms = self._reserve(now)
            if not wait_ms:
                return self.to_snowflake_id(now - self._epoch, self._sequence)
            waited_ms = self._charge_wait(waited_ms, wait_ms, now)
            await asyncio.sleep(wait_ms / 1000)

    def _reserve(self, now: int) -> int:
        """尝试在 now 这一毫秒占用一个序列号。

        成功时更新 last_timestamp / sequence 并返回 0；否则返回需要等待的毫秒数。
        """
        if now < self._last_timestamp:
            wait_ms = self._last_timestamp - now
            if wait_ms > self._timeout_ms:
                logger.error(
                    "clock moved backwards beyond timeout | last_timestamp=%s | now=%s | timeout_ms=%s",
                    self._last_timestamp,
                    now,
                    self._timeout_ms,
                )
                raise ClockRegressionError(
                    last_timestamp=self._last_timestamp,
                    timeout_ms=self._timeout_ms,
                    now=now,
                )
            logger.warning(
                "clock moved backwards, waiting | wait_ms=%s | last_timestamp=%s",
                wait_ms,
                self._last_timestamp,
            )
            return wait_ms

        if now == self._last_timestamp:
            # 序列号保持耗尽状态，直到时钟前进，避免同一毫秒重复发号
            if self._sequence >= MAX_SEQUENCE:
                logger.debug("sequence exhausted | timestamp=%s", now)
                return SEQUENCE_EXHAUSTED_WAIT_MS
            self._sequence += 1
        elif self._random_sequence:
            self._sequence = random.randint(0, MAX_SEQUENCE)
        else:
            self._sequence = 0

        self._last_timestamp = now
        return 0

    def _charge_wait(self, waited_ms: int, wait_ms: int, now: int) -> int:
        total = waited_ms + wait_ms
        if total > self._timeout_ms:
            logger.error(
                "snowflake wait budget exceeded | waited_ms=%s | last_timestamp=%s | timeout_ms=%s",
                total,
                self._last_timestamp,
                self._timeout_ms,
            )
            raise ClockRegressionError(
                last_timestamp=self._last_timestamp,
                timeout_ms=self._timeout_ms,
                now=now,
            )
        return total

    def to_snowflake_id(self, relative_timestamp: int, sequence: int) -> int:
        """按位布局拼装 ID，不做越界检查。"""
        return (
            (relative_timestamp << TIMESTAMP_LEFT_SHIFT)
            | (self._datacenter_id << DATACENTER_ID_SHIFT)
            | (self._worker_id << WORKER_ID_SHIFT)
            | sequence
        )

    def parse(self, snowflake_id: int) -> ParsedSnowflake:
        """按固定位宽从右向左切分二进制串，还原各字段。

        不校验输入：跨 epoch 或伪造的 ID 会得到无意义但不报错的结果。
        负数按 64 位补码处理。
        """
        binary = format(int(snowflake_id) & _UINT64_MASK, "b")

        binary_timestamp = binary[:-TIMESTAMP_LEFT_SHIFT]
        binary_datacenter_id = binary[-TIMESTAMP_LEFT_SHIFT:-DATACENTER_ID_SHIFT]
        binary_worker_id = binary[-DATACENTER_ID_SHIFT:-WORKER_ID_SHIFT]
        binary_sequence = binary[-SEQUENCE_BITS:]

        timestamp = _bin_to_int(binary_timestamp)
        issued_at = _local_datetime(timestamp + self._epoch)

        return ParsedSnowflake(
            binary_length=len(binary),
            binary=binary,
            binary_timestamp=binary_timestamp,
            binary_sequence=binary_sequence,
            binary_worker_id=binary_worker_id,
            binary_datacenter_id=binary_datacenter_id,
            timestamp=timestamp,
            sequence=_bin_to_int(binary_sequence),
            worker_id=_bin_to_int(binary_worker_id),
            datacenter_id=_bin_to_int(binary_datacenter_id),
            epoch=self._epoch,
            datetime=issued_at.strftime(DATETIME_FORMAT) if issued_at else None,
        )

    def datetime_of(self, snowflake_id: int) -> datetime | None:
        """返回 ID 的发号时间（本地时区，精度到秒）。"""
        return _local_datetime((snowflake_id >> TIMESTAMP_LEFT_SHIFT) + self._epoch)

    def short(self) -> int:
        """53 位短 ID：丢弃 worker/datacenter，仅保留时间戳与序列号。"""
        parsed = self.parse(self.next())
        return parsed.timestamp << SEQUENCE_BITS | parsed.sequence

    async def short_async(self) -> int:
        parsed = self.parse(await self.next_async())
        return parsed.timestamp << SEQUENCE_BITS | parsed.sequence

    def timestamp(self) -> int:
        """当前毫秒时间戳，是唯一读取时钟的位置。"""
        return int(self._clock())
