from __future__ import annotations

from typing import Any


class SnowflakeError(Exception):
    """发号器统一异常。"""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ClockRegressionError(SnowflakeError):
    """系统时钟回拨超过容忍阈值，无法继续发号。

    说明：
    - last_timestamp 为上一次成功发号的毫秒时间戳
    - timeout_ms 为允许等待的最长回拨时间
    - 该异常不会在内部重试，调用方需要自行记录或告警
    """

    def __init__(self, *, last_timestamp: int, timeout_ms: int, now: int | None = None) -> None:
        self.last_timestamp = last_timestamp
        self.timeout_ms = timeout_ms
        self.now = now
        super().__init__(
            "clock_regression",
            f"[Timeout({timeout_ms})] couldn't generate snowflake id, os time is backwards. "
            f"[last timestamp:{last_timestamp}]",
        )


class ConfigurationError(SnowflakeError):
    """构造参数或环境变量超出允许范围。"""

    def __init__(self, *, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        super().__init__("invalid_config", f"{field}={value!r}: {reason}")
