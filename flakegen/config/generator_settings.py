"""发号器运行时配置。

说明：
- worker_id / datacenter_id 由外部分配（配置中心或环境变量），这里只负责读取
- 空值回退默认值；非整数直接抛 ConfigurationError，避免静默使用错误的 worker_id
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from flakegen.utils.errors import ConfigurationError
from flakegen.utils.snowflake import DEFAULT_TIMEOUT_MS

logger = logging.getLogger(__name__)

ENV_EPOCH = "SNOWFLAKE_EPOCH"
ENV_WORKER_ID = "SNOWFLAKE_WORKER_ID"
ENV_DATACENTER_ID = "SNOWFLAKE_DATACENTER_ID"
ENV_TIMEOUT_MS = "SNOWFLAKE_TIMEOUT_MS"
ENV_RANDOM_SEQUENCE = "SNOWFLAKE_RANDOM_SEQUENCE"


def _is_truthy(raw: str | None) -> bool:
    return str(raw or "").strip().lower() in {"1", "true", "yes", "on"}


def _read_int(env: Mapping[str, str], key: str, default: int | None) -> int | None:
    raw = str(env.get(key) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(field=key, value=raw, reason="must be an integer") from None


@dataclass(frozen=True)
class GeneratorSettings:
    """Snowflake 构造参数集合。"""

    epoch: int | None = None
    worker_id: int = 1
    datacenter_id: int = 1
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    random_sequence: bool = True


def load_generator_settings(env: Mapping[str, str] | None = None) -> GeneratorSettings:
    """从环境变量构建配置，env 为空时读取 os.environ。"""

    if env is None:
        env = os.environ

    raw_random = str(env.get(ENV_RANDOM_SEQUENCE) or "").strip()
    settings = GeneratorSettings(
        epoch=_read_int(env, ENV_EPOCH, None),
        worker_id=_read_int(env, ENV_WORKER_ID, 1),
        datacenter_id=_read_int(env, ENV_DATACENTER_ID, 1),
        timeout_ms=_read_int(env, ENV_TIMEOUT_MS, DEFAULT_TIMEOUT_MS),
        random_sequence=_is_truthy(raw_random) if raw_random else True,
    )
    logger.debug("snowflake settings loaded | settings=%s", settings)
    return settings
