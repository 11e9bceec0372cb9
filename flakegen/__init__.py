"""flakegen：无中心协调的 63 位雪花 ID 发号器。"""

from .utils.errors import ClockRegressionError, ConfigurationError, SnowflakeError
from .utils.snowflake import ParsedSnowflake, Snowflake
from .config.generator_settings import GeneratorSettings, load_generator_settings
from .services.snowflake_service import (
    AsyncLockedSnowflake,
    LockedSnowflake,
    generate_snowflake_id,
    get_snowflake_service,
)

__all__ = [
    "Snowflake",
    "ParsedSnowflake",
    "SnowflakeError",
    "ClockRegressionError",
    "ConfigurationError",
    "GeneratorSettings",
    "load_generator_settings",
    "LockedSnowflake",
    "AsyncLockedSnowflake",
    "get_snowflake_service",
    "generate_snowflake_id",
]
