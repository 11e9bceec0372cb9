"""日志配置，时间按固定时区偏移输出（默认东八区）"""
import logging
import logging.config
from datetime import datetime, timezone, timedelta

DEFAULT_TZ_OFFSET_HOURS = 8


class FixedOffsetFormatter(logging.Formatter):
    """使用固定时区偏移的日志格式化器"""

    def __init__(self, fmt=None, datefmt=None, style="%", tz_offset_hours=DEFAULT_TZ_OFFSET_HOURS):
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self.tz = timezone(timedelta(hours=tz_offset_hours))

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            return dt.strftime('%Y-%m-%d %H:%M:%S')


def get_log_config(level="INFO", tz_offset_hours=DEFAULT_TZ_OFFSET_HOURS):
    """获取 flakegen 的 dictConfig 配置"""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "flakegen.utils.logging_config.FixedOffsetFormatter",
                "fmt": "%(asctime)s | %(levelname)-8s | %(name)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "tz_offset_hours": tz_offset_hours,
            },
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "flakegen": {"handlers": ["default"], "level": level, "propagate": False},
        },
    }


def setup_logging(level="INFO", tz_offset_hours=DEFAULT_TZ_OFFSET_HOURS):
    logging.config.dictConfig(get_log_config(level=level, tz_offset_hours=tz_offset_hours))
