"""
统一日志系统 - 基于 loguru

日志级别策略:
- DEBUG: 请求生命周期细节（调度、取消钩子、归一化路径）
- INFO:  请求开始/结束、取消通知、驱动注册
- WARNING: 可恢复的问题（上游非 2xx、解析降级）
- ERROR: 无法投递的错误、事件处理器异常

输出策略:
- 控制台: 开发环境=DEBUG, 容器环境=INFO (通过 LOG_LEVEL 控制)
- 文件: 只记录 aiunify 自身的日志，按大小轮转，可通过 LOG_DISABLE_FILE 关闭

aiunify 作为库被嵌入时，只管理自己添加的 sink，不会移除宿主应用的 loguru 配置
（import 时仍会移除 loguru 的默认 stderr sink，避免重复输出）。

使用方式:
    from aiunify.core.logger import logger

    logger.info("[{}] 请求已调度", request_id)
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from loguru import logger

IS_DOCKER = (
    os.path.exists("/.dockerenv")
    or os.environ.get("DOCKER_CONTAINER", "false").lower() == "true"
)

CONSOLE_FORMAT_DEV = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{thread.name}</magenta> | "
    "<cyan>{message}</cyan>"
)

CONSOLE_FORMAT_PROD = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {thread.name} | {message}"

# 回调可能运行在亲和线程上，文件日志带线程名便于排查投递线程
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name} | "
    "{name}:{function}:{line} | {message}"
)

_sink_ids: list[int] = []


def _own_records(record: dict) -> bool:  # type: ignore[type-arg]
    return record["name"].startswith("aiunify")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() == "true"


def configure_logging(
    level: str | None = None,
    *,
    file_log: bool | None = None,
    log_dir: str | Path | None = None,
) -> list[int]:
    """
    (重新)配置 aiunify 的日志 sink

    只移除上一次由本函数添加的 sink，可重复调用。

    Args:
        level: 控制台级别，None 时读取 LOG_LEVEL
        file_log: 是否写文件，None 时读取 LOG_DISABLE_FILE
        log_dir: 日志目录，None 时读取 LOG_DIR，默认 ./logs

    Returns:
        新添加的 sink id 列表
    """
    for sink_id in _sink_ids:
        logger.remove(sink_id)
    _sink_ids.clear()

    console_level = (level or os.getenv("LOG_LEVEL") or ("INFO" if IS_DOCKER else "DEBUG")).upper()
    if file_log is None:
        file_log = not _env_flag("LOG_DISABLE_FILE")

    if IS_DOCKER:
        _sink_ids.append(
            logger.add(
                sys.stdout,
                format=CONSOLE_FORMAT_PROD,
                level=console_level,
                colorize=False,
                backtrace=False,
                diagnose=False,
            )
        )
    else:
        _sink_ids.append(
            logger.add(
                sys.stdout,
                format=CONSOLE_FORMAT_DEV,
                level=console_level,
                colorize=True,
            )
        )

    if file_log:
        directory = Path(log_dir or os.getenv("LOG_DIR", "logs"))
        directory.mkdir(parents=True, exist_ok=True)

        # enqueue=False: 同步写入，保证跨线程回调的日志顺序
        file_log_config = {
            "format": FILE_FORMAT,
            "filter": _own_records,
            "rotation": "50 MB",
            "retention": "14 days",
            "compression": "gz",
            "enqueue": False,
            "encoding": "utf-8",
            "catch": True,
        }
        if IS_DOCKER:
            file_log_config["backtrace"] = False
            file_log_config["diagnose"] = False

        _sink_ids.append(
            logger.add(directory / "app.log", level="DEBUG", **file_log_config)  # type: ignore[call-overload]
        )

        error_log_config = file_log_config.copy()
        error_log_config["rotation"] = "20 MB"
        _sink_ids.append(
            logger.add(directory / "error.log", level="ERROR", **error_log_config)  # type: ignore[call-overload]
        )

    return list(_sink_ids)


# loguru 默认的 stderr sink (id 0)
try:
    logger.remove(0)
except ValueError:
    pass

configure_logging()

# httpx 自带的请求日志与我们的请求日志重复
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

__all__ = ["logger", "configure_logging"]
