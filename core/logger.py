"""
日志配置（loguru）
"""
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from config import LogConfig

LEVEL_MAP = {
    "error": "ERROR",
    "warning": "WARNING",
    "info": "INFO",
    "debug": "DEBUG",
    "all": "TRACE",
}


def setup_logger(log_config: LogConfig) -> Optional[Path]:
    """
    按配置安装日志处理器

    Args:
        log_config: 日志配置

    Returns:
        日志文件路径；未写日志文件时返回 None
    """
    logger.remove()
    if log_config.log_level == "off":
        return None

    level = LEVEL_MAP[log_config.log_level]
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=level,
        colorize=True
    )

    if log_config.no_log_file:
        return None

    log_file = Path(log_config.log_dir) / log_config.log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        rotation=log_config.rotation,
        retention=log_config.retention,
        encoding="utf-8",
        level=level
    )
    return log_file
