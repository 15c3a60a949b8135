# utils/log.py
from loguru import logger
import sys

from config import config


def setup_logger(level: str | None = None, log_file: str | None = "./logs/log_file.log"):
    logger.remove()

    # console
    logger.add(
        sys.stdout,
        level=level or config.log_level,
        format="<green>{time:HH:mm:ss}</green> | "
               "<level>{level}</level> | "
               "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>"
    )

    # file
    if log_file:
        logger.add(
            log_file,
            level="INFO",
            rotation="10 MB",
            compression="gz",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{line} - {message}"
        )


def short(addr: str, n=4):
    return f"{addr[:n]}...{addr[-n:]}"
