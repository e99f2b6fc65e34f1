"""
Logging configuration using Loguru.

Provides colorized console output in development and a rotating file sink in production.
"""
import sys
from pathlib import Path
from loguru import logger

from appforge.config import settings


def setup_logging() -> None:
    """
    Configure loguru logger with appropriate handlers and formatting.

    Development mode:
    - Colorized console output
    - Detailed format with file:line info

    Production mode:
    - Plain console output (for container logs)
    - File output with rotation and compression
    """

    # Remove default handler
    logger.remove()

    dev_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )

    prod_format = "{message}"

    logger.configure(extra={"name": "appforge"})

    logger.add(
        sys.stdout,
        format=dev_format if settings.debug else prod_format,
        level=settings.log_level,
        colorize=settings.debug,
        backtrace=settings.debug,
        diagnose=settings.debug,
    )

    # File handler (production only)
    if settings.is_production:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            format=prod_format,
            level="INFO",
            rotation="500 MB",
            retention="10 days",
            compression="zip",
            enqueue=True,
        )

    logger.info(f"Logging configured - Level: {settings.log_level}")
    logger.debug(f"Debug mode: {settings.debug}")
