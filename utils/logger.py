"""
Logger Configuration
Unified logging setup for the retrieval engine.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler
from rich.console import Console


# Shared console instance
console = Console()

# Log formats
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_FORMAT_SIMPLE = "%(message)s"

# Default log directory
LOG_DIR = Path(__file__).parent.parent / "logs"

ROOT_LOGGER = "media_engine"


def setup_logger(
    name: str = ROOT_LOGGER,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    use_rich: bool = True,
) -> logging.Logger:
    """
    Configure a logger.

    Args:
        name: logger name
        level: log level
        log_file: optional file name inside ``LOG_DIR``; the file always
            records at DEBUG so process output survives a quiet console
        use_rich: render console output with Rich

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(min(level, logging.DEBUG) if log_file else level)

    # Never stack handlers on repeated setup
    if logger.handlers:
        return logger

    if use_rich:
        console_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
        )
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE))
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if log_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_path = LOG_DIR / log_file

        file_handler = logging.FileHandler(file_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """
    Get a logger, configuring it with defaults on first use.

    Args:
        name: logger name

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logger(name)

    return logger


def get_transcoder_logger() -> logging.Logger:
    """Logger for ffmpeg process output."""
    return logging.getLogger(f"{ROOT_LOGGER}.ffmpeg")


def get_downloader_logger() -> logging.Logger:
    """Logger for yt-dlp process output."""
    return logging.getLogger(f"{ROOT_LOGGER}.ytdl")


def log_process_line(logger: logging.Logger, line: str, *, stream: str) -> None:
    """Log one line of external process output at a level matching its stream."""
    text = line.strip()
    if not text:
        return
    if stream == "stdout":
        logger.info(text)
    elif text.startswith("WARNING:"):
        logger.warning(text[len("WARNING:"):].strip())
    else:
        logger.error(text)
