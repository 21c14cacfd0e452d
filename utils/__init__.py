"""
Utils Module
Shared logging, error and validation helpers.
"""
from .logger import setup_logger, get_logger
from .exceptions import (
    MediaEngineError,
    ConfigurationError,
    InvalidInputError,
    NoHandlersAvailableError,
    HandlerError,
    ValidationError,
    TranscodeFailedError,
    ProcessAbortedError,
    AllHandlersFailedError,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "MediaEngineError",
    "ConfigurationError",
    "InvalidInputError",
    "NoHandlersAvailableError",
    "HandlerError",
    "ValidationError",
    "TranscodeFailedError",
    "ProcessAbortedError",
    "AllHandlersFailedError",
]
