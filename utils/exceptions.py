"""
Custom Exceptions
Error taxonomy for the retrieval engine.
"""
from typing import List, Optional


class MediaEngineError(Exception):
    """Base class for every retrieval engine error."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(MediaEngineError):
    """Invalid or missing configuration."""
    pass


class InvalidInputError(MediaEngineError):
    """Malformed input URL. Never retried."""

    def __init__(self, message: str, url: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.url = url


class NoHandlersAvailableError(MediaEngineError):
    """The service/initiator combination has no eligible handler."""

    def __init__(self, message: str, initiator: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.initiator = initiator


class HandlerError(MediaEngineError):
    """A single backend failed to produce media."""

    def __init__(self, message: str, handler: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.handler = handler


class ValidationError(HandlerError):
    """Remote content failed content-type or size checks."""
    pass


class TranscodeFailedError(MediaEngineError):
    """Transcoder exited nonzero, timed out, or left no output file."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        timed_out: bool = False,
        **kwargs,
    ):
        super().__init__(message, kwargs)
        self.returncode = returncode
        self.timed_out = timed_out


class ProcessAbortedError(HandlerError):
    """A supervised process was stopped early by one of its stream watchers."""
    pass


class AllHandlersFailedError(MediaEngineError):
    """Every eligible handler in the fallback chain failed."""

    def __init__(self, message: str, attempts: Optional[List] = None, **kwargs):
        super().__init__(message, kwargs)
        self.attempts = list(attempts or [])
