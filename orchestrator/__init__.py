"""Retrieval orchestration primitives."""

from .queue import DEFAULT_MAX_QUEUE_SIZE, AdmissionQueue
from .service import BatchReport, HandlerAttempt, RetrievalOrchestrator

__all__ = [
    "AdmissionQueue",
    "BatchReport",
    "DEFAULT_MAX_QUEUE_SIZE",
    "HandlerAttempt",
    "RetrievalOrchestrator",
]
