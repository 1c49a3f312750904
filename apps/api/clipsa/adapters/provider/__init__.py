"""Generation provider adapters."""

from .base import GenerationProvider, SubmissionReceipt
from .fal import FalQueueProvider
from .mock import MockGenerationProvider, RecordedSubmission

__all__ = [
    "FalQueueProvider",
    "GenerationProvider",
    "MockGenerationProvider",
    "RecordedSubmission",
    "SubmissionReceipt",
]
