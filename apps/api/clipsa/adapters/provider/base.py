"""Generative media provider interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True, frozen=True)
class SubmissionReceipt:
    request_id: str


class GenerationProvider(ABC):
    """Queue-based provider that reports completion to a webhook URL."""

    name: str = "provider"

    @abstractmethod
    def submit(self, model: str, *, input: dict[str, Any], webhook_url: str) -> SubmissionReceipt:
        """Enqueue a generation request; raise ProviderSubmissionFailure when rejected."""

    def close(self) -> None:
        """Release transport resources."""


__all__ = ["GenerationProvider", "SubmissionReceipt"]
