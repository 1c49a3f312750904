"""Mock provider for local development and tests."""

from dataclasses import dataclass
from threading import Lock
from typing import Any
from uuid import uuid4

from clipsa.adapters.provider.base import GenerationProvider, SubmissionReceipt


@dataclass(slots=True, frozen=True)
class RecordedSubmission:
    model: str
    input: dict[str, Any]
    webhook_url: str
    request_id: str


class MockGenerationProvider(GenerationProvider):
    """Accepts every request and records it; nothing ever calls the webhook back."""

    name = "mock"

    def __init__(self) -> None:
        self.submissions: list[RecordedSubmission] = []
        self._lock = Lock()

    def submit(self, model: str, *, input: dict[str, Any], webhook_url: str) -> SubmissionReceipt:
        request_id = f"mock-{uuid4()}"
        with self._lock:
            self.submissions.append(
                RecordedSubmission(model=model, input=dict(input), webhook_url=webhook_url, request_id=request_id)
            )
        return SubmissionReceipt(request_id=request_id)


__all__ = ["MockGenerationProvider", "RecordedSubmission"]
