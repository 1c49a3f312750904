"""Durable job relay interfaces."""

from abc import ABC, abstractmethod
from typing import Any


class JobRelay(ABC):
    """Delivers a JSON body to a URL at least once, retrying on failure."""

    @property
    def uses_loopback(self) -> bool:
        """True when the relay itself runs locally and can reach loopback URLs."""
        return False

    @abstractmethod
    def publish_json(self, *, url: str, body: dict[str, Any], delay: int | None = None) -> str:
        """Publish body for delivery to url and return the relay message id."""

    def close(self) -> None:
        """Release transport resources."""


__all__ = ["JobRelay"]
