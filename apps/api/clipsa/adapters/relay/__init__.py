"""Job relay adapters."""

from .base import JobRelay
from .qstash import FORWARDED_SECRET_HEADER, QStashRelay

__all__ = ["FORWARDED_SECRET_HEADER", "JobRelay", "QStashRelay"]
