from __future__ import annotations

from .callback import CallbackStatus
from .conversion import ConversionJob, ConversionStatus, JobStatus
from .document import DocumentRecord

__all__ = [
    "CallbackStatus",
    "ConversionJob",
    "ConversionStatus",
    "DocumentRecord",
    "JobStatus",
]
