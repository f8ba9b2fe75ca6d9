from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional


class ConversionStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class ConversionJob:
    """
    One attempt at converting a file through the document server.

    Ephemeral: only logged, never persisted. `key` is per attempt, so a new
    attempt for the same document always gets a new key.
    """
    key: str
    document_id: str
    source_url: str
    title: str = "source.pdf"
    source_format: str = "pdf"
    target_format: str = "docx"

    status: ConversionStatus = ConversionStatus.SUBMITTED
    attempts: int = 0
    result_url: Optional[str] = None
    error_code: Optional[int] = None

    def to_request(self) -> Dict[str, Any]:
        """Body for the document server's /converter endpoint."""
        return {
            "async": True,
            "url": self.source_url,
            "filetype": self.source_format,
            "outputtype": self.target_format,
            "key": self.key,
            "title": self.title,
        }


@dataclass(frozen=True)
class JobStatus:
    """What a single /converter submission reported back."""
    end_convert: bool = False
    file_url: Optional[str] = None
    percent: Optional[int] = None
    error: Optional[int] = None

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "JobStatus":
        error = data.get("error")
        percent = data.get("percent")
        return cls(
            end_convert=bool(data.get("endConvert")),
            file_url=data.get("fileUrl") or None,
            percent=int(percent) if percent is not None else None,
            error=int(error) if error else None,
        )
