from __future__ import annotations

import enum
from typing import Any


class CallbackStatus(enum.IntEnum):
    """
    Status codes the document server sends to the callback URL.

    Only MUST_SAVE and MUST_FORCE_SAVE carry a file to persist; everything
    else is acknowledged and ignored. Codes we do not know map to UNKNOWN.
    """
    UNKNOWN = -1
    EDITING = 1
    MUST_SAVE = 2
    SAVE_ERROR = 3
    CLOSED_NO_CHANGES = 4
    MUST_FORCE_SAVE = 6
    FORCE_SAVE_ERROR = 7

    @classmethod
    def parse(cls, value: Any) -> "CallbackStatus":
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.UNKNOWN

    @property
    def requires_save(self) -> bool:
        return self in (CallbackStatus.MUST_SAVE, CallbackStatus.MUST_FORCE_SAVE)
