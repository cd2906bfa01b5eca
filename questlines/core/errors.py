from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class QuestlineError(Exception):
    """Base error envelope. The session turns these into transient messages."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<questline>"
        return f"{loc}: {self.code}: {self.message}"


class ValidationRejection(QuestlineError):
    """Request refused locally; no state was changed."""


class NotFound(QuestlineError):
    pass


class TransportFailure(QuestlineError):
    """Network or storage failure at the persistence boundary."""


class QuestlineLoadError(QuestlineError):
    pass
