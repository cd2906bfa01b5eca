from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Literal, Optional


MessageKind = Literal["error", "success"]

VALIDATION_MSG_WAIT_S = 3.0
ERROR_MSG_WAIT_S = 5.0
SUCCESS_MSG_WAIT_S = 3.0


@dataclass(frozen=True)
class Message:
    kind: MessageKind
    text: str
    expires_at: float


class MessageSlot:
    """Single-slot transient message: a new message replaces the old one and
    each message clears itself after its duration. Advisory only."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._message: Optional[Message] = None

    @property
    def current(self) -> Optional[Message]:
        if self._message is not None and self._clock() >= self._message.expires_at:
            self._message = None
        return self._message

    def error(self, text: str, duration: float = ERROR_MSG_WAIT_S) -> Message:
        return self._set("error", text, duration)

    def success(self, text: str, duration: float = SUCCESS_MSG_WAIT_S) -> Message:
        return self._set("success", text, duration)

    def clear(self) -> None:
        self._message = None

    def _set(self, kind: MessageKind, text: str, duration: float) -> Message:
        self._message = Message(kind=kind, text=text, expires_at=self._clock() + duration)
        return self._message
