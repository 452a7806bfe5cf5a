"""Append-only, timestamped progress stream with per-scope subscriptions.

Every pipeline transition, bulk iteration and command is reported here.
Scopes are job run ids (single runs) or batch ids (bulk runs); subscribers
may listen to one scope or to everything.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from autojob.log import get_logger
from autojob.models import utc_now

log = get_logger(__name__)

SESSION_SCOPE = "session"

KIND_LOG = "log"
KIND_STATE = "state"
KIND_PROGRESS = "progress"
KIND_COMPLETE = "complete"


@dataclass(frozen=True)
class ProgressEvent:
    scope: str
    message: str
    timestamp: datetime
    level: int = logging.INFO
    kind: str = KIND_LOG
    data: dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"


Subscriber = Callable[[ProgressEvent], None]


class ProgressLog:
    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._events: list[ProgressEvent] = []
        self._subscribers: list[tuple[str | None, Subscriber]] = []

    def emit(
        self,
        scope: str,
        message: str,
        *,
        level: int = logging.INFO,
        kind: str = KIND_LOG,
        **data: Any,
    ) -> ProgressEvent:
        event = ProgressEvent(
            scope=scope,
            message=message,
            timestamp=self._clock(),
            level=level,
            kind=kind,
            data=data,
        )
        self._events.append(event)
        log.log(level, "[%s] %s", scope, message)
        for wanted, callback in list(self._subscribers):
            if wanted is not None and wanted != scope:
                continue
            try:
                callback(event)
            except Exception as exc:
                log.error("Progress subscriber %r failed: %s", callback, exc)
        return event

    def warning(self, scope: str, message: str, **data: Any) -> ProgressEvent:
        return self.emit(scope, message, level=logging.WARNING, **data)

    def error(self, scope: str, message: str, **data: Any) -> ProgressEvent:
        return self.emit(scope, message, level=logging.ERROR, **data)

    def subscribe(self, callback: Subscriber, scope: str | None = None) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        entry = (scope, callback)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def events(self, scope: str | None = None, kind: str | None = None) -> list[ProgressEvent]:
        return [
            e for e in self._events
            if (scope is None or e.scope == scope) and (kind is None or e.kind == kind)
        ]

    def lines(self, scope: str | None = None) -> list[str]:
        return [e.format() for e in self.events(scope)]

    def __len__(self) -> int:
        return len(self._events)
