"""Structured records of rehearsal selection decisions.

Selection functions stay free of logging: they return ``SelectionEvent``
records and callers decide how to report them (see ``log_events``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal

from loguru import logger

__all__ = [
    "CHANGED_CONFIG_MSG",
    "CHOSEN_JOB_MSG",
    "EventKind",
    "NEW_CONFIG_MSG",
    "PROJECTION_FAILED_MSG",
    "TEST_PROJECTION_FAILED_MSG",
    "SelectionEvent",
    "log_events",
]

EventKind = Literal["config", "presubmit", "postsubmit", "periodic"]

NEW_CONFIG_MSG = "New build configuration file"
CHANGED_CONFIG_MSG = "Build configuration file changed"
CHOSEN_JOB_MSG = "Job has been chosen for rehearsal"
PROJECTION_FAILED_MSG = "Could not project configuration without tests"
TEST_PROJECTION_FAILED_MSG = "Could not project test"


@dataclass(slots=True, frozen=True)
class SelectionEvent:
    """One classification decision: what (kind/key), where (repo) and why."""

    kind: EventKind
    key: str
    reason: str
    repo: str | None = None
    degraded: bool = False

    def describe(self) -> str:
        where = f" repo={self.repo}" if self.repo else ""
        return f"{self.reason}: {self.kind}={self.key}{where}"


def log_events(events: Iterable[SelectionEvent], *, module: str = "core.events") -> int:
    """Log every event through loguru; return how many were emitted."""

    log = logger.bind(module=module)
    count = 0
    for event in events:
        if event.degraded:
            log.warning("{}", event.describe())
        else:
            log.info("{}", event.describe())
        count += 1
    return count
