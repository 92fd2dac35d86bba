"""Periodic selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from rehearsal.core.events import CHOSEN_JOB_MSG, SelectionEvent
from rehearsal.equality import semantic_equal
from rehearsal.models import JobConfig, Periodic

__all__ = ["ChangedPeriodics", "get_changed_periodics", "periodics_by_name"]


@dataclass(slots=True)
class ChangedPeriodics:
    jobs: dict[str, Periodic] = field(default_factory=dict)
    events: list[SelectionEvent] = field(default_factory=list)


def periodics_by_name(periodics: Iterable[Periodic]) -> dict[str, Periodic]:
    """Index periodics by name; a duplicated name keeps the last definition."""
    return {periodic.name: periodic for periodic in periodics}


def get_changed_periodics(master: JobConfig, candidate: JobConfig) -> ChangedPeriodics:
    """Return ``kubernetes``-agent candidate periodics whose spec or cluster changed.

    A periodic absent from the baseline counts as changed.
    """

    result = ChangedPeriodics()
    master_periodics = periodics_by_name(master.all_periodics())
    for name, job in periodics_by_name(candidate.all_periodics()).items():
        if not job.is_kubernetes:
            continue
        master_job = master_periodics.get(name)
        if master_job is None:
            reason = "new periodic"
        elif not semantic_equal(master_job.spec, job.spec):
            reason = "spec changed"
        elif master_job.cluster != job.cluster:
            reason = "cluster changed"
        else:
            continue
        result.jobs[name] = job
        result.events.append(SelectionEvent(kind="periodic", key=name, reason=f"{CHOSEN_JOB_MSG} ({reason})"))
    return result
