"""Compose every selection into one rehearsal plan.

The plan is the union of:

- presubmits whose definition changed,
- presubmits generated for changed build configurations (narrowed to the
  changed tests when only tests changed),
- presubmits consuming the requested cluster profiles,
- image postsubmits of changed build configurations,
- changed periodics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from rehearsal.core.configs import ConfigDiff, get_changed_configs
from rehearsal.core.derived import (
    PostsubmitInContext,
    get_images_postsubmits_for_configs,
    get_presubmits_for_configs,
)
from rehearsal.core.events import CHOSEN_JOB_MSG, SelectionEvent
from rehearsal.core.periodics import get_changed_periodics
from rehearsal.core.presubmits import get_changed_presubmits, get_presubmits_for_cluster_profiles
from rehearsal.models import ClusterProfile, Periodic, Presubmit, ReleaseSnapshot, add_job
from rehearsal.naming import JobIndex

__all__ = ["RehearsalPlan", "build_rehearsal_plan", "merge_presubmits"]


@dataclass(slots=True)
class RehearsalPlan:
    config_diff: ConfigDiff
    presubmits: dict[str, list[Presubmit]] = field(default_factory=dict)
    postsubmits: list[PostsubmitInContext] = field(default_factory=list)
    periodics: dict[str, Periodic] = field(default_factory=dict)
    events: list[SelectionEvent] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.presubmits or self.postsubmits or self.periodics)

    def presubmit_count(self) -> int:
        return sum(len(jobs) for jobs in self.presubmits.values())

    def summary(self) -> dict[str, Any]:
        """Return a JSON-compatible summary (sorted for stable output)."""
        return {
            "changed_configs": sorted(self.config_diff.changed),
            "affected_tests": {
                key: sorted(tests) for key, tests in sorted(self.config_diff.affected_tests.items())
            },
            "presubmits": {
                repo: sorted(job.name for job in jobs) for repo, jobs in sorted(self.presubmits.items())
            },
            "postsubmits": [
                {"config": item.info.basename(), "job": item.job.name}
                for item in sorted(self.postsubmits, key=lambda item: item.job.name)
            ],
            "periodics": sorted(self.periodics),
        }


def merge_presubmits(*sources: Mapping[str, Sequence[Presubmit]]) -> dict[str, list[Presubmit]]:
    """Union repo-keyed presubmits; the first job seen for a (repo, name) pair wins."""

    merged: dict[str, list[Presubmit]] = {}
    seen: set[tuple[str, str]] = set()
    for source in sources:
        for repo, jobs in source.items():
            for job in jobs:
                if (repo, job.name) in seen:
                    continue
                seen.add((repo, job.name))
                add_job(merged, repo, job)
    return merged


def build_rehearsal_plan(
    master: ReleaseSnapshot,
    candidate: ReleaseSnapshot,
    *,
    cluster_profiles: Iterable[ClusterProfile | str] = (),
    strict: bool = False,
) -> RehearsalPlan:
    """Compute everything that must be rehearsed for ``candidate``."""

    config_diff = get_changed_configs(master.configs, candidate.configs, strict=strict)
    changed_presubmits = get_changed_presubmits(master.jobs, candidate.jobs)
    changed_periodics = get_changed_periodics(master.jobs, candidate.jobs)

    presubmit_index: JobIndex[Presubmit] = JobIndex.build(
        candidate.jobs.presubmits, "presubmit", config_diff.changed
    )
    derived = get_presubmits_for_configs(
        candidate.jobs,
        config_diff.changed,
        config_diff.affected_tests,
        index=presubmit_index,
    )
    profiles = get_presubmits_for_cluster_profiles(candidate.jobs, cluster_profiles)
    images = get_images_postsubmits_for_configs(candidate.jobs, config_diff.changed)

    events: list[SelectionEvent] = [*config_diff.events, *changed_presubmits.events]
    already = {(repo, job.name) for repo, jobs in changed_presubmits.jobs.items() for job in jobs}
    for source, reason in ((derived, "build configuration changed"), (profiles, "cluster profile changed")):
        for repo, jobs in source.items():
            for job in jobs:
                if (repo, job.name) in already:
                    continue
                already.add((repo, job.name))
                events.append(
                    SelectionEvent(kind="presubmit", key=job.name, repo=repo, reason=f"{CHOSEN_JOB_MSG} ({reason})"),
                )
    for item in images:
        events.append(
            SelectionEvent(
                kind="postsubmit",
                key=item.job.name,
                repo=item.info.org_repo,
                reason=f"{CHOSEN_JOB_MSG} (images of {item.info.basename()})",
            ),
        )
    events.extend(changed_periodics.events)

    return RehearsalPlan(
        config_diff=config_diff,
        presubmits=merge_presubmits(changed_presubmits.jobs, derived, profiles),
        postsubmits=images,
        periodics=changed_periodics.jobs,
        events=events,
    )
