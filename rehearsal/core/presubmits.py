"""Presubmit selection: changed presubmits and cluster-profile consumers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from rehearsal.core.events import CHOSEN_JOB_MSG, SelectionEvent
from rehearsal.equality import semantic_equal
from rehearsal.models import ClusterProfile, JobConfig, Presubmit, add_job

__all__ = [
    "CLUSTER_PROFILE_VOLUME",
    "ChangedPresubmits",
    "get_changed_presubmits",
    "get_presubmits_for_cluster_profiles",
    "presubmit_change_reason",
]

CLUSTER_PROFILE_VOLUME = "cluster-profile"


@dataclass(slots=True)
class ChangedPresubmits:
    jobs: dict[str, list[Presubmit]] = field(default_factory=dict)
    events: list[SelectionEvent] = field(default_factory=list)


def _jobs_by_repo_and_name(presubmits: Mapping[str, Sequence[Presubmit]]) -> dict[str, dict[str, Presubmit]]:
    return {repo: {job.name: job for job in jobs} for repo, jobs in presubmits.items()}


def presubmit_change_reason(master_job: Presubmit | None, job: Presubmit) -> str | None:
    """Return why ``job`` needs a rehearsal compared to ``master_job``, or None.

    Only ``kubernetes``-agent candidates are ever selected.
    """

    if not job.is_kubernetes:
        return None
    if master_job is None or not master_job.is_kubernetes:
        return "agent changed to kubernetes"
    if not semantic_equal(master_job.spec, job.spec):
        return "spec changed"
    if master_job.optional and not job.optional:
        return "job is no longer optional"
    if not master_job.always_run and job.always_run:
        return "job now always runs"
    if master_job.cluster != job.cluster:
        return "cluster changed"
    return None


def get_changed_presubmits(master: JobConfig, candidate: JobConfig) -> ChangedPresubmits:
    """Return candidate presubmits whose behaviour differs from the baseline."""

    result = ChangedPresubmits()
    master_jobs = _jobs_by_repo_and_name(master.presubmits)
    for repo, jobs in candidate.presubmits.items():
        for job in jobs:
            reason = presubmit_change_reason(master_jobs.get(repo, {}).get(job.name), job)
            if reason is None:
                continue
            add_job(result.jobs, repo, job)
            result.events.append(
                SelectionEvent(kind="presubmit", key=job.name, repo=repo, reason=f"{CHOSEN_JOB_MSG} ({reason})"),
            )
    return result


def _projected_config_map_names(spec: Mapping[str, object] | None) -> Iterable[str]:
    for volume in (spec or {}).get("volumes") or ():
        if not isinstance(volume, Mapping) or volume.get("name") != CLUSTER_PROFILE_VOLUME:
            continue
        projected = volume.get("projected")
        if not isinstance(projected, Mapping):
            continue
        for source in projected.get("sources") or ():
            config_map = source.get("configMap") if isinstance(source, Mapping) else None
            if isinstance(config_map, Mapping) and config_map.get("name"):
                yield str(config_map["name"])


def get_presubmits_for_cluster_profiles(
    job_config: JobConfig,
    profiles: Iterable[ClusterProfile | str],
) -> dict[str, list[Presubmit]]:
    """Return presubmits mounting the config map of any of ``profiles``."""

    names = {
        (profile if isinstance(profile, ClusterProfile) else ClusterProfile(name=str(profile))).cm_name()
        for profile in profiles
    }
    ret: dict[str, list[Presubmit]] = {}
    if not names:
        return ret
    for repo, jobs in job_config.presubmits.items():
        for job in jobs:
            if not job.is_kubernetes:
                continue
            if any(name in names for name in _projected_config_map_names(job.spec)):
                add_job(ret, repo, job)
    return ret
