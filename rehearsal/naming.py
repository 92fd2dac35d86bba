"""Job naming convention tying generated jobs back to build configurations.

Generated jobs are named ``<kind>-ci-<org>-<repo>-<branch>[-<variant>]-<test>``
where ``<kind>`` is ``pull`` for presubmits, ``branch`` for postsubmits and
``periodic`` for periodics. The name is the only link between a job and the
configuration entry (and test) it was generated from.

Rather than re-deriving prefixes and stripping strings at every lookup,
``JobIndex`` resolves the link once per corpus: for each configuration it
maps test names to the ``kubernetes``-agent jobs generated for them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Mapping, Sequence, TypeVar

from rehearsal.models import BuildConfiguration, Info, JobBase, JobKind

__all__ = [
    "JOB_NAME_PREFIXES",
    "PERIODIC_PREFIX",
    "POSTSUBMIT_PREFIX",
    "PRESUBMIT_PREFIX",
    "JobIndex",
    "job_name",
    "job_name_prefix",
    "strip_job_prefix",
]

PRESUBMIT_PREFIX: str = "pull"
POSTSUBMIT_PREFIX: str = "branch"
PERIODIC_PREFIX: str = "periodic"

JOB_NAME_PREFIXES: Mapping[JobKind, str] = {
    "presubmit": PRESUBMIT_PREFIX,
    "postsubmit": POSTSUBMIT_PREFIX,
    "periodic": PERIODIC_PREFIX,
}


def job_name_prefix(info: Info, kind: JobKind) -> str:
    """Return the name prefix (trailing dash included) of jobs generated for ``info``."""

    try:
        kind_prefix = JOB_NAME_PREFIXES[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown job kind: {kind!r}") from exc
    # Job names cannot carry slashes; branches like release/4.1 are flattened.
    branch = info.branch.replace("/", "-")
    parts = [kind_prefix, "ci", info.org, info.repo, branch]
    if info.variant:
        parts.append(info.variant)
    return "-".join(parts) + "-"


def job_name(info: Info, kind: JobKind, test_name: str) -> str:
    return f"{job_name_prefix(info, kind)}{test_name}"


def strip_job_prefix(info: Info, kind: JobKind, name: str) -> str | None:
    """Strip the configuration prefix from a job name.

    Returns None when the job was not generated for ``info`` (structural
    non-match, not an error).
    """

    prefix = job_name_prefix(info, kind)
    if not name.startswith(prefix):
        return None
    return name[len(prefix):]


JobT = TypeVar("JobT", bound=JobBase)


@dataclass(slots=True)
class JobIndex(Generic[JobT]):
    """Eager (configuration key -> test name -> jobs) index for one job kind.

    Several jobs can strip to the same test name (for example the same job
    listed in two job files); all of them are kept, in corpus order.
    """

    kind: JobKind
    entries: dict[str, dict[str, list[JobT]]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        jobs_by_repo: Mapping[str, Sequence[JobT]],
        kind: JobKind,
        configs: Mapping[str, BuildConfiguration],
    ) -> "JobIndex[JobT]":
        index: JobIndex[JobT] = cls(kind=kind)
        for key, config in configs.items():
            tests: dict[str, list[JobT]] = {}
            for job in jobs_by_repo.get(config.info.org_repo, ()):
                if not job.is_kubernetes:
                    continue
                test_name = strip_job_prefix(config.info, kind, job.name)
                if test_name is None:
                    continue
                tests.setdefault(test_name, []).append(job)
            index.entries[key] = tests
        return index

    def jobs_for(self, key: str) -> dict[str, list[JobT]]:
        """Return test name -> jobs for a configuration key (empty when unknown)."""
        return {name: list(jobs) for name, jobs in self.entries.get(key, {}).items()}

    def jobs_for_test(self, key: str, test_name: str) -> list[JobT]:
        return list(self.entries.get(key, {}).get(test_name, ()))
