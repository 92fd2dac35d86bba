"""Jobs derived from changed build configurations via the naming convention."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Set

from rehearsal.models import BuildConfiguration, Info, JobConfig, Postsubmit, Presubmit, add_job
from rehearsal.naming import JobIndex

__all__ = [
    "IMAGES_TEST_NAME",
    "PostsubmitInContext",
    "get_images_postsubmits_for_configs",
    "get_presubmits_for_configs",
]

IMAGES_TEST_NAME = "images"


@dataclass(slots=True, frozen=True)
class PostsubmitInContext:
    """A postsubmit together with the configuration identity it builds for."""

    info: Info
    job: Postsubmit


def get_images_postsubmits_for_configs(
    job_config: JobConfig,
    changed: Mapping[str, BuildConfiguration],
    *,
    index: JobIndex[Postsubmit] | None = None,
) -> list[PostsubmitInContext]:
    """Return the image-building postsubmits of every changed configuration."""

    index = index or JobIndex.build(job_config.postsubmits, "postsubmit", changed)
    ret: list[PostsubmitInContext] = []
    for key, config in changed.items():
        for job in index.jobs_for_test(key, IMAGES_TEST_NAME):
            ret.append(PostsubmitInContext(info=config.info, job=job))
    return ret


def get_presubmits_for_configs(
    job_config: JobConfig,
    changed: Mapping[str, BuildConfiguration],
    affected_tests: Mapping[str, Set[str]],
    *,
    index: JobIndex[Presubmit] | None = None,
) -> dict[str, list[Presubmit]]:
    """Return the presubmits generated for changed configurations.

    If a configuration has an ``affected_tests`` entry only the jobs of
    those tests are returned; otherwise every job of the configuration is.
    """

    index = index or JobIndex.build(job_config.presubmits, "presubmit", changed)
    ret: dict[str, list[Presubmit]] = {}
    for key, config in changed.items():
        tests = affected_tests.get(key)
        for test_name, jobs in index.jobs_for(key).items():
            if tests is not None and test_name not in tests:
                continue
            for job in jobs:
                add_job(ret, config.info.org_repo, job)
    return ret
