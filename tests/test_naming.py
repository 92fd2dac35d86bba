from __future__ import annotations

import pytest

from rehearsal.models import BuildConfiguration, Info
from rehearsal.naming import (
    PERIODIC_PREFIX,
    POSTSUBMIT_PREFIX,
    PRESUBMIT_PREFIX,
    JobIndex,
    job_name,
    job_name_prefix,
    strip_job_prefix,
)


def test_job_name_prefix_per_kind() -> None:
    info = Info(org="org", repo="repo", branch="master")

    assert job_name_prefix(info, "presubmit") == f"{PRESUBMIT_PREFIX}-ci-org-repo-master-"
    assert job_name_prefix(info, "postsubmit") == f"{POSTSUBMIT_PREFIX}-ci-org-repo-master-"
    assert job_name_prefix(info, "periodic") == f"{PERIODIC_PREFIX}-ci-org-repo-master-"
    assert job_name(info, "presubmit", "unit") == "pull-ci-org-repo-master-unit"


def test_job_name_prefix_includes_variant_and_flattens_branch() -> None:
    info = Info(org="org", repo="repo", branch="release/4.1", variant="okd")

    assert job_name_prefix(info, "presubmit") == "pull-ci-org-repo-release-4.1-okd-"


def test_job_name_prefix_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError, match="Unknown job kind"):
        job_name_prefix(Info(org="o", repo="r", branch="b"), "nightly")  # type: ignore[arg-type]


def test_strip_job_prefix_returns_none_for_foreign_jobs() -> None:
    info = Info(org="org", repo="repo", branch="master")

    assert strip_job_prefix(info, "presubmit", "pull-ci-org-repo-master-e2e-aws") == "e2e-aws"
    assert strip_job_prefix(info, "presubmit", "branch-ci-org-repo-master-images") is None
    assert strip_job_prefix(info, "presubmit", "pull-ci-org-other-master-unit") is None


def test_job_index_keeps_only_kubernetes_jobs_of_each_config(make_config, make_presubmit) -> None:
    configs: dict[str, BuildConfiguration] = {
        "org-repo-master.yaml": make_config(),
        "org-repo-release-4.1.yaml": make_config(branch="release-4.1"),
    }
    jobs = {
        "org/repo": [
            make_presubmit("pull-ci-org-repo-master-unit"),
            make_presubmit("pull-ci-org-repo-master-e2e", agent="jenkins"),
            make_presubmit("pull-ci-org-repo-release-4.1-unit"),
            make_presubmit("custom-job"),
        ],
    }

    index = JobIndex.build(jobs, "presubmit", configs)

    assert list(index.jobs_for("org-repo-master.yaml")) == ["unit"]
    assert list(index.jobs_for("org-repo-release-4.1.yaml")) == ["unit"]
    assert index.jobs_for_test("org-repo-master.yaml", "e2e") == []
    assert index.jobs_for("missing.yaml") == {}


def test_job_index_keeps_every_job_with_the_same_test_name(make_config, make_presubmit) -> None:
    configs = {"org-repo-master.yaml": make_config()}
    first = make_presubmit("pull-ci-org-repo-master-unit", cluster="build01")
    second = make_presubmit("pull-ci-org-repo-master-unit", cluster="build02")

    index = JobIndex.build({"org/repo": [first, second]}, "presubmit", configs)

    assert [job.cluster for job in index.jobs_for_test("org-repo-master.yaml", "unit")] == ["build01", "build02"]
    assert list(index.jobs_for("org-repo-master.yaml")) == ["unit"]
