"""Pydantic models for build configurations and job definitions.

Both corpora are loaded from YAML trees. Keys the models do not declare are
kept (``extra="allow"``) because every field of a configuration or job takes
part in structural equality, even when nothing here interprets it.
"""

from __future__ import annotations

from typing import Any, Literal, MutableMapping, TypeVar

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "ByFilename",
    "BuildConfiguration",
    "CLUSTER_PROFILE_PREFIX",
    "ClusterProfile",
    "DEFAULT_CLUSTER",
    "Info",
    "JobBase",
    "JobConfig",
    "JobKind",
    "KUBERNETES_AGENT",
    "Periodic",
    "Postsubmit",
    "Presubmit",
    "ReleaseBuildConfiguration",
    "ReleaseSnapshot",
    "TestStepConfiguration",
    "add_job",
]

KUBERNETES_AGENT: str = "kubernetes"
DEFAULT_CLUSTER: str = "default"
CLUSTER_PROFILE_PREFIX: str = "cluster-profile-"

JobKind = Literal["presubmit", "postsubmit", "periodic"]


class _OpenModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Info(BaseModel):
    """Identity of a build configuration (org/repo@branch plus optional variant)."""

    model_config = ConfigDict(frozen=True)

    org: str
    repo: str
    branch: str
    variant: str = ""

    @property
    def org_repo(self) -> str:
        return f"{self.org}/{self.repo}"

    def basename(self) -> str:
        """Return the canonical configuration filename for this identity."""
        stem = f"{self.org}-{self.repo}-{self.branch}"
        if self.variant:
            stem = f"{stem}__{self.variant}"
        return f"{stem}.yaml"


class TestStepConfiguration(_OpenModel):
    """A single named test; everything but ``as`` is opaque payload."""

    __test__ = False  # keep pytest from collecting this as a test class

    as_: str = Field(alias="as")


class ReleaseBuildConfiguration(_OpenModel):
    """Body of a build configuration file.

    Only ``tests`` is interpreted. The remaining declared fields are listed
    for readability; undeclared keys are preserved as extras.
    """

    tests: list[TestStepConfiguration] = Field(default_factory=list)
    build_root: dict[str, Any] | None = None
    images: list[dict[str, Any]] = Field(default_factory=list)
    releases: dict[str, Any] | None = None
    resources: dict[str, Any] | None = None
    promotion: dict[str, Any] | None = None

    def tests_by_name(self) -> dict[str, TestStepConfiguration]:
        return {test.as_: test for test in self.tests}


class BuildConfiguration(BaseModel):
    info: Info
    configuration: ReleaseBuildConfiguration


ByFilename = dict[str, BuildConfiguration]


class JobBase(_OpenModel):
    name: str
    agent: str = KUBERNETES_AGENT
    cluster: str = DEFAULT_CLUSTER
    spec: dict[str, Any] | None = None

    @property
    def is_kubernetes(self) -> bool:
        return self.agent == KUBERNETES_AGENT


class Presubmit(JobBase):
    optional: bool = False
    always_run: bool = False


class Postsubmit(JobBase):
    pass


class Periodic(JobBase):
    cron: str | None = None
    interval: str | None = None


class JobConfig(BaseModel):
    """All job definitions of one revision."""

    presubmits: dict[str, list[Presubmit]] = Field(default_factory=dict)
    postsubmits: dict[str, list[Postsubmit]] = Field(default_factory=dict)
    periodics: list[Periodic] = Field(default_factory=list)

    def all_periodics(self) -> list[Periodic]:
        return list(self.periodics)


class ClusterProfile(BaseModel):
    """Named credential/deployment profile mounted into jobs via a config map."""

    model_config = ConfigDict(frozen=True)

    name: str

    def cm_name(self, prefix: str = CLUSTER_PROFILE_PREFIX) -> str:
        return f"{prefix}{self.name}"


JobT = TypeVar("JobT", bound=JobBase)


def add_job(corpus: MutableMapping[str, list[JobT]], repo: str, job: JobT) -> None:
    corpus.setdefault(repo, []).append(job)


class ReleaseSnapshot(BaseModel):
    """Build configurations and job definitions of one revision."""

    configs: dict[str, BuildConfiguration] = Field(default_factory=dict)
    jobs: JobConfig = Field(default_factory=JobConfig)
