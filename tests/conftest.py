from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Generator

import pytest

import sys


ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from rehearsal.config import Settings
from rehearsal.models import BuildConfiguration, Info, Periodic, Postsubmit, Presubmit


@pytest.fixture
def settings() -> Generator[Settings, None, None]:
    """Return a fresh Settings instance for each test (environment ignored for the repo path)."""

    yield Settings(release_repo_path=".", base_ref="master")


@pytest.fixture
def make_config() -> Callable[..., BuildConfiguration]:
    """Factory for build configurations: ``make_config(tests={"unit": {...}}, **body)``."""

    def _make(
        *,
        org: str = "org",
        repo: str = "repo",
        branch: str = "master",
        variant: str = "",
        tests: dict[str, dict[str, Any]] | None = None,
        **body: Any,
    ) -> BuildConfiguration:
        payload: dict[str, Any] = {"build_root": {"image_stream_tag": {"name": "release", "tag": "golang-1.21"}}}
        payload.update(body)
        payload["tests"] = [{"as": name, **spec} for name, spec in (tests or {}).items()]
        return BuildConfiguration.model_validate(
            {"info": Info(org=org, repo=repo, branch=branch, variant=variant), "configuration": payload},
        )

    return _make


def _pod_spec(image: str = "ci-operator:latest", **extra: Any) -> dict[str, Any]:
    spec: dict[str, Any] = {"containers": [{"image": image, "args": ["--target=unit"]}]}
    spec.update(extra)
    return spec


@pytest.fixture
def make_presubmit() -> Callable[..., Presubmit]:
    def _make(name: str, **fields: Any) -> Presubmit:
        fields.setdefault("spec", _pod_spec())
        return Presubmit(name=name, **fields)

    return _make


@pytest.fixture
def make_postsubmit() -> Callable[..., Postsubmit]:
    def _make(name: str, **fields: Any) -> Postsubmit:
        fields.setdefault("spec", _pod_spec())
        return Postsubmit(name=name, **fields)

    return _make


@pytest.fixture
def make_periodic() -> Callable[..., Periodic]:
    def _make(name: str, **fields: Any) -> Periodic:
        fields.setdefault("spec", _pod_spec())
        fields.setdefault("cron", "@daily")
        return Periodic(name=name, **fields)

    return _make
