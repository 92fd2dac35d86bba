"""Load build configurations and job definitions from a release repository.

Layout (relative to the repository root):

- ``ci-operator/config/<org>/<repo>/<org>-<repo>-<branch>[__<variant>].yaml``:
  one build configuration per file, keyed by file name.
- ``ci-operator/jobs/<org>/<repo>/*.yaml``: job definitions with
  ``presubmits``/``postsubmits`` (by ``org/repo``) and ``periodics``.

Both trees can be read from a working copy or from any git revision. Loading
problems are fatal: they raise ``LoadError`` and are never skipped.
"""

from __future__ import annotations

from pathlib import Path, PurePath
from typing import Any, Iterable, Iterator, Mapping

import yaml
from git import Repo
from loguru import logger
from pydantic import ValidationError
from rich.console import Console

from rehearsal.core.git import iter_tree_files, require_commit
from rehearsal.models import (
    BuildConfiguration,
    ByFilename,
    Info,
    JobConfig,
    Periodic,
    Postsubmit,
    Presubmit,
    ReleaseBuildConfiguration,
    ReleaseSnapshot,
)

log = logger.bind(module="loading")

__all__ = [
    "CONFIG_IN_REPO_PATH",
    "JOB_CONFIG_IN_REPO_PATH",
    "LoadError",
    "PLUGINS_IN_REPO_PATH",
    "PROW_CONFIG_IN_REPO_PATH",
    "load_configs_from_dir",
    "load_job_config_from_dir",
    "load_snapshot_at_revision",
    "load_snapshot_from_dir",
    "parse_configs",
    "parse_job_config",
]

CONFIG_IN_REPO_PATH = "ci-operator/config"
JOB_CONFIG_IN_REPO_PATH = "ci-operator/jobs"
PROW_CONFIG_IN_REPO_PATH = "core-services/prow/02_config/_config.yaml"
PLUGINS_IN_REPO_PATH = "core-services/prow/02_config/_plugins.yaml"

_METADATA_KEY = "zz_generated_metadata"
_YAML_SUFFIXES = (".yaml", ".yml")


class LoadError(RuntimeError):
    """Raised when a release tree cannot be loaded."""


def _load_yaml(path: PurePath, text: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise LoadError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise LoadError(f"{path} must contain a mapping, got {type(data).__name__}.")
    return data


def _info_from_path(path: PurePath) -> Info:
    if len(path.parts) < 3:
        raise LoadError(f"{path} is not laid out as <org>/<repo>/<file>.")
    org, repo = path.parts[-3], path.parts[-2]
    stem = path.name.rsplit(".", 1)[0]
    prefix = f"{org}-{repo}-"
    if not stem.startswith(prefix) or len(stem) == len(prefix):
        raise LoadError(f"{path} does not follow the <org>-<repo>-<branch>[__<variant>] naming scheme.")
    branch, _, variant = stem[len(prefix):].partition("__")
    return Info(org=org, repo=repo, branch=branch, variant=variant)


def _parse_config(path: PurePath, text: str) -> BuildConfiguration:
    data = _load_yaml(path, text)
    metadata = data.pop(_METADATA_KEY, None)
    try:
        info = Info.model_validate(metadata) if metadata else _info_from_path(path)
        configuration = ReleaseBuildConfiguration.model_validate(data)
    except ValidationError as exc:
        raise LoadError(f"Invalid build configuration {path}: {exc}") from exc
    return BuildConfiguration(info=info, configuration=configuration)


def parse_configs(files: Iterable[tuple[PurePath, str]]) -> ByFilename:
    """Parse (relative path, text) pairs into configurations keyed by file name."""

    configs: ByFilename = {}
    for path, text in files:
        if path.name in configs:
            raise LoadError(f"Duplicate build configuration file name: {path.name}")
        configs[path.name] = _parse_config(path, text)
    return configs


def _validate_jobs(path: PurePath, model: type, raw: Any) -> list[Any]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise LoadError(f"{path}: expected a list of jobs, got {type(raw).__name__}.")
    try:
        return [model.model_validate(item) for item in raw]
    except ValidationError as exc:
        raise LoadError(f"Invalid job definition in {path}: {exc}") from exc


def _by_repo(path: PurePath, section: str, raw: Any) -> Mapping[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise LoadError(f"{path}: {section} must be keyed by org/repo.")
    return raw


def parse_job_config(files: Iterable[tuple[PurePath, str]]) -> JobConfig:
    """Merge every job file into a single ``JobConfig``."""

    job_config = JobConfig()
    for path, text in files:
        data = _load_yaml(path, text)
        for repo, raw in _by_repo(path, "presubmits", data.get("presubmits")).items():
            job_config.presubmits.setdefault(str(repo), []).extend(_validate_jobs(path, Presubmit, raw))
        for repo, raw in _by_repo(path, "postsubmits", data.get("postsubmits")).items():
            job_config.postsubmits.setdefault(str(repo), []).extend(_validate_jobs(path, Postsubmit, raw))
        job_config.periodics.extend(_validate_jobs(path, Periodic, data.get("periodics")))
    return job_config


def _decode(path: PurePath, data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise LoadError(f"{path} is not valid UTF-8: {exc}") from exc


def _iter_dir_files(root: Path) -> Iterator[tuple[PurePath, str]]:
    if not root.is_dir():
        raise LoadError(f"Directory not found: {root}")
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix not in _YAML_SUFFIXES:
            continue
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise LoadError(f"Could not read {path}: {exc}") from exc
        yield path.relative_to(root), _decode(path, data)


def _decode_tree_files(files: Iterable[tuple[PurePath, bytes]]) -> Iterator[tuple[PurePath, str]]:
    for path, data in files:
        yield path, _decode(path, data)


def load_configs_from_dir(root: Path) -> ByFilename:
    return parse_configs(_iter_dir_files(Path(root)))


def load_job_config_from_dir(root: Path) -> JobConfig:
    return parse_job_config(_iter_dir_files(Path(root)))


def load_snapshot_from_dir(repo_root: Path) -> ReleaseSnapshot:
    """Load both trees from a working copy."""

    root = Path(repo_root).expanduser().resolve()
    snapshot = ReleaseSnapshot(
        configs=load_configs_from_dir(root / CONFIG_IN_REPO_PATH),
        jobs=load_job_config_from_dir(root / JOB_CONFIG_IN_REPO_PATH),
    )
    log.info("Loaded {} configurations from working copy {}", len(snapshot.configs), root)
    return snapshot


def load_snapshot_at_revision(
    repo: Repo,
    ref: str,
    *,
    remote: str = "origin",
    fetch_depth: int | None = None,
    console: Console | None = None,
) -> ReleaseSnapshot:
    """Load both trees as they are at ``ref`` without touching the working copy."""

    commit = require_commit(repo, ref, remote=remote, fetch_depth=fetch_depth, console=console)
    snapshot = ReleaseSnapshot(
        configs=parse_configs(
            _decode_tree_files(iter_tree_files(repo, commit, CONFIG_IN_REPO_PATH, suffixes=_YAML_SUFFIXES)),
        ),
        jobs=parse_job_config(
            _decode_tree_files(iter_tree_files(repo, commit, JOB_CONFIG_IN_REPO_PATH, suffixes=_YAML_SUFFIXES)),
        ),
    )
    log.info("Loaded {} configurations at {} ({})", len(snapshot.configs), ref, commit[:12])
    return snapshot
