"""Command-line entrypoint: compute the rehearsal set of a candidate revision."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Sequence

from git import Repo
from git.exc import InvalidGitRepositoryError, NoSuchPathError
from loguru import logger
from rich.console import Console
from rich.table import Table

from rehearsal.config import Settings, get_settings
from rehearsal.core.configs import ConfigDiffError
from rehearsal.core.events import log_events
from rehearsal.core.git import RepositoryError
from rehearsal.core.plan import RehearsalPlan, build_rehearsal_plan
from rehearsal.equality import ProjectionError
from rehearsal.loading import LoadError, load_snapshot_at_revision, load_snapshot_from_dir
from rehearsal.models import ReleaseSnapshot

console = Console()
log = logger.bind(module="main")

__all__ = ["build_parser", "main", "render_plan", "run"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="List the build configurations and jobs a release repository change must rehearse.",
    )
    parser.add_argument("--repo", help="Path to the release repository (default: REHEARSAL_RELEASE_REPO).")
    parser.add_argument("--base-ref", help="Baseline revision (default: REHEARSAL_BASE_REF).")
    parser.add_argument(
        "--candidate-ref",
        help="Candidate revision; the working copy is used when omitted.",
    )
    parser.add_argument(
        "--cluster-profile",
        action="append",
        default=None,
        dest="cluster_profiles",
        help="Also select presubmits using this cluster profile. Can be passed multiple times.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Fail instead of degrading when a configuration cannot be compared.",
    )
    parser.add_argument("--json", action="store_true", help="Print a JSON summary instead of a table.")
    return parser


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    update: dict[str, object] = {}
    if args.repo:
        update["release_repo_path"] = args.repo
    if args.base_ref:
        update["base_ref"] = args.base_ref
    if args.candidate_ref:
        update["candidate_ref"] = args.candidate_ref
    if args.cluster_profiles:
        update["cluster_profiles"] = list(args.cluster_profiles)
    if args.strict:
        update["strict_projection"] = True
    return settings.model_copy(update=update) if update else settings


def _open_repo(path: str) -> Repo:
    try:
        return Repo(Path(path).expanduser().resolve(), search_parent_directories=False)
    except (InvalidGitRepositoryError, NoSuchPathError) as exc:
        raise RepositoryError(f"Not a git repository: {path}") from exc


def _load_candidate(settings: Settings, repo: Repo) -> ReleaseSnapshot:
    if settings.candidate_ref:
        return load_snapshot_at_revision(
            repo,
            settings.candidate_ref,
            remote=settings.git_remote,
            fetch_depth=settings.fetch_depth,
            console=console,
        )
    return load_snapshot_from_dir(Path(settings.release_repo_path))


def run(settings: Settings) -> RehearsalPlan:
    """Load both revisions and compute the plan (errors propagate)."""

    repo = _open_repo(settings.release_repo_path)
    master = load_snapshot_at_revision(
        repo,
        settings.base_ref,
        remote=settings.git_remote,
        fetch_depth=settings.fetch_depth,
        console=console,
    )
    candidate = _load_candidate(settings, repo)
    plan = build_rehearsal_plan(
        master,
        candidate,
        cluster_profiles=settings.cluster_profiles,
        strict=settings.strict_projection,
    )
    log_events(plan.events, module="main")
    return plan


def render_plan(plan: RehearsalPlan, *, out: Console | None = None) -> None:
    c = out or console
    if plan.is_empty and not plan.config_diff.changed:
        c.print("[bold green]Nothing to rehearse[/]")
        return

    table = Table(title="Rehearsal set", show_lines=False)
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("Repo / config", style="magenta")
    table.add_column("Name", style="white")
    for key in sorted(plan.config_diff.changed):
        tests = plan.config_diff.affected_tests.get(key)
        detail = ", ".join(sorted(tests)) if tests else "(all tests)"
        table.add_row("config", key, detail)
    for repo, jobs in sorted(plan.presubmits.items()):
        for job in sorted(jobs, key=lambda job: job.name):
            table.add_row("presubmit", repo, job.name)
    for item in sorted(plan.postsubmits, key=lambda item: item.job.name):
        table.add_row("postsubmit", item.info.org_repo, item.job.name)
    for name in sorted(plan.periodics):
        table.add_row("periodic", "", name)
    c.print(table)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""

    args = build_parser().parse_args(argv)
    settings = _apply_overrides(get_settings(), args)
    try:
        plan = run(settings)
    except (LoadError, RepositoryError, ConfigDiffError, ProjectionError) as exc:
        console.print(f"[bold red]Rehearsal selection failed[/] {exc}")
        log.error("Rehearsal selection failed: {}", exc)
        return 1

    if args.json:
        print(json.dumps(plan.summary(), indent=2, sort_keys=True))
    else:
        render_plan(plan)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
