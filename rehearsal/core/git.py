from __future__ import annotations

"""Git access for reading release trees at a revision.

Resolving a revision fetches from the remote when the commit is missing
locally (unshallowing shallow clones when needed). Git failures are raised as
``RepositoryError`` with credentials redacted from the command text.
"""

import shlex
from pathlib import PurePosixPath
from typing import Iterator, Sequence
from urllib.parse import urlsplit, urlunsplit

from git import Repo
from git.exc import BadName, GitCommandError
from git.objects import Blob, Tree
from loguru import logger
from rich.console import Console

log = logger.bind(module="core.git")

__all__ = [
    "RepositoryError",
    "fetch_remote",
    "is_shallow_repository",
    "iter_tree_files",
    "require_commit",
    "sanitize_command",
    "wrap_git_error",
]


class RepositoryError(RuntimeError):
    """Raised when a git operation fails.

    The string form is safe for logs; the raw command and outputs are kept as
    attributes for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        cmd: Sequence[str] | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
    ) -> None:
        super().__init__(message)
        self.cmd = tuple(cmd) if cmd else None
        self.returncode = returncode
        self.stderr = stderr


def _sanitize_value(value: str) -> str:
    parsed = urlsplit(value)
    if parsed.username or parsed.password:
        host = parsed.hostname or ""
        if parsed.port:
            host = f"{host}:{parsed.port}"
        return urlunsplit((parsed.scheme, f"***@{host}", parsed.path, parsed.query, parsed.fragment))
    return value


def sanitize_command(cmd: Sequence[str]) -> str:
    return shlex.join(_sanitize_value(str(part)) for part in cmd)


def wrap_git_error(exc: GitCommandError, context: str) -> RepositoryError:
    """Convert a GitPython command failure into a sanitized RepositoryError."""

    raw = getattr(exc, "command", None)
    if isinstance(raw, str):
        command: tuple[str, ...] | None = (raw,)
    elif raw:
        command = tuple(str(part) for part in raw)
    else:
        command = None
    suffix = f": {sanitize_command(command)}" if command else ""
    status = getattr(exc, "status", None)
    return RepositoryError(
        f"{context}{suffix} (exit {status})",
        cmd=command,
        returncode=status if isinstance(status, int) else None,
        stderr=getattr(exc, "stderr", None),
    )


def is_shallow_repository(repo: Repo) -> bool:
    try:
        result = repo.git.rev_parse("--is-shallow-repository")
    except GitCommandError:
        return False
    return result.strip().lower() == "true"


def fetch_remote(repo: Repo, *, remote: str = "origin", fetch_depth: int | None = None) -> None:
    remote_name = (remote or "").strip() or "origin"
    try:
        repo.remote(remote_name)
    except ValueError as exc:
        worktree = getattr(repo, "working_tree_dir", None) or "<unknown>"
        raise RepositoryError(f"Git remote {remote_name!r} is not configured for repo {worktree}.") from exc

    args: list[str] = ["--prune", "--tags"]
    if fetch_depth:
        args.append(f"--depth={int(fetch_depth)}")
    args.append(remote_name)
    try:
        repo.git.fetch(*args)
    except GitCommandError as exc:
        raise wrap_git_error(exc, f"Failed to fetch from {remote_name}") from exc


def _resolve(repo: Repo, ref: str) -> str | None:
    try:
        return repo.commit(ref).hexsha
    except (BadName, GitCommandError, ValueError):
        return None


def require_commit(
    repo: Repo,
    ref: str,
    *,
    remote: str = "origin",
    fetch_depth: int | None = None,
    console: Console | None = None,
) -> str:
    """Return the full hash for ``ref``, fetching (and unshallowing) when needed."""

    commit = (ref or "").strip()
    if not commit:
        raise RepositoryError("Revision must be provided.")

    resolved = _resolve(repo, commit)
    if resolved is not None:
        return resolved

    if console is not None:
        console.log(f"[yellow]Fetching missing revision[/] {commit}")
    log.info("Revision {} missing locally; fetching from {}", commit, remote)
    fetch_remote(repo, remote=remote, fetch_depth=fetch_depth)
    resolved = _resolve(repo, commit)
    if resolved is not None:
        return resolved

    if is_shallow_repository(repo):
        log.info("Repository is shallow; unshallowing to retrieve {}", commit)
        try:
            repo.git.fetch("--unshallow", remote)
        except GitCommandError as exc:
            raise wrap_git_error(exc, "Failed to unshallow repository") from exc
        resolved = _resolve(repo, commit)
        if resolved is not None:
            return resolved

    raise RepositoryError(f"Revision {commit} is not available locally after fetching from {remote}.")


def iter_tree_files(
    repo: Repo,
    commit: str,
    subdir: str,
    *,
    suffixes: Sequence[str] = (".yaml", ".yml"),
) -> Iterator[tuple[PurePosixPath, bytes]]:
    """Yield (path relative to ``subdir``, raw contents) for matching files at ``commit``.

    Raises RepositoryError when ``subdir`` is not a directory at ``commit``.
    """

    tree: Tree = repo.commit(commit).tree
    try:
        node = tree / subdir
    except KeyError:
        node = None
    if not isinstance(node, Tree):
        raise RepositoryError(f"Directory {subdir!r} not found at {commit}.")
    for item in node.traverse():
        if not isinstance(item, Blob) or not item.path.endswith(tuple(suffixes)):
            continue
        rel = PurePosixPath(item.path).relative_to(subdir)
        yield rel, item.data_stream.read()
