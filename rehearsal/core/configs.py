"""Build configuration corpus differ.

Compares the build configurations of a baseline and a candidate revision and
reports which configurations changed. When only tests changed, the differ
also reports which tests, so callers can limit rehearsals to those tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from rehearsal.core.events import (
    CHANGED_CONFIG_MSG,
    NEW_CONFIG_MSG,
    PROJECTION_FAILED_MSG,
    TEST_PROJECTION_FAILED_MSG,
    SelectionEvent,
)
from rehearsal.equality import ProjectionError, normalize, project, semantic_equal
from rehearsal.models import (
    BuildConfiguration,
    ByFilename,
    ReleaseBuildConfiguration,
    TestStepConfiguration,
)

__all__ = [
    "ConfigDiff",
    "ConfigDiffError",
    "get_changed_configs",
]

_TESTS_FIELD = frozenset({"tests"})


class ConfigDiffError(RuntimeError):
    """Raised in strict mode when a configuration cannot be compared."""


@dataclass(slots=True)
class ConfigDiff:
    """Result of comparing two configuration corpora.

    ``changed`` holds candidate entries that are new or differ. An entry in
    ``affected_tests`` means only those tests changed; a changed key without
    one means the whole configuration must be treated as affected.
    """

    changed: ByFilename = field(default_factory=dict)
    affected_tests: dict[str, set[str]] = field(default_factory=dict)
    events: list[SelectionEvent] = field(default_factory=list)


def _without_tests(
    filename: str,
    configuration: ReleaseBuildConfiguration,
    *,
    strict: bool,
    events: list[SelectionEvent],
) -> object | None:
    try:
        return normalize(project(configuration, exclude=_TESTS_FIELD))
    except ProjectionError as exc:
        if strict:
            raise ConfigDiffError(f"{PROJECTION_FAILED_MSG} {filename}: {exc}") from exc
        events.append(
            SelectionEvent(kind="config", key=filename, reason=f"{PROJECTION_FAILED_MSG} ({exc})", degraded=True),
        )
        return None


def _test_equal(
    filename: str,
    name: str,
    old_test: TestStepConfiguration,
    new_test: TestStepConfiguration,
    *,
    strict: bool,
    events: list[SelectionEvent],
) -> bool:
    # A test that cannot be projected is counted as affected.
    try:
        return semantic_equal(old_test, new_test)
    except ProjectionError as exc:
        if strict:
            raise ConfigDiffError(f"{PROJECTION_FAILED_MSG} {filename} (test {name}): {exc}") from exc
        events.append(
            SelectionEvent(
                kind="config",
                key=filename,
                reason=f"{TEST_PROJECTION_FAILED_MSG} {name} ({exc})",
                degraded=True,
            ),
        )
        return False


def get_changed_configs(
    master: Mapping[str, BuildConfiguration],
    candidate: Mapping[str, BuildConfiguration],
    *,
    strict: bool = False,
) -> ConfigDiff:
    """Return the candidate configurations that are new or changed.

    The non-test body of each configuration is compared first; if it differs
    the whole configuration is invalidated. Otherwise candidate tests are
    compared by name and only the differing ones are recorded.

    When the non-test body cannot be projected, the comparison falls back to
    the tests only (a warning event is recorded). A test that cannot be
    projected is counted as affected, with a warning event. With ``strict``
    set, either failure raises ``ConfigDiffError`` instead.
    """

    diff = ConfigDiff()
    for filename, new_config in candidate.items():
        old_config = master.get(filename)
        if old_config is None:
            diff.changed[filename] = new_config
            diff.events.append(SelectionEvent(kind="config", key=filename, reason=NEW_CONFIG_MSG))
            continue

        old_body = _without_tests(filename, old_config.configuration, strict=strict, events=diff.events)
        new_body = _without_tests(filename, new_config.configuration, strict=strict, events=diff.events)
        if old_body is not None and new_body is not None and old_body != new_body:
            diff.changed[filename] = new_config
            diff.events.append(SelectionEvent(kind="config", key=filename, reason=CHANGED_CONFIG_MSG))
            continue

        old_tests = old_config.configuration.tests_by_name()
        tests: set[str] = set()
        for name, test in new_config.configuration.tests_by_name().items():
            old_test = old_tests.get(name)
            if old_test is None:
                tests.add(name)
            elif not _test_equal(filename, name, old_test, test, strict=strict, events=diff.events):
                tests.add(name)

        if tests:
            diff.changed[filename] = new_config
            diff.affected_tests[filename] = tests
            diff.events.append(
                SelectionEvent(
                    kind="config",
                    key=filename,
                    reason=f"{CHANGED_CONFIG_MSG} (tests: {', '.join(sorted(tests))})",
                ),
            )
    return diff
