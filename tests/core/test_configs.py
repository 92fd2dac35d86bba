from __future__ import annotations

import pytest

from rehearsal.core.configs import ConfigDiffError, get_changed_configs
from rehearsal.equality import ProjectionError
from rehearsal.models import ReleaseBuildConfiguration

KEY = "org-repo-master.yaml"


def test_unchanged_configs_are_not_reported(make_config) -> None:
    master = {KEY: make_config(tests={"unit": {"commands": "make test"}})}
    candidate = {KEY: make_config(tests={"unit": {"commands": "make test"}})}

    diff = get_changed_configs(master, candidate)

    assert diff.changed == {}
    assert diff.affected_tests == {}
    assert diff.events == []


def test_new_config_is_changed_without_affected_tests(make_config) -> None:
    candidate = {KEY: make_config(tests={"unit": {"commands": "make test"}})}

    diff = get_changed_configs({}, candidate)

    assert set(diff.changed) == {KEY}
    assert KEY not in diff.affected_tests
    assert [event.reason for event in diff.events] == ["New build configuration file"]


def test_only_changed_test_is_affected(make_config) -> None:
    master = {KEY: make_config(tests={"e2e": {"commands": "make e2e"}, "unit": {"commands": "make test"}})}
    candidate = {KEY: make_config(tests={"e2e": {"commands": "make e2e"}, "unit": {"commands": "make unit"}})}

    diff = get_changed_configs(master, candidate)

    assert set(diff.changed) == {KEY}
    assert diff.affected_tests == {KEY: {"unit"}}


def test_added_test_is_affected_and_removed_test_is_ignored(make_config) -> None:
    master = {KEY: make_config(tests={"unit": {"commands": "make test"}, "lint": {"commands": "make lint"}})}
    candidate = {KEY: make_config(tests={"unit": {"commands": "make test"}, "verify": {"commands": "make verify"}})}

    diff = get_changed_configs(master, candidate)

    assert diff.affected_tests == {KEY: {"verify"}}


def test_non_test_change_invalidates_whole_config(make_config) -> None:
    master = {KEY: make_config(tests={"unit": {"commands": "make test"}})}
    candidate = {
        KEY: make_config(
            tests={"unit": {"commands": "make unit"}},
            build_root={"image_stream_tag": {"name": "release", "tag": "golang-1.22"}},
        )
    }

    diff = get_changed_configs(master, candidate)

    assert set(diff.changed) == {KEY}
    assert KEY not in diff.affected_tests
    assert diff.events[0].reason == "Build configuration file changed"


def test_unknown_fields_take_part_in_comparison(make_config) -> None:
    master = {KEY: make_config(canonical_go_repository="example.com/a")}
    candidate = {KEY: make_config(canonical_go_repository="example.com/b")}

    assert set(get_changed_configs(master, candidate).changed) == {KEY}


def test_test_order_does_not_matter(make_config) -> None:
    master = {KEY: make_config(tests={"unit": {"commands": "a"}, "e2e": {"commands": "b"}})}
    candidate = {KEY: make_config(tests={"e2e": {"commands": "b"}, "unit": {"commands": "a"}})}

    assert get_changed_configs(master, candidate).changed == {}


def test_repeated_runs_are_deterministic(make_config) -> None:
    master = {KEY: make_config(tests={"unit": {"commands": "a"}}), "other.yaml": make_config(repo="other")}
    candidate = {
        KEY: make_config(tests={"unit": {"commands": "b"}}),
        "other.yaml": make_config(repo="other", images=[{"to": "x"}]),
        "new.yaml": make_config(repo="new"),
    }

    first = get_changed_configs(master, candidate)
    second = get_changed_configs(master, candidate)

    assert set(first.changed) == set(second.changed) == {KEY, "other.yaml", "new.yaml"}
    assert first.affected_tests == second.affected_tests == {KEY: {"unit"}}


def test_projection_failure_degrades_to_test_comparison(make_config, monkeypatch) -> None:
    import rehearsal.core.configs as configs_mod

    def broken_project(model: ReleaseBuildConfiguration, **_: object) -> dict:
        raise ProjectionError("boom")

    monkeypatch.setattr(configs_mod, "project", broken_project)
    master = {KEY: make_config(tests={"unit": {"commands": "a"}})}
    candidate = {
        KEY: make_config(tests={"unit": {"commands": "b"}}, images=[{"to": "changed"}]),
    }

    diff = get_changed_configs(master, candidate)

    assert diff.affected_tests == {KEY: {"unit"}}
    assert any(event.degraded for event in diff.events)


def test_projection_failure_raises_in_strict_mode(make_config, monkeypatch) -> None:
    import rehearsal.core.configs as configs_mod

    def broken_project(model: ReleaseBuildConfiguration, **_: object) -> dict:
        raise ProjectionError("boom")

    monkeypatch.setattr(configs_mod, "project", broken_project)
    master = {KEY: make_config()}
    candidate = {KEY: make_config()}

    with pytest.raises(ConfigDiffError, match="boom"):
        get_changed_configs(master, candidate, strict=True)


def test_inputs_are_not_mutated(make_config) -> None:
    old = make_config(tests={"unit": {"commands": "a"}})
    new = make_config(tests={"unit": {"commands": "b"}}, images=[{"to": "x"}])

    get_changed_configs({KEY: old}, {KEY: new})

    assert [test.as_ for test in old.configuration.tests] == ["unit"]
    assert [test.as_ for test in new.configuration.tests] == ["unit"]


def _binary_test_configs(old_blob: str, new_blob: str) -> tuple[dict, dict]:
    from pathlib import PurePosixPath

    from rehearsal.loading import parse_configs

    path = PurePosixPath(f"org/repo/{KEY}")
    text = "tests:\n- as: unit\n  blob: !!binary {}\n- as: lint\n  commands: make lint\n"
    return parse_configs([(path, text.format(old_blob))]), parse_configs([(path, text.format(new_blob))])


def test_unserializable_test_payload_is_counted_as_affected() -> None:
    master, candidate = _binary_test_configs("/w==", "/g==")

    diff = get_changed_configs(master, candidate)

    assert diff.affected_tests == {KEY: {"unit"}}
    degraded = [event for event in diff.events if event.degraded]
    assert len(degraded) == 1
    assert "unit" in degraded[0].reason


def test_unserializable_test_payload_raises_in_strict_mode() -> None:
    master, candidate = _binary_test_configs("/w==", "/g==")

    with pytest.raises(ConfigDiffError, match="test unit"):
        get_changed_configs(master, candidate, strict=True)
