"""Semantic structural equality over configuration and job payloads.

Comparisons are done on projections rather than on mutated copies: a model
is dumped to plain containers (optionally excluding fields such as a
configuration's ``tests``) and both sides are normalised so that an unset
field, ``None``, an empty container and a zero scalar compare equal.
"""

from __future__ import annotations

from typing import AbstractSet, Any, Mapping

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError

__all__ = [
    "ProjectionError",
    "normalize",
    "project",
    "semantic_equal",
]


class ProjectionError(RuntimeError):
    """Raised when a model cannot be projected into plain containers."""


def _is_zero(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, bool):
        return value is False
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    return False


def normalize(value: Any) -> Any:
    """Return a canonical JSON-like view of ``value``.

    Mapping entries whose normalised value is a zero value are dropped.
    Sequence elements are kept positionally.
    """

    if isinstance(value, BaseModel):
        value = project(value)
    if isinstance(value, Mapping):
        out: dict[str, Any] = {}
        for key, item in value.items():
            normalized = normalize(item)
            if _is_zero(normalized):
                continue
            out[str(key)] = normalized
        return out
    if isinstance(value, (list, tuple)):
        return [normalize(item) for item in value]
    return value


def project(model: BaseModel, *, exclude: AbstractSet[str] = frozenset()) -> dict[str, Any]:
    """Dump ``model`` (aliases applied) without the excluded top-level fields."""

    try:
        return model.model_dump(mode="json", by_alias=True, exclude=set(exclude) or None)
    except (PydanticSerializationError, TypeError, ValueError) as exc:
        raise ProjectionError(f"Could not project {type(model).__name__}: {exc}") from exc


def semantic_equal(a: Any, b: Any, *, exclude: AbstractSet[str] = frozenset()) -> bool:
    """Compare two payloads structurally, ignoring the ``exclude`` fields of models."""

    if isinstance(a, BaseModel):
        a = project(a, exclude=exclude)
    if isinstance(b, BaseModel):
        b = project(b, exclude=exclude)
    left = normalize(a)
    right = normalize(b)
    if _is_zero(left) and _is_zero(right):
        return True
    return left == right
