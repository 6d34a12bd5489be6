"""Recursive dictionary merge."""

from __future__ import annotations

from typing import Any, Mapping


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge override into a copy of base.

    Nested mappings present on both sides are merged recursively. For any
    other key the override value wins, except that ``None`` in override keeps
    the base value. Lists are replaced, not concatenated. Neither argument is
    mutated.

    Examples:
        >>> deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}, "b": 4})
        {'a': {'x': 1, 'y': 3}, 'b': 4}
        >>> deep_merge({"a": 1}, {"a": None})
        {'a': 1}
    """

    result: dict[str, Any] = dict(base)

    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        elif value is not None:
            result[key] = value
        elif key not in result:
            result[key] = None

    return result
