"""Merging of config levels (system < user < project < explicit < env)."""

from __future__ import annotations

from typing import Any


def _is_named_list(value: Any) -> bool:
    return isinstance(value, list) and all(
        isinstance(item, dict) and isinstance(item.get("name"), str) for item in value
    )


def _merge_named(base: list[dict[str, Any]], override: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Merge entries that share a case-insensitive ``name``; new names are appended."""
    merged = {item["name"].lower(): item for item in base}
    for item in override:
        key = item["name"].lower()
        if key in merged:
            # The lower level's spelling of the name wins
            merged[key] = {**deep_merge(merged[key], item), "name": merged[key]["name"]}
        else:
            merged[key] = item
    return list(merged.values())


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    - dicts merge recursively
    - lists of ``{"name": ...}`` entries (the list form of ``languages``)
      merge entry by entry, so a project file can change one language
      server without repeating the others
    - other lists are replaced
    - ``None`` never overrides, so a partial file leaves lower levels intact
    """
    result = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value)
        elif current and value and _is_named_list(current) and _is_named_list(value):
            result[key] = _merge_named(current, value)
        else:
            result[key] = value
    return result


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge config dicts lowest priority first."""
    result: dict[str, Any] = {}
    for config in filter(None, configs):
        result = deep_merge(result, config)
    return result
