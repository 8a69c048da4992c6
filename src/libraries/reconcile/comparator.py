"""Comparison helpers for override reconciliation."""

from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Sequence


class _Missing:
    """Marker for a value that is absent, as opposed to an explicit ``null``."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

# Variant map names collapse onto the map they share a layout with.
MAP_NAME_ALIASES: dict[str, str] = {
    "night factory": "Factory",
    "ground zero 21+": "Ground Zero",
}


def _is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _to_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def sort_key(value: Any) -> str:
    """Return the text used to order *value* inside a normalised sequence."""

    if value is MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return json.dumps(value)
    return _to_json(value)


def normalize(value: Any, *, sort_sequences: bool = True) -> Any:
    """Return *value* with mapping keys sorted and, optionally, sequences sorted.

    Sequence elements are ordered by :func:`sort_key` of their own normalised
    form so the result is stable regardless of source ordering. Whole floats
    become ``int`` so ``4`` and ``4.0`` compare equal.
    """

    if isinstance(value, float) and value.is_integer():
        return int(value)

    if _is_sequence(value):
        items = [normalize(item, sort_sequences=sort_sequences) for item in value]
        if sort_sequences:
            items.sort(key=sort_key)
        return items

    if _is_mapping(value):
        return {
            str(key): normalize(value[key], sort_sequences=sort_sequences)
            for key in sorted(value, key=str)
        }

    return value


def values_equal(a: Any, b: Any, *, ordered: bool = True) -> bool:
    """Return ``True`` when *a* and *b* serialise identically once normalised.

    Mapping key order never matters. Sequence order matters unless *ordered*
    is ``False``. ``MISSING`` only equals ``MISSING``.
    """

    if a is MISSING or b is MISSING:
        return a is MISSING and b is MISSING
    sort_sequences = not ordered
    return _to_json(normalize(a, sort_sequences=sort_sequences)) == _to_json(
        normalize(b, sort_sequences=sort_sequences)
    )


def compare_subset(patch_value: Any, canonical_value: Any, *, ordered: bool = False) -> bool:
    """Return ``True`` when every sub-field asserted by *patch_value* matches.

    Only keys present in a mapping patch are checked; the canonical side may
    carry extra keys. Primitives, sequences and ``None`` fall back to
    :func:`values_equal`.
    """

    if patch_value is MISSING:
        return True
    if not _is_mapping(patch_value):
        return values_equal(patch_value, canonical_value, ordered=ordered)
    if not _is_mapping(canonical_value):
        return False

    for key, expected in patch_value.items():
        if not compare_subset(expected, canonical_value.get(key, MISSING), ordered=ordered):
            return False
    return True


def canonical_map_key(
    map_ref: Any, aliases: Mapping[str, str] | None = None
) -> str | None:
    """Resolve a map reference to the key used for multi-map detection."""

    if map_ref is MISSING or not _is_mapping(map_ref):
        return None

    table = MAP_NAME_ALIASES if aliases is None else aliases
    name = map_ref.get("name")
    if isinstance(name, str) and name.strip():
        text = name.strip()
        return table.get(text.lower(), text)

    map_id = map_ref.get("id")
    return str(map_id) if map_id else None


def collect_map_keys(
    objectives: Iterable[Any], aliases: Mapping[str, str] | None = None
) -> set[str]:
    keys: set[str] = set()
    for objective in objectives:
        if not _is_mapping(objective):
            continue
        maps = objective.get("maps") or []
        if not _is_sequence(maps):
            continue
        for map_ref in maps:
            key = canonical_map_key(map_ref, aliases)
            if key:
                keys.add(key)
    return keys


def format_value(value: Any) -> str:
    """Render *value* for a human-readable detail message."""

    if value is MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, str):
        return f"'{value}'"
    if isinstance(value, bool):
        return "true" if value else "false"
    if _is_mapping(value) or _is_sequence(value):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


__all__ = [
    "MISSING",
    "MAP_NAME_ALIASES",
    "canonical_map_key",
    "collect_map_keys",
    "compare_subset",
    "format_value",
    "normalize",
    "sort_key",
    "values_equal",
]
