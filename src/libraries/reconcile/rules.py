"""Per-field rules used by :mod:`libraries.reconcile.reconciler`."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml
from pydantic import BaseModel, Field, ValidationError

from libraries.reconcile.comparator import (
    MAP_NAME_ALIASES,
    MISSING,
    collect_map_keys,
    compare_subset,
    format_value,
)
from libraries.reconcile.models import DetailStatus, FieldDetail

OBJECTIVES_FIELD = "objectives"
OBJECTIVES_ADD_FIELD = "objectivesAdd"
DISABLED_FIELD = "disabled"
MAP_FIELD = "map"
REQUIREMENTS_FIELD = "taskRequirements"


class DisabledPolicy(str, Enum):
    """How a ``disabled: true`` patch is classified while upstream still has it."""

    FLAG = "flag"
    RESOLVE = "resolve"


class ReconcilePolicy(BaseModel):
    """Tunable behaviour of the reconciler."""

    disabled_policy: DisabledPolicy = DisabledPolicy.FLAG
    ignored_requirement_statuses: Sequence[str] = ("active", "accepted")
    map_aliases: Mapping[str, str] = Field(default_factory=lambda: dict(MAP_NAME_ALIASES))
    reserved_fields: Sequence[str] = (OBJECTIVES_FIELD, OBJECTIVES_ADD_FIELD, DISABLED_FIELD)

    def aliases(self) -> dict[str, str]:
        return {key.strip().lower(): value for key, value in self.map_aliases.items()}


def _needed(field: str, message: str) -> FieldDetail:
    return FieldDetail(field=field, status=DetailStatus.NEEDED, message=message)


def _fixed(field: str, message: str) -> FieldDetail:
    return FieldDetail(field=field, status=DetailStatus.FIXED, message=message)


def _check(field: str, message: str) -> FieldDetail:
    return FieldDetail(field=field, status=DetailStatus.CHECK, message=message)


def compare_field(
    field: str, patch_value: Any, canonical_value: Any, *, label: str | None = None
) -> FieldDetail:
    """Build a detail for one asserted value using subset comparison."""

    name = label or field
    if compare_subset(patch_value, canonical_value):
        return _fixed(field, f"{name}: {format_value(canonical_value)} - FIXED IN API")
    return _needed(
        field,
        f"{name}: API={format_value(canonical_value)}, "
        f"Override={format_value(patch_value)} - STILL NEEDED",
    )


class FieldRule:
    """Base class for field rules.

    A rule inspects a patch record and its canonical record and returns a
    :class:`FieldDetail`, or ``None`` when it has nothing to report.
    """

    def __init__(self, field: str) -> None:
        self.field = field

    def evaluate(
        self, patch: Mapping[str, Any], canonical: Mapping[str, Any]
    ) -> FieldDetail | None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.field!r})"


class SubsetFieldRule(FieldRule):
    """Compare an asserted top-level field against the canonical value."""

    def evaluate(
        self, patch: Mapping[str, Any], canonical: Mapping[str, Any]
    ) -> FieldDetail | None:
        patch_value = patch.get(self.field, MISSING)
        if patch_value is MISSING:
            return None
        return compare_field(self.field, patch_value, canonical.get(self.field, MISSING))


class LocationFieldRule(FieldRule):
    """Top-level map check aware of entities spanning several maps.

    An entity whose objectives (upstream and patched) cover more than one
    base map must carry ``map: null`` rather than a concrete map.
    """

    def __init__(self, aliases: Mapping[str, str] | None = None, field: str = MAP_FIELD) -> None:
        super().__init__(field)
        self.aliases = dict(MAP_NAME_ALIASES if aliases is None else aliases)

    def has_multiple_maps(
        self, patch: Mapping[str, Any], canonical: Mapping[str, Any]
    ) -> bool:
        canonical_objectives = canonical.get(OBJECTIVES_FIELD) or []
        patch_objectives = patch.get(OBJECTIVES_FIELD) or {}
        if not isinstance(canonical_objectives, Sequence) or isinstance(canonical_objectives, str):
            canonical_objectives = []
        patched = patch_objectives.values() if isinstance(patch_objectives, Mapping) else []
        keys = collect_map_keys(canonical_objectives, self.aliases)
        keys |= collect_map_keys(patched, self.aliases)
        return len(keys) > 1

    def evaluate(
        self, patch: Mapping[str, Any], canonical: Mapping[str, Any]
    ) -> FieldDetail | None:
        patch_value = patch.get(self.field, MISSING)
        canonical_value = canonical.get(self.field, MISSING)

        if not self.has_multiple_maps(patch, canonical):
            if patch_value is MISSING:
                return None
            return compare_field(self.field, patch_value, canonical_value)

        if patch_value is MISSING:
            if canonical_value is MISSING or canonical_value is None:
                return None
            return _needed(
                self.field,
                "map: task has multiple objective maps; add map: null to clear "
                f"top-level map (API={format_value(canonical_value)}) - STILL NEEDED",
            )

        if patch_value is not None:
            return _needed(
                self.field,
                "map: task has multiple objective maps; override should be null "
                f"(API={format_value(canonical_value)}, "
                f"Override={format_value(patch_value)}) - STILL NEEDED",
            )

        if compare_subset(patch_value, canonical_value):
            return _fixed(self.field, "map: null - FIXED IN API")
        return _needed(
            self.field,
            f"map: API={format_value(canonical_value)}, Override=null - STILL NEEDED",
        )


def _requirement_id(requirement: Any) -> str:
    if isinstance(requirement, Mapping):
        task = requirement.get("task")
        if isinstance(task, Mapping) and task.get("id") is not None:
            return str(task["id"])
    return "?"


class RequirementsFieldRule(FieldRule):
    """Compare prerequisite references as an order-insensitive id set."""

    def __init__(
        self,
        ignored_statuses: Sequence[str] = ("active", "accepted"),
        field: str = REQUIREMENTS_FIELD,
    ) -> None:
        super().__init__(field)
        self.ignored_statuses = frozenset(status.strip().lower() for status in ignored_statuses)

    def _is_prerequisite(self, requirement: Any) -> bool:
        if not isinstance(requirement, Mapping):
            return False
        statuses = requirement.get("status") or []
        if isinstance(statuses, str):
            statuses = [statuses]
        return not any(
            str(status).strip().lower() in self.ignored_statuses for status in statuses
        )

    def evaluate(
        self, patch: Mapping[str, Any], canonical: Mapping[str, Any]
    ) -> FieldDetail | None:
        patch_value = patch.get(self.field, MISSING)
        if patch_value is MISSING:
            return None
        patch_reqs: list[Any] = []
        if isinstance(patch_value, Sequence) and not isinstance(patch_value, str):
            patch_reqs = list(patch_value)
        elif patch_value is not None:
            return _check(
                self.field,
                f"taskRequirements: override is not a list "
                f"({format_value(patch_value)}) - CHECK MANUALLY",
            )
        if not all(isinstance(req, Mapping) for req in patch_reqs):
            return _check(
                self.field, "taskRequirements: override has malformed entries - CHECK MANUALLY"
            )

        canonical_value = canonical.get(self.field) or []
        if isinstance(canonical_value, str) or not isinstance(canonical_value, Sequence):
            canonical_value = []
        canonical_reqs = [req for req in canonical_value if self._is_prerequisite(req)]

        if not canonical_reqs:
            if patch_reqs:
                return _needed(
                    self.field,
                    f"taskRequirements: API=[] (empty), Override has {len(patch_reqs)} "
                    "requirement(s) - STILL NEEDED",
                )
            return None

        canonical_ids = sorted(_requirement_id(req) for req in canonical_reqs)
        patch_ids = sorted(_requirement_id(req) for req in patch_reqs)
        if canonical_ids != patch_ids:
            return _needed(
                self.field,
                f"taskRequirements: API has different requirements ({', '.join(canonical_ids)}) "
                f"vs Override ({', '.join(patch_ids)}) - NEEDS REVIEW",
            )
        return _fixed(self.field, "taskRequirements: FIXED IN API")


def build_field_rules(
    patch: Mapping[str, Any], policy: ReconcilePolicy | None = None
) -> list[FieldRule]:
    """Return the ordered rule list for the fields *patch* declares.

    The location rule is always present so that a multi-map entity is
    reported even when the patch says nothing about ``map``.
    """

    if policy is None:
        policy = ReconcilePolicy()
    reserved = set(policy.reserved_fields)
    location_rule = LocationFieldRule(policy.aliases())

    rules: list[FieldRule] = []
    for field in patch:
        if field in reserved:
            continue
        if field == MAP_FIELD:
            rules.append(location_rule)
        elif field == REQUIREMENTS_FIELD:
            rules.append(RequirementsFieldRule(policy.ignored_requirement_statuses))
        else:
            rules.append(SubsetFieldRule(field))

    if MAP_FIELD not in patch:
        rules.append(location_rule)
    return rules


def load_policy(path: Path) -> ReconcilePolicy:
    """Load a :class:`ReconcilePolicy` from a YAML (or JSON) document."""

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return ReconcilePolicy()
    if not isinstance(data, Mapping):
        msg = "reconcile policy must be a mapping of settings"
        raise ValueError(msg)
    section = data.get("reconcile", data)
    try:
        return ReconcilePolicy.model_validate(section)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


__all__ = [
    "DisabledPolicy",
    "FieldRule",
    "LocationFieldRule",
    "ReconcilePolicy",
    "RequirementsFieldRule",
    "SubsetFieldRule",
    "build_field_rules",
    "compare_field",
    "load_policy",
]
