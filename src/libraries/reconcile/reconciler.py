"""Decide whether community overrides are still needed upstream."""

from __future__ import annotations

from collections import Counter
from typing import Any, Callable, Iterable, Mapping, Sequence

import structlog

from libraries.reconcile.comparator import MISSING
from libraries.reconcile.models import (
    CategorizedVerdicts,
    DetailStatus,
    FieldDetail,
    Verdict,
    VerdictStatus,
)
from libraries.reconcile.rules import (
    DISABLED_FIELD,
    OBJECTIVES_ADD_FIELD,
    OBJECTIVES_FIELD,
    DisabledPolicy,
    ReconcilePolicy,
    build_field_rules,
    compare_field,
)

log = structlog.get_logger(__name__)

Record = Mapping[str, Any]
CanonicalSet = Mapping[str, Record] | Sequence[Record]

UNKNOWN_NAME = "Unknown"


def index_canonical(records: CanonicalSet) -> dict[str, Record]:
    """Return canonical records keyed by their ``id``."""

    if isinstance(records, Mapping):
        return {str(key): value for key, value in records.items()}

    index: dict[str, Record] = {}
    for record in records:
        if isinstance(record, Mapping) and record.get("id") is not None:
            index.setdefault(str(record["id"]), record)
    return index


def _display_name(record: Mapping[str, Any] | None, fallback: str = UNKNOWN_NAME) -> str:
    if isinstance(record, Mapping):
        name = record.get("name")
        if isinstance(name, str) and name:
            return name
    return fallback


def _canonical_objectives(canonical: Record) -> list[Record]:
    objectives = canonical.get(OBJECTIVES_FIELD) or []
    if isinstance(objectives, str) or not isinstance(objectives, Sequence):
        return []
    return [objective for objective in objectives if isinstance(objective, Mapping)]


def _objective_details(patch: Record, canonical: Record) -> list[FieldDetail]:
    patched = patch.get(OBJECTIVES_FIELD)
    if patched is None:
        return []
    if not isinstance(patched, Mapping):
        return [
            FieldDetail(
                field=OBJECTIVES_FIELD,
                status=DetailStatus.CHECK,
                message="objectives: override is not an object - CHECK MANUALLY",
            )
        ]

    by_id = {str(obj.get("id")): obj for obj in _canonical_objectives(canonical)}
    details: list[FieldDetail] = []
    for objective_id, objective_patch in patched.items():
        api_objective = by_id.get(str(objective_id))
        if api_objective is None:
            details.append(
                FieldDetail(
                    field=f"objective:{objective_id}",
                    status=DetailStatus.CHECK,
                    message=f"objective {objective_id}: Not found in API - CHECK MANUALLY",
                )
            )
            continue
        if not isinstance(objective_patch, Mapping):
            details.append(
                FieldDetail(
                    field=f"objective:{objective_id}",
                    status=DetailStatus.CHECK,
                    message=f"objective {objective_id}: override is not an object - CHECK MANUALLY",
                )
            )
            continue
        for field, value in objective_patch.items():
            details.append(
                compare_field(
                    f"objective:{objective_id}:{field}",
                    value,
                    api_objective.get(field, MISSING),
                    label=f"objective {field}",
                )
            )
    return details


def _added_objective_details(patch: Record, canonical: Record) -> list[FieldDetail]:
    added = patch.get(OBJECTIVES_ADD_FIELD)
    if added is None:
        return []
    if isinstance(added, str) or not isinstance(added, Sequence):
        return [
            FieldDetail(
                field=OBJECTIVES_ADD_FIELD,
                status=DetailStatus.CHECK,
                message="objectivesAdd: override is not a list - CHECK MANUALLY",
            )
        ]

    objectives = _canonical_objectives(canonical)
    details: list[FieldDetail] = []
    for position, entry in enumerate(added):
        if not isinstance(entry, Mapping):
            details.append(
                FieldDetail(
                    field=f"{OBJECTIVES_ADD_FIELD}[{position}]",
                    status=DetailStatus.CHECK,
                    message=(
                        f"added objective #{position}: entry is not an object - "
                        "CHECK MANUALLY"
                    ),
                )
            )
            continue
        added_id = entry.get("id")
        description = entry.get("description")
        key = added_id or description
        match = next(
            (
                objective
                for objective in objectives
                if (added_id is not None and objective.get("id") == added_id)
                or (description is not None and objective.get("description") == description)
            ),
            None,
        )
        if match is not None:
            details.append(
                FieldDetail(
                    field=f"objectivesAdd:{key}",
                    status=DetailStatus.FIXED,
                    message=(
                        f"added objective '{description}': NOW IN API - "
                        "MOVE TO OBJECTIVES OR REMOVE"
                    ),
                )
            )
        else:
            details.append(
                FieldDetail(
                    field=f"objectivesAdd:{key}",
                    status=DetailStatus.NEEDED,
                    message=(
                        f"added objective '{description}': Still missing from API - "
                        "STILL NEEDED"
                    ),
                )
            )
    return details


def _disabled_verdict(
    entity_id: str, name: str, policy: ReconcilePolicy
) -> Verdict:
    if policy.disabled_policy is DisabledPolicy.RESOLVE:
        return Verdict(
            id=entity_id,
            display_name=name,
            status=VerdictStatus.REMOVED_FROM_API,
            details=[
                FieldDetail(
                    field=DISABLED_FIELD,
                    status=DetailStatus.INFO,
                    message=(
                        "disabled: task still in API but marked as disabled - "
                        "override can be removed once the API drops it"
                    ),
                )
            ],
        )
    return Verdict(
        id=entity_id,
        display_name=name,
        status=VerdictStatus.NEEDED,
        details=[
            FieldDetail(
                field=DISABLED_FIELD,
                status=DetailStatus.CHECK,
                message=(
                    "disabled: task still present in API - verify removal from "
                    "gameplay or keep override if intentional"
                ),
            )
        ],
    )


def reconcile(
    entity_id: str,
    patch: Record,
    canonical_records: CanonicalSet,
    *,
    policy: ReconcilePolicy | None = None,
) -> Verdict:
    """Classify one patch record against the canonical snapshot.

    The result is ``REMOVED_FROM_API`` when the entity no longer exists
    upstream, ``NEEDED`` when any detail is ``needed`` or ``check`` and
    ``FIXED`` otherwise.
    """

    if policy is None:
        policy = ReconcilePolicy()
    index = (
        canonical_records
        if isinstance(canonical_records, dict)
        else index_canonical(canonical_records)
    )
    canonical = index.get(str(entity_id))

    if canonical is None:
        return Verdict(
            id=entity_id,
            display_name=_display_name(patch),
            status=VerdictStatus.REMOVED_FROM_API,
            details=[
                FieldDetail(
                    field="task",
                    status=DetailStatus.INFO,
                    message="Task not found in API - has been removed from tarkov.dev",
                )
            ],
        )

    name = _display_name(canonical)
    if patch.get(DISABLED_FIELD) is True:
        return _disabled_verdict(entity_id, name, policy)

    details: list[FieldDetail] = []
    for rule in build_field_rules(patch, policy):
        detail = rule.evaluate(patch, canonical)
        if detail is not None:
            details.append(detail)
    details.extend(_objective_details(patch, canonical))
    details.extend(_added_objective_details(patch, canonical))

    needed = any(
        detail.status in (DetailStatus.NEEDED, DetailStatus.CHECK) for detail in details
    )
    return Verdict(
        id=entity_id,
        display_name=name,
        status=VerdictStatus.NEEDED if needed else VerdictStatus.FIXED,
        details=details,
    )


def reconcile_all(
    patches: Mapping[str, Record | None],
    canonical_records: CanonicalSet,
    *,
    policy: ReconcilePolicy | None = None,
    progress_callback: Callable[[int], None] | None = None,
) -> list[Verdict]:
    """Reconcile every patch in store order, skipping null records.

    ``progress_callback`` is invoked with a step of one after each patch.
    """

    index = index_canonical(canonical_records)
    verdicts: list[Verdict] = []
    for entity_id, patch in patches.items():
        if not isinstance(patch, Mapping):
            continue
        verdicts.append(reconcile(str(entity_id), patch, index, policy=policy))
        if progress_callback is not None:
            progress_callback(1)
    totals = Counter(verdict.status.value for verdict in verdicts)
    log.info(
        "reconcile.complete",
        patches=len(verdicts),
        canonical=len(index),
        **{status.lower(): count for status, count in totals.items()},
    )
    return verdicts


def reconcile_addition(
    key: str, addition: Record, canonical_records: CanonicalSet
) -> Verdict:
    """Check whether a wholly new entity has since appeared upstream."""

    index = index_canonical(canonical_records)
    added_id = addition.get("id")
    name = addition.get("name")
    match = index.get(str(added_id)) if added_id is not None else None
    if match is None and isinstance(name, str):
        match = next(
            (record for record in index.values() if record.get("name") == name), None
        )

    display = _display_name(addition, fallback=str(key))
    if match is not None:
        return Verdict(
            id=str(key),
            display_name=display,
            status=VerdictStatus.FIXED,
            details=[
                FieldDetail(
                    field="addition",
                    status=DetailStatus.FIXED,
                    message=(
                        f"addition matches API record {match.get('id')} - "
                        "now present upstream - remove or promote"
                    ),
                )
            ],
        )
    return Verdict(
        id=str(key),
        display_name=display,
        status=VerdictStatus.NEEDED,
        details=[
            FieldDetail(
                field="addition",
                status=DetailStatus.NEEDED,
                message="addition not present in API - STILL NEEDED",
            )
        ],
    )


def categorize(verdicts: Iterable[Verdict]) -> CategorizedVerdicts:
    """Partition verdicts into still-needed, fixed and removed groups."""

    still_needed: list[Verdict] = []
    fixed: list[Verdict] = []
    removed: list[Verdict] = []
    for verdict in verdicts:
        if verdict.still_needed:
            still_needed.append(verdict)
        elif verdict.status is VerdictStatus.FIXED:
            fixed.append(verdict)
        else:
            removed.append(verdict)
    return CategorizedVerdicts(still_needed=still_needed, fixed=fixed, removed_from_api=removed)


__all__ = [
    "categorize",
    "index_canonical",
    "reconcile",
    "reconcile_addition",
    "reconcile_all",
]
