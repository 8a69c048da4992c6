"""Override reconciliation against canonical upstream data."""

from libraries.reconcile.comparator import (
    MISSING,
    MAP_NAME_ALIASES,
    canonical_map_key,
    compare_subset,
    format_value,
    normalize,
    values_equal,
)
from libraries.reconcile.models import (
    CategorizedVerdicts,
    DetailStatus,
    FieldDetail,
    Verdict,
    VerdictStatus,
)
from libraries.reconcile.reconciler import (
    categorize,
    index_canonical,
    reconcile,
    reconcile_addition,
    reconcile_all,
)
from libraries.reconcile.rules import (
    DisabledPolicy,
    FieldRule,
    LocationFieldRule,
    ReconcilePolicy,
    RequirementsFieldRule,
    SubsetFieldRule,
    build_field_rules,
    load_policy,
)

__all__ = [
    "MISSING",
    "MAP_NAME_ALIASES",
    "canonical_map_key",
    "compare_subset",
    "format_value",
    "normalize",
    "values_equal",
    "CategorizedVerdicts",
    "DetailStatus",
    "FieldDetail",
    "Verdict",
    "VerdictStatus",
    "categorize",
    "index_canonical",
    "reconcile",
    "reconcile_addition",
    "reconcile_all",
    "DisabledPolicy",
    "FieldRule",
    "LocationFieldRule",
    "ReconcilePolicy",
    "RequirementsFieldRule",
    "SubsetFieldRule",
    "build_field_rules",
    "load_policy",
]
