"""Result models produced by the override reconciler."""

from __future__ import annotations

from enum import Enum
from typing import Sequence

from pydantic import BaseModel, ConfigDict, Field, computed_field


class VerdictStatus(str, Enum):
    """Overall outcome for one patch record."""

    NEEDED = "NEEDED"
    FIXED = "FIXED"
    NOT_FOUND = "NOT_FOUND"
    REMOVED_FROM_API = "REMOVED_FROM_API"


class DetailStatus(str, Enum):
    """Outcome for a single asserted field."""

    NEEDED = "needed"
    FIXED = "fixed"
    CHECK = "check"
    INFO = "info"


class FieldDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    status: DetailStatus
    message: str


class Verdict(BaseModel):
    """Reconciliation outcome for one entity's patch record."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    display_name: str = Field(alias="displayName")
    status: VerdictStatus
    details: Sequence[FieldDetail] = ()

    @computed_field(alias="stillNeeded")  # type: ignore[prop-decorator]
    @property
    def still_needed(self) -> bool:
        return self.status is VerdictStatus.NEEDED


class CategorizedVerdicts(BaseModel):
    """Report-ready partition of verdicts."""

    still_needed: Sequence[Verdict] = Field(default=(), alias="stillNeeded")
    fixed: Sequence[Verdict] = ()
    removed_from_api: Sequence[Verdict] = Field(default=(), alias="removedFromApi")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def obsolete(self) -> int:
        """Number of patches that can be deleted from the store."""

        return len(self.fixed) + len(self.removed_from_api)


__all__ = [
    "CategorizedVerdicts",
    "DetailStatus",
    "FieldDetail",
    "Verdict",
    "VerdictStatus",
]
