"""Data model shared by the ingestion components.

RawRow and RowOutcome live only for one parse pass. ActivityDraft is what
survives a parse and feeds the import. ParseSummary is always derived from
row outcomes and is never a source of truth.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .schema import IssueCode, IssueSeverity


class Stage(Enum):
    """Lifecycle stage of one upload."""
    UPLOADED = "uploaded"
    PARSED = "parsed"
    IMPORTED = "imported"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class UploadHandle:
    """Identity of one uploaded file. Only the pipeline mutates ``stage``."""
    id: str
    original_filename: str
    byte_size: int
    received_at: datetime
    customer_scope: str
    content_digest: str
    stage: Stage = Stage.UPLOADED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "original_filename": self.original_filename,
            "byte_size": self.byte_size,
            "received_at": self.received_at.isoformat(),
            "customer_scope": self.customer_scope,
            "content_digest": self.content_digest,
            "stage": self.stage.value,
        }


@dataclass
class RawRow:
    """One data row as text. ``row_index`` is 1-based and excludes the header."""
    row_index: int
    values: List[str]

    def value(self, column_index: Optional[int]) -> str:
        """Stripped cell text, or '' for an absent column or a short row."""
        if column_index is None or column_index >= len(self.values):
            return ""
        cell = self.values[column_index]
        return cell.strip() if cell is not None else ""

    def is_blank(self) -> bool:
        return all(not (v or "").strip() for v in self.values)


@dataclass
class Issue:
    """A diagnostic attached to a row, tied to the offending column and value."""
    code: IssueCode
    message: str
    column: Optional[str] = None
    value: Optional[str] = None

    @property
    def severity(self) -> IssueSeverity:
        return self.code.severity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "severity": self.severity.value,
            "message": self.message,
            "column": self.column,
            "value": self.value,
        }


@dataclass
class ActivityDraft:
    """A validated row awaiting import.

    ``site_ref`` is still a name; it becomes a Site id at commit time.
    ``quantity`` is None only when a notation key explains its absence, in
    which case ``excluded_from_totals`` is set.
    """
    row_index: int
    site_ref: str
    period_year: int
    activity_type: str
    scope: str
    quantity: Optional[float]
    unit: str
    period_quarter: Optional[int] = None
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    notes: str = ""
    notation_key: Optional[str] = None
    excluded_from_totals: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_index": self.row_index,
            "site_ref": self.site_ref,
            "period_year": self.period_year,
            "period_quarter": self.period_quarter,
            "activity_type": self.activity_type,
            "scope": self.scope,
            "quantity": self.quantity,
            "unit": self.unit,
            "date_start": self.date_start.isoformat() if self.date_start else None,
            "date_end": self.date_end.isoformat() if self.date_end else None,
            "notes": self.notes,
            "notation_key": self.notation_key,
            "excluded_from_totals": self.excluded_from_totals,
        }


class RowStatus(Enum):
    VALID = "valid"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class RowOutcome:
    """Tagged result of validating one row.

    VALID carries a draft and no issues, WARNING a draft plus warnings,
    ERROR only issues (at least one of them an error).
    """
    row_index: int
    status: RowStatus
    draft: Optional[ActivityDraft] = None
    issues: List[Issue] = field(default_factory=list)

    @classmethod
    def from_issues(cls, row_index: int, draft: Optional[ActivityDraft], issues: List[Issue]) -> "RowOutcome":
        """Pick the status implied by a draft and its issues."""
        if draft is None or any(i.severity is IssueSeverity.ERROR for i in issues):
            return cls(row_index=row_index, status=RowStatus.ERROR, draft=None, issues=list(issues))
        if issues:
            return cls(row_index=row_index, status=RowStatus.WARNING, draft=draft, issues=list(issues))
        return cls(row_index=row_index, status=RowStatus.VALID, draft=draft)

    @property
    def is_error(self) -> bool:
        return self.status is RowStatus.ERROR

    @property
    def is_importable(self) -> bool:
        """Valid and Warning rows both count as valid and both import."""
        return self.status is not RowStatus.ERROR

    @property
    def codes(self) -> List[IssueCode]:
        return [i.code for i in self.issues]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_index": self.row_index,
            "status": self.status.value,
            "draft": self.draft.to_dict() if self.draft else None,
            "issues": [i.to_dict() for i in self.issues],
        }


@dataclass
class ParseSummary:
    """Counts over one parse pass.

    ``valid_rows`` includes warning rows, so ``warning_rows <= valid_rows`` and
    ``valid_rows + error_rows == total_rows``.
    """
    total_rows: int = 0
    valid_rows: int = 0
    warning_rows: int = 0
    error_rows: int = 0
    year_min: Optional[int] = None
    year_max: Optional[int] = None
    counts_by_activity_type: Dict[str, int] = field(default_factory=dict)
    counts_by_scope: Dict[str, int] = field(default_factory=dict)
    quantity_totals: Dict[str, float] = field(default_factory=dict)
    excluded_rows: int = 0

    @property
    def year_range(self) -> Tuple[Optional[int], Optional[int]]:
        return (self.year_min, self.year_max)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "valid_rows": self.valid_rows,
            "warning_rows": self.warning_rows,
            "error_rows": self.error_rows,
            "year_range": {"min": self.year_min, "max": self.year_max},
            "counts_by_activity_type": dict(self.counts_by_activity_type),
            "counts_by_scope": dict(self.counts_by_scope),
            "quantity_totals": dict(self.quantity_totals),
            "excluded_rows": self.excluded_rows,
        }


@dataclass
class DraftFailure:
    """A draft that was skipped or failed during commit."""
    row_index: int
    code: IssueCode
    detail: str


@dataclass
class ImportResult:
    """Exact breakdown of one commit.

    ``total_imported`` counts newly created activities only; drafts whose
    idempotency key already existed are counted in ``total_duplicates``.
    """
    total_parsed: int = 0
    total_imported: int = 0
    total_duplicates: int = 0
    total_skipped: int = 0
    total_failed: int = 0
    created_site_ids: List[str] = field(default_factory=list)
    created_period_ids: List[str] = field(default_factory=list)
    failures: List[DraftFailure] = field(default_factory=list)
    message: str = ""

    @property
    def total_succeeded(self) -> int:
        return self.total_imported + self.total_duplicates

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_parsed": self.total_parsed,
            "total_imported": self.total_imported,
            "total_duplicates": self.total_duplicates,
            "total_skipped": self.total_skipped,
            "total_failed": self.total_failed,
            "created_site_ids": list(self.created_site_ids),
            "created_period_ids": list(self.created_period_ids),
            "failures": [
                {"row_index": f.row_index, "code": f.code.value, "detail": f.detail}
                for f in self.failures
            ],
            "message": self.message,
        }
