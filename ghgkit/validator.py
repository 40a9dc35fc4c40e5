"""Row validation against a resolved column mapping.

``RowValidator.validate`` turns one ``RawRow`` into a ``RowOutcome``. The
checks run in a fixed order:

1. activity type present (else MISSING_ACTIVITY_TYPE, stop)
2. quantity numeric or a notation key (else an error code, stop)
3. date parseable (else BAD_DATE, stop), or year inferred
4. scope read, inferred from the activity type, or defaulted
5. unit read or inferred from the activity type
6. site read or defaulted

Steps 4 to 6 only ever add warnings.
"""

import logging
import re
from datetime import date, datetime
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from .config import IngestionSettings
from .lexical_similarity import normalize_header
from .models import ActivityDraft, Issue, RawRow, RowOutcome
from .notation import NotationDecision, NotationResolver
from .schema import IssueCode, Scope, SemanticRole
from .unit_normalizer import UnitNormalizer

if TYPE_CHECKING:
    from .column_classifier import ColumnMapping

logger = logging.getLogger(__name__)


_ISO_DATE = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})$')
_ISO_DATETIME = re.compile(
    r'^(\d{4})-(\d{1,2})-(\d{1,2})[T ]\d{1,2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?$'
)
_SLASH_DATE = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})$')
_BARE_YEAR = re.compile(r'^\d{4}$')


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: Optional[str], day_first: bool = True) -> Optional[Tuple[date, date]]:
    """Parse a date cell into an inclusive (start, end) pair.

    Accepted: YYYY-MM-DD, ISO date-time, DD/MM/YYYY, MM/DD/YYYY and a bare
    year. A full date gives start == end; a bare year spans the whole year.
    Slash dates are tried in the preferred order first and fall back to the
    other order when the first reading is not a real date.

    Returns:
        (start, end), or None when the value matches no accepted format
    """
    text = (value or "").strip()
    if not text:
        return None

    match = _ISO_DATE.match(text) or _ISO_DATETIME.match(text)
    if match:
        parsed = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        return (parsed, parsed) if parsed else None

    match = _SLASH_DATE.match(text)
    if match:
        first, second, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
        orders = [(second, first), (first, second)] if day_first else [(first, second), (second, first)]
        for month, day in orders:
            parsed = _safe_date(year, month, day)
            if parsed:
                return parsed, parsed
        return None

    if _BARE_YEAR.match(text):
        year = int(text)
        if year < 1:
            return None
        return date(year, 1, 1), date(year, 12, 31)

    return None


def normalize_scope(value: Optional[str], aliases: Dict[str, str]) -> Optional[str]:
    """Canonical scope for ``value`` after stripping non-alphanumerics and case-folding."""
    key = re.sub(r'[^a-z0-9]', '', (value or "").lower())
    if not key:
        return None
    return aliases.get(key)


def match_activity_type(value: Optional[str], aliases: Dict[str, List[str]]) -> Optional[str]:
    """Canonical activity-type code for a free-text value, or None.

    An exact match on a code or alias wins. Otherwise the longest alias that
    appears as whole words inside the value is used.
    """
    normalized = normalize_header(value)
    if not normalized:
        return None

    candidates = []
    for code, names in aliases.items():
        for name in [code] + list(names):
            alias = normalize_header(name)
            if not alias:
                continue
            if alias == normalized:
                return code
            candidates.append((alias, code))

    padded = f" {normalized} "
    for alias, code in sorted(candidates, key=lambda c: -len(c[0])):
        if f" {alias} " in padded:
            return code
    return None


def canonical_activity_type(value: str, aliases: Dict[str, List[str]]) -> str:
    """Alias match, or the value upper-cased with non-alphanumerics turned into ``_``."""
    code = match_activity_type(value, aliases)
    if code:
        return code
    code = re.sub(r'[^A-Z0-9]+', '_', value.strip().upper()).strip('_')
    return code or value.strip().upper()


class RowValidator:
    """Validates raw rows and builds activity drafts.

    Args:
        settings: Ingestion settings (lookup tables, default site, date order)
        resolver: Notation resolver for quantity cells
        unit_normalizer: Unit canonicalizer
        default_year: Year used when a row carries no date; current year if None
        quarterly: Derive the period quarter from full dates
    """

    def __init__(self, settings: Optional[IngestionSettings] = None,
                 resolver: Optional[NotationResolver] = None,
                 unit_normalizer: Optional[UnitNormalizer] = None,
                 default_year: Optional[int] = None,
                 quarterly: bool = False):
        self.settings = settings or IngestionSettings()
        self.tables = self.settings.tables
        self.resolver = resolver or NotationResolver()
        self.units = unit_normalizer or UnitNormalizer(self.tables.unit_aliases)
        self.default_year = default_year or datetime.now().year
        self.quarterly = quarterly

    def validate(self, raw_row: RawRow, mapping: "ColumnMapping") -> RowOutcome:
        """Validate one row. Never raises for bad data; problems become issues."""
        issues: List[Issue] = []

        def cell(role: SemanticRole) -> Tuple[Optional[str], str]:
            column = mapping.column_for(role)
            if column is None:
                return None, ""
            return column.name, raw_row.value(column.index)

        # 1. Activity type
        type_column, raw_type = cell(SemanticRole.ACTIVITY_TYPE)
        if not raw_type:
            issues.append(Issue(IssueCode.MISSING_ACTIVITY_TYPE, "Activity type is empty",
                                column=type_column, value=raw_type))
            return self._reject(raw_row, issues)
        activity_type = canonical_activity_type(raw_type, self.tables.activity_type_aliases)

        # 2. Quantity
        decision = self._resolve_quantity(mapping, raw_row, issues)
        if decision is None:
            return self._reject(raw_row, issues)

        # 3. Date
        dates = self._resolve_dates(mapping, raw_row, issues)
        if dates is None:
            return self._reject(raw_row, issues)
        period_year, period_quarter, date_start, date_end = dates

        # 4. Scope
        scope = self._resolve_scope(mapping, raw_row, activity_type, issues)

        # 5. Unit
        unit_column, raw_unit = cell(SemanticRole.UNIT)
        if raw_unit:
            unit = self.units.canonicalize(raw_unit)
        else:
            unit = self.units.canonicalize(self.tables.activity_type_units.get(activity_type, ""))
            if not unit:
                issues.append(Issue(IssueCode.UNIT_MISSING,
                                    f"No unit given and none known for {activity_type}",
                                    column=unit_column, value=raw_unit))

        # 6. Site
        _, raw_site = cell(SemanticRole.SITE)
        site_ref = raw_site or self.settings.default_site_name

        draft = ActivityDraft(
            row_index=raw_row.row_index,
            site_ref=site_ref,
            period_year=period_year,
            period_quarter=period_quarter,
            activity_type=activity_type,
            scope=scope,
            quantity=decision.value if decision.is_numeric else None,
            unit=unit,
            date_start=date_start,
            date_end=date_end,
            notes=self._build_notes(mapping, raw_row, decision),
            notation_key=decision.token if decision.is_notation else None,
            excluded_from_totals=decision.is_notation,
        )
        return RowOutcome.from_issues(raw_row.row_index, draft, issues)

    def _reject(self, raw_row: RawRow, issues: List[Issue]) -> RowOutcome:
        logger.debug(f"Row {raw_row.row_index} rejected: {[i.code.value for i in issues]}")
        return RowOutcome.from_issues(raw_row.row_index, None, issues)

    def _resolve_quantity(self, mapping: "ColumnMapping", raw_row: RawRow,
                          issues: List[Issue]) -> Optional[NotationDecision]:
        column = mapping.column_for(SemanticRole.QUANTITY)
        name = column.name if column else None
        raw = raw_row.value(column.index if column else None)
        decision = self.resolver.resolve(raw)

        if decision.is_blank:
            notation_column = mapping.column_for(SemanticRole.NOTATION_KEY)
            raw_notation = raw_row.value(notation_column.index if notation_column else None)
            if not raw_notation:
                issues.append(Issue(IssueCode.MISSING_QUANTITY, "Quantity is empty", column=name, value=raw))
                return None
            decision = self.resolver.resolve(raw_notation)
            if not decision.is_notation:
                issues.append(Issue(IssueCode.UNRESOLVED_NOTATION,
                                    f"Quantity is empty and '{raw_notation}' is not a notation key",
                                    column=notation_column.name, value=raw_notation))
                return None
            return decision

        if decision.is_notation:
            return decision
        if not decision.is_numeric:
            issues.append(Issue(IssueCode.INVALID_QUANTITY,
                                f"'{raw}' is neither a number nor a notation key", column=name, value=raw))
            return None
        if decision.value < 0:
            issues.append(Issue(IssueCode.NEGATIVE_QUANTITY, f"Quantity {raw} is negative", column=name, value=raw))
            return None
        if decision.value == 0:
            issues.append(Issue(IssueCode.ZERO_QUANTITY, "Quantity is zero", column=name, value=raw))
        return decision

    def _resolve_dates(self, mapping: "ColumnMapping", raw_row: RawRow, issues: List[Issue]):
        """(year, quarter, start, end), or None after recording BAD_DATE."""
        column = mapping.column_for(SemanticRole.DATE)
        raw = raw_row.value(column.index if column else None)

        if not raw:
            issues.append(Issue(IssueCode.INFERRED_YEAR,
                                f"No date given; assuming {self.default_year}",
                                column=column.name if column else None, value=raw))
            return self.default_year, None, None, None

        parsed = parse_date(raw, self.settings.day_first)
        if parsed is None:
            issues.append(Issue(IssueCode.BAD_DATE, f"Unrecognised date '{raw}'", column=column.name, value=raw))
            return None

        start, end = parsed
        quarter = None
        if self.quarterly and start == end:
            quarter = (start.month - 1) // 3 + 1
        return start.year, quarter, start, end

    def _resolve_scope(self, mapping: "ColumnMapping", raw_row: RawRow,
                       activity_type: str, issues: List[Issue]) -> str:
        column = mapping.column_for(SemanticRole.SCOPE)
        inferred = self.tables.activity_type_scopes.get(activity_type)

        if column is None:
            scope = inferred or Scope.SCOPE_3.value
            issues.append(Issue(IssueCode.SCOPE_DEFAULTED,
                                f"No scope column; using {scope} for {activity_type}"))
            return scope

        raw = raw_row.value(column.index)
        scope = normalize_scope(raw, self.tables.scope_aliases)
        if scope:
            return scope
        if inferred:
            issues.append(Issue(IssueCode.SCOPE_INFERRED,
                                f"Scope '{raw}' not recognised; inferred {inferred} from {activity_type}",
                                column=column.name, value=raw))
            return inferred
        issues.append(Issue(IssueCode.SCOPE_DEFAULTED,
                            f"Scope '{raw}' not recognised and no default for {activity_type}; using SCOPE_3",
                            column=column.name, value=raw))
        return Scope.SCOPE_3.value

    def _build_notes(self, mapping: "ColumnMapping", raw_row: RawRow, decision: NotationDecision) -> str:
        parts = []
        notes_column = mapping.column_for(SemanticRole.NOTES)
        if notes_column is not None and raw_row.value(notes_column.index):
            parts.append(raw_row.value(notes_column.index))
        for column in mapping.unmapped_columns:
            value = raw_row.value(column.index)
            if value:
                parts.append(f"{column.name}: {value}")
        if decision.is_notation:
            parts.append(f"Notation: {decision.token}")
        return "; ".join(parts)
