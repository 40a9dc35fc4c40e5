"""
Activity import: committing validated drafts as persisted activity records.

Each draft is committed independently. There is no transaction spanning the
batch, so one draft's storage failure is recorded and the rest continue.
Every record carries a deterministic idempotency key; re-importing the same
upload finds the keys already present and counts those drafts as duplicates
instead of creating new activities.

Identity resolution:
- Sites are matched by case-insensitive exact name within the customer
- Reporting periods are matched by (year, quarter), quarter None for a year
- Missing entities are created only when ``auto_create`` is set
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import ActivityImportError, ImportErrorKind, RepositoryError
from ..models import ActivityDraft, DraftFailure, ImportResult
from ..schema import IssueCode

logger = logging.getLogger(__name__)


AUTO_CREATED_SITE_DESCRIPTION = "Auto-created during activity import"
PERIOD_STATUS_OPEN = "OPEN"


@dataclass
class Site:
    id: str
    customer_id: str
    name: str
    description: str = ""
    country: Optional[str] = None


@dataclass
class ReportingPeriod:
    id: str
    customer_id: str
    name: str
    year: int
    quarter: Optional[int]
    start_date: date
    end_date: date
    status: str = PERIOD_STATUS_OPEN


@dataclass
class ActivityRecord:
    """An activity as persisted. ``id`` is assigned by the repository."""
    customer_id: str
    site_id: str
    period_id: str
    activity_type: str
    scope: str
    quantity: Optional[float]
    unit: str
    date_start: date
    date_end: date
    notes: str
    notation_key: Optional[str]
    excluded_from_totals: bool
    source_upload_id: str
    source_row_index: int
    idempotency_key: str
    id: Optional[str] = None


class ActivityRepository:
    """
    Abstract storage interface for sites, reporting periods and activities.

    Implementations raise ``RepositoryError`` for storage failures. Every
    call is presumed to block; none is retried by the committer.
    """

    def find_site_by_name(self, customer_id: str, name: str) -> Optional[Site]:
        """
        Find a site by case-insensitive exact name.

        Returns:
            The site, or None when no site of the customer has that name
        """
        raise NotImplementedError

    def get_or_create_site(self, customer_id: str, name: str, description: str = "") -> Tuple[Site, bool]:
        """
        Resolve or create a site by case-insensitive exact name.

        Lookup and insert are atomic, so concurrent callers asking for the
        same name get the same site.

        Returns:
            (site, created) where created is False when the site already existed
        """
        raise NotImplementedError

    def get_period(self, customer_id: str, period_id: str) -> Optional[ReportingPeriod]:
        raise NotImplementedError

    def find_period(self, customer_id: str, year: int, quarter: Optional[int]) -> Optional[ReportingPeriod]:
        """Find the period for (year, quarter); quarter None means the whole year."""
        raise NotImplementedError

    def get_or_create_period(
        self,
        customer_id: str,
        name: str,
        year: int,
        quarter: Optional[int],
        start_date: date,
        end_date: date
    ) -> Tuple[ReportingPeriod, bool]:
        """
        Resolve or create the period for (year, quarter), atomically.

        Returns:
            (period, created) where created is False when the period already existed
        """
        raise NotImplementedError

    def insert_activity(self, record: ActivityRecord) -> bool:
        """
        Insert an activity unless its idempotency key already exists.

        Returns:
            True if a new record was created, False if the key was present
        """
        raise NotImplementedError


def period_bounds(year: int, quarter: Optional[int]) -> Tuple[date, date]:
    """Calendar bounds of a year or of one of its quarters."""
    if quarter is None:
        return date(year, 1, 1), date(year, 12, 31)
    if quarter not in (1, 2, 3, 4):
        raise ValueError(f"quarter must be 1-4, got {quarter}")
    start = date(year, 3 * (quarter - 1) + 1, 1)
    if quarter == 4:
        return start, date(year, 12, 31)
    next_start = date(year, 3 * quarter + 1, 1)
    return start, date.fromordinal(next_start.toordinal() - 1)


def period_name(year: int, quarter: Optional[int]) -> str:
    return f"{year}" if quarter is None else f"{year} Q{quarter}"


def compute_idempotency_key(
    site_id: str,
    period_id: str,
    activity_type: str,
    date_start: Optional[date],
    date_end: Optional[date],
    quantity: Optional[float],
    unit: str,
    source_upload_id: str
) -> str:
    """
    Deterministic key for an activity.

    Identical inputs always give the same key, so importing the same upload
    twice produces the same keys.

    Returns:
        SHA256 hex digest
    """
    payload = {
        "site_id": site_id,
        "period_id": period_id,
        "activity_type": activity_type,
        "date_start": date_start,
        "date_end": date_end,
        "quantity": quantity,
        "unit": unit,
        "source_upload_id": source_upload_id,
    }
    json_str = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(json_str.encode('utf-8')).hexdigest()


class ImportCommitter:
    """Commits activity drafts through an ``ActivityRepository``."""

    def __init__(self, repository: ActivityRepository):
        self.repository = repository

    def commit(
        self,
        drafts: Iterable[ActivityDraft],
        customer_id: str,
        upload_id: str,
        target_period_id: Optional[str] = None,
        auto_create: bool = False,
        debug: bool = False
    ) -> ImportResult:
        """
        Commit drafts as activity records.

        Args:
            drafts: Validated drafts (Valid and Warning rows)
            customer_id: Owner of the sites, periods and activities
            upload_id: Source upload, part of every idempotency key
            target_period_id: Put every activity into this period
            auto_create: Create missing sites, and periods when no target is given
            debug: Log identity resolution decisions at info level

        Returns:
            ImportResult with the exact imported/duplicate/skipped/failed breakdown

        Raises:
            ActivityImportError: NO_PERIOD_SELECTED, PERIOD_NOT_FOUND or
                PERSISTENCE_FAILURE before any draft is processed;
                PARTIAL_COMMIT_FAILURE when drafts failed and none succeeded
        """
        drafts = list(drafts)
        if target_period_id is None and not auto_create:
            raise ActivityImportError(
                ImportErrorKind.NO_PERIOD_SELECTED,
                "Select a reporting period or enable auto-create"
            )

        result = ImportResult(total_parsed=len(drafts))
        target = None
        if target_period_id is not None:
            try:
                target = self.repository.get_period(customer_id, target_period_id)
            except RepositoryError as e:
                raise ActivityImportError(
                    ImportErrorKind.PERSISTENCE_FAILURE,
                    f"Could not load reporting period {target_period_id}: {e}",
                    result
                ) from e
            if target is None:
                raise ActivityImportError(
                    ImportErrorKind.PERIOD_NOT_FOUND,
                    f"Reporting period {target_period_id} not found"
                )

        sites: Dict[str, Optional[str]] = {}
        periods: Dict[Tuple[int, Optional[int]], ReportingPeriod] = {}

        try:
            for draft in drafts:
                self._commit_draft(draft, customer_id, upload_id, target, auto_create,
                                   sites, periods, result, debug)
        except Exception as e:
            logger.error(f"Activity import for upload {upload_id} failed: {e}", exc_info=True)
            raise

        result.message = (
            f"Imported {result.total_imported} new activities "
            f"({result.total_duplicates} already present, {result.total_skipped} skipped, "
            f"{result.total_failed} failed)"
        )
        logger.info(f"Upload {upload_id}: {result.message}")

        if result.total_failed > 0 and result.total_succeeded == 0:
            raise ActivityImportError(
                ImportErrorKind.PARTIAL_COMMIT_FAILURE,
                f"All {result.total_failed} attempted activities failed to persist",
                result
            )
        return result

    def _commit_draft(
        self,
        draft: ActivityDraft,
        customer_id: str,
        upload_id: str,
        target: Optional[ReportingPeriod],
        auto_create: bool,
        sites: Dict[str, Optional[str]],
        periods: Dict[Tuple[int, Optional[int]], ReportingPeriod],
        result: ImportResult,
        debug: bool
    ) -> None:
        try:
            site_id = self._resolve_site(draft.site_ref, customer_id, auto_create, sites, result, debug)
            if site_id is None:
                result.total_skipped += 1
                result.failures.append(DraftFailure(
                    draft.row_index, IssueCode.SITE_NOT_FOUND,
                    f"Site '{draft.site_ref}' does not exist"
                ))
                return

            period = target or self._resolve_period(draft, customer_id, periods, result, debug)
            record = self._build_record(draft, customer_id, upload_id, site_id, period)
            created = self.repository.insert_activity(record)
        except RepositoryError as e:
            logger.warning(f"Row {draft.row_index}: persistence failed: {e}")
            result.total_failed += 1
            result.failures.append(DraftFailure(draft.row_index, IssueCode.PERSISTENCE_FAILED, str(e)))
            return

        if created:
            result.total_imported += 1
        else:
            result.total_duplicates += 1
            self._trace(debug, f"Row {draft.row_index}: activity already imported, skipped as duplicate")

    def _resolve_site(
        self,
        site_ref: str,
        customer_id: str,
        auto_create: bool,
        sites: Dict[str, Optional[str]],
        result: ImportResult,
        debug: bool
    ) -> Optional[str]:
        """Site id for ``site_ref``; None when it is missing and cannot be created."""
        key = site_ref.strip().lower()
        if key in sites:
            return sites[key]

        site = self.repository.find_site_by_name(customer_id, site_ref.strip())
        if site is not None:
            self._trace(debug, f"Site match: '{site_ref}' -> existing site {site.id}")
            sites[key] = site.id
            return site.id

        if not auto_create:
            self._trace(debug, f"Site '{site_ref}' not found and auto-create is off")
            sites[key] = None
            return None

        site, created = self.repository.get_or_create_site(
            customer_id, site_ref.strip(), AUTO_CREATED_SITE_DESCRIPTION
        )
        if created:
            result.created_site_ids.append(site.id)
            logger.info(f"Site created: '{site.name}' -> new site {site.id}")
        else:
            self._trace(debug, f"Site match: '{site_ref}' -> site {site.id} created concurrently")
        sites[key] = site.id
        return site.id

    def _resolve_period(
        self,
        draft: ActivityDraft,
        customer_id: str,
        periods: Dict[Tuple[int, Optional[int]], ReportingPeriod],
        result: ImportResult,
        debug: bool
    ) -> ReportingPeriod:
        key = (draft.period_year, draft.period_quarter)
        if key in periods:
            return periods[key]

        period = self.repository.find_period(customer_id, draft.period_year, draft.period_quarter)
        if period is not None:
            self._trace(debug, f"Period match: {period.name} -> existing period {period.id}")
        else:
            start, end = period_bounds(draft.period_year, draft.period_quarter)
            period, created = self.repository.get_or_create_period(
                customer_id,
                period_name(draft.period_year, draft.period_quarter),
                draft.period_year,
                draft.period_quarter,
                start,
                end
            )
            if created:
                result.created_period_ids.append(period.id)
                logger.info(f"Reporting period created: {period.name} -> new period {period.id}")
            else:
                self._trace(debug, f"Period match: {period.name} -> period {period.id} created concurrently")

        periods[key] = period
        return period

    def _build_record(
        self,
        draft: ActivityDraft,
        customer_id: str,
        upload_id: str,
        site_id: str,
        period: ReportingPeriod
    ) -> ActivityRecord:
        # Undated drafts cover their whole period
        date_start = draft.date_start or period.start_date
        date_end = draft.date_end or period.end_date
        key = compute_idempotency_key(
            site_id, period.id, draft.activity_type, date_start, date_end,
            draft.quantity, draft.unit, upload_id
        )
        return ActivityRecord(
            customer_id=customer_id,
            site_id=site_id,
            period_id=period.id,
            activity_type=draft.activity_type,
            scope=draft.scope,
            quantity=draft.quantity,
            unit=draft.unit,
            date_start=date_start,
            date_end=date_end,
            notes=draft.notes,
            notation_key=draft.notation_key,
            excluded_from_totals=draft.excluded_from_totals,
            source_upload_id=upload_id,
            source_row_index=draft.row_index,
            idempotency_key=key,
        )

    @staticmethod
    def _trace(debug: bool, message: str) -> None:
        if debug:
            logger.info(message)
        else:
            logger.debug(message)
