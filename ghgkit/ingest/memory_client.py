"""In-memory activity repository.

Used by tests and by callers that want to preview an import without a
database. Safe to share between threads.
"""

import threading
from dataclasses import replace
from datetime import date
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from .activity_import import ActivityRecord, ActivityRepository, ReportingPeriod, Site


class InMemoryClient(ActivityRepository):
    """ActivityRepository backed by dictionaries guarded by one lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self.sites: Dict[str, Site] = {}
        self.periods: Dict[str, ReportingPeriod] = {}
        self.activities: Dict[str, ActivityRecord] = {}
        self._keys = set()

    def find_site_by_name(self, customer_id: str, name: str) -> Optional[Site]:
        with self._lock:
            return self._find_site(customer_id, name)

    def get_or_create_site(self, customer_id: str, name: str, description: str = "") -> Tuple[Site, bool]:
        with self._lock:
            existing = self._find_site(customer_id, name)
            if existing is not None:
                return existing, False
            site = Site(id=str(uuid4()), customer_id=customer_id, name=name, description=description)
            self.sites[site.id] = site
        return site, True

    def get_period(self, customer_id: str, period_id: str) -> Optional[ReportingPeriod]:
        with self._lock:
            period = self.periods.get(period_id)
        if period is None or period.customer_id != customer_id:
            return None
        return period

    def find_period(self, customer_id: str, year: int, quarter: Optional[int]) -> Optional[ReportingPeriod]:
        with self._lock:
            return self._find_period(customer_id, year, quarter)

    def get_or_create_period(
        self,
        customer_id: str,
        name: str,
        year: int,
        quarter: Optional[int],
        start_date: date,
        end_date: date
    ) -> Tuple[ReportingPeriod, bool]:
        with self._lock:
            existing = self._find_period(customer_id, year, quarter)
            if existing is not None:
                return existing, False
            period = ReportingPeriod(
                id=str(uuid4()),
                customer_id=customer_id,
                name=name,
                year=year,
                quarter=quarter,
                start_date=start_date,
                end_date=end_date,
            )
            self.periods[period.id] = period
        return period, True

    def insert_activity(self, record: ActivityRecord) -> bool:
        with self._lock:
            if record.idempotency_key in self._keys:
                return False
            stored = replace(record, id=str(uuid4()))
            self.activities[stored.id] = stored
            self._keys.add(stored.idempotency_key)
        return True

    def activities_for(self, customer_id: str) -> List[ActivityRecord]:
        """All activities of one customer, in insertion order."""
        with self._lock:
            return [a for a in self.activities.values() if a.customer_id == customer_id]

    # Callers hold self._lock

    def _find_site(self, customer_id: str, name: str) -> Optional[Site]:
        wanted = name.strip().lower()
        for site in self.sites.values():
            if site.customer_id == customer_id and site.name.lower() == wanted:
                return site
        return None

    def _find_period(self, customer_id: str, year: int, quarter: Optional[int]) -> Optional[ReportingPeriod]:
        for period in self.periods.values():
            if period.customer_id == customer_id and period.year == year and period.quarter == quarter:
                return period
        return None
