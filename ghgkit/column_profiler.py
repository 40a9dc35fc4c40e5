"""Column profiling from sampled values.

Header names alone are often ambiguous ("Value", "Type", "Period"). The
profile computed here describes what a column actually contains so the
classifier can boost or suppress roles by content shape.
"""

import re
import statistics
from collections import Counter
from typing import Any, Dict, List, Optional

from .config import LookupTables, MAX_SAMPLE_SIZE
from .notation import NotationResolver
from .validator import match_activity_type, normalize_scope, parse_date


class ColumnProfiler:
    """Profiles columns by analyzing sample values."""

    # Bare reporting years are numeric but are not quantities
    YEAR_PATTERN = re.compile(r'^(19|20)\d{2}$')

    # Values longer than this are not treated as category tokens
    SHORT_TOKEN_LENGTH = 32

    def __init__(self, tables: Optional[LookupTables] = None, sample_size: int = MAX_SAMPLE_SIZE,
                 day_first: bool = True):
        """Initialize the column profiler.

        Args:
            tables: Lookup tables used to recognise scopes, activity types and units
            sample_size: Maximum number of non-empty values to look at (capped at 20)
            day_first: Date parsing order for ambiguous slash dates
        """
        self.tables = tables or LookupTables()
        self.sample_size = min(sample_size, MAX_SAMPLE_SIZE)
        self.day_first = day_first
        self._known_units = {u.lower() for u in self.tables.unit_aliases}
        self._known_units.update(u.lower() for u in self.tables.unit_aliases.values())

    def profile_column(self, column_name: str, values: List[Any]) -> Dict[str, Any]:
        """Compute a content profile for one column.

        Args:
            column_name: Header of the column being profiled
            values: Sampled raw cell values

        Returns:
            Dictionary with ratios in [0, 1] for each content signal. An empty
            sample yields ``sample_size == 0`` and all ratios 0.
        """
        sample = self._get_sample(values)
        profile = {
            'column_name': column_name,
            'sample_size': len(sample),
            'null_count': len(values) - len([v for v in values if v is not None and str(v).strip()]),
            'numeric_ratio': 0.0,
            'year_ratio': 0.0,
            'date_ratio': 0.0,
            'scope_ratio': 0.0,
            'activity_type_ratio': 0.0,
            'unit_ratio': 0.0,
            'notation_ratio': 0.0,
            'cardinality': self._compute_cardinality(sample),
            'length_stats': self._compute_length_stats(sample),
        }
        if not sample:
            return profile

        total = len(sample)
        numeric = [v for v in sample if NotationResolver.parse_number(v) is not None]
        profile['numeric_ratio'] = len(numeric) / total
        profile['year_ratio'] = sum(1 for v in sample if self.YEAR_PATTERN.match(v)) / total
        # Bare years count as years, not as dates
        profile['date_ratio'] = sum(
            1 for v in sample
            if not self.YEAR_PATTERN.match(v) and parse_date(v, self.day_first) is not None
        ) / total
        profile['scope_ratio'] = sum(
            1 for v in sample if normalize_scope(v, self.tables.scope_aliases) is not None
        ) / total
        profile['activity_type_ratio'] = sum(
            1 for v in sample if match_activity_type(v, self.tables.activity_type_aliases) is not None
        ) / total
        profile['unit_ratio'] = sum(1 for v in sample if v.lower() in self._known_units) / total
        resolver = NotationResolver()
        profile['notation_ratio'] = sum(1 for v in sample if resolver.is_token(v)) / total
        return profile

    def profile_table(self, header: List[str], rows: List[List[str]]) -> List[Dict[str, Any]]:
        """Profile every column of a sampled table, in column order."""
        profiles = []
        for index, name in enumerate(header):
            values = [row[index] if index < len(row) else "" for row in rows]
            profiles.append(self.profile_column(name, values))
        return profiles

    def is_short_category(self, profile: Dict[str, Any]) -> bool:
        """True when a column looks like a small set of repeating short text tokens."""
        if profile['sample_size'] < 2 or profile['numeric_ratio'] >= 0.5:
            return False
        cardinality = profile['cardinality']
        return (
            cardinality['unique_ratio'] <= 0.5
            and profile['length_stats']['max'] <= self.SHORT_TOKEN_LENGTH
        )

    def _get_sample(self, values: List[Any]) -> List[str]:
        non_null = [str(v).strip() for v in values if v is not None and str(v).strip()]
        return non_null[:self.sample_size]

    def _compute_cardinality(self, values: List[str]) -> Dict[str, float]:
        """Unique ratio and share of values that repeat."""
        if not values:
            return {'unique_ratio': 0.0, 'repeated_ratio': 0.0, 'unique_count': 0, 'total_count': 0}

        value_counts = Counter(v.lower() for v in values)
        total = len(values)
        unique_count = len(value_counts)
        repeated_count = sum(1 for count in value_counts.values() if count > 1)

        return {
            'unique_ratio': unique_count / total,
            'repeated_ratio': repeated_count / unique_count,
            'unique_count': unique_count,
            'total_count': total,
        }

    def _compute_length_stats(self, values: List[str]) -> Dict[str, float]:
        if not values:
            return {'mean': 0.0, 'median': 0.0, 'min': 0, 'max': 0}

        lengths = [len(v) for v in values]
        return {
            'mean': statistics.mean(lengths),
            'median': statistics.median(lengths),
            'min': min(lengths),
            'max': max(lengths),
        }
