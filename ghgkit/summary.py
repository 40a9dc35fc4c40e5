"""Aggregation of row outcomes into a parse summary."""

from typing import Iterable

from .models import ParseSummary, RowOutcome, RowStatus


class AggregationSummarizer:
    """Single-pass fold of row outcomes into a ``ParseSummary``.

    Holds no state between calls: summarizing the same outcomes twice gives
    equal summaries. Year range, per-type and per-scope counts, and unit
    totals cover Valid and Warning rows only. Notation rows are counted but
    contribute nothing to ``quantity_totals``.
    """

    def summarize(self, outcomes: Iterable[RowOutcome]) -> ParseSummary:
        summary = ParseSummary()
        for outcome in outcomes:
            self.add(summary, outcome)
        return summary

    @staticmethod
    def add(summary: ParseSummary, outcome: RowOutcome) -> ParseSummary:
        """Fold one outcome into ``summary`` in place."""
        summary.total_rows += 1
        if outcome.status is RowStatus.ERROR:
            summary.error_rows += 1
            return summary

        summary.valid_rows += 1
        if outcome.status is RowStatus.WARNING:
            summary.warning_rows += 1

        draft = outcome.draft
        year = draft.period_year
        summary.year_min = year if summary.year_min is None else min(summary.year_min, year)
        summary.year_max = year if summary.year_max is None else max(summary.year_max, year)

        summary.counts_by_activity_type[draft.activity_type] = \
            summary.counts_by_activity_type.get(draft.activity_type, 0) + 1
        summary.counts_by_scope[draft.scope] = summary.counts_by_scope.get(draft.scope, 0) + 1

        if draft.excluded_from_totals or draft.quantity is None:
            summary.excluded_rows += 1
        else:
            summary.quantity_totals[draft.unit] = summary.quantity_totals.get(draft.unit, 0.0) + draft.quantity
        return summary
