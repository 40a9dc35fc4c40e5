"""Column role classification.

Each input column is scored against every semantic role from two signals:

- header similarity to the role keyword table (exact, whole-word, fuzzy)
- content shape of a sample of at most 20 rows (numeric, dates, scopes,
  known activity types, known units, small sets of repeating tokens)

Assignment is greedy over (score desc, column index asc) with at most one
column per role, so on equal scores the leftmost column wins. Columns that
never clear the confidence floor are Unmapped and pass through into notes.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .column_profiler import ColumnProfiler
from .config import IngestionSettings
from .lexical_similarity import LexicalSimilarity
from .schema import MANDATORY_ROLES, ROLE_SCHEMAS, SemanticRole

logger = logging.getLogger(__name__)


# Fuzzy header matches count only above this similarity
FUZZY_THRESHOLD = 0.75

_ASSIGNABLE_ROLES = [r for r in SemanticRole if r is not SemanticRole.UNMAPPED]


@dataclass
class ColumnAssignment:
    """Role chosen for one input column."""
    index: int
    name: str
    role: SemanticRole
    score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "role": self.role.value,
            "label": ROLE_SCHEMAS[self.role.value]["label"] if self.role is not SemanticRole.UNMAPPED else None,
            "score": round(self.score, 3),
        }


@dataclass
class ColumnMapping:
    """Ordered assignment of input columns to semantic roles."""
    columns: List[ColumnAssignment] = field(default_factory=list)

    def column_for(self, role: SemanticRole) -> Optional[ColumnAssignment]:
        for column in self.columns:
            if column.role is role:
                return column
        return None

    def missing_roles(self) -> List[SemanticRole]:
        """Mandatory roles no column qualified for."""
        return [role for role in MANDATORY_ROLES if self.column_for(role) is None]

    @property
    def is_usable(self) -> bool:
        return not self.missing_roles()

    @property
    def unmapped_columns(self) -> List[ColumnAssignment]:
        return [c for c in self.columns if c.role is SemanticRole.UNMAPPED]

    def roles(self) -> Dict[str, str]:
        """Role value -> column name for every mapped column."""
        return {c.role.value: c.name for c in self.columns if c.role is not SemanticRole.UNMAPPED}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": [c.to_dict() for c in self.columns],
            "usable": self.is_usable,
            "missing_roles": [r.value for r in self.missing_roles()],
            "missing_role_details": [dict(ROLE_SCHEMAS[r.value]) for r in self.missing_roles()],
        }


class ColumnClassifier:
    """Assigns semantic roles to columns from header names and sampled content."""

    def __init__(self, settings: Optional[IngestionSettings] = None):
        self.settings = settings or IngestionSettings()
        self.tables = self.settings.tables
        self.confidence_floor = self.settings.confidence_floor
        self.profiler = ColumnProfiler(self.tables, self.settings.sample_size, self.settings.day_first)

        self.lexical = LexicalSimilarity()
        self._keywords: Dict[SemanticRole, List[str]] = {}
        for role in _ASSIGNABLE_ROLES:
            normalized = [self.lexical.normalize_text(kw) for kw in self.tables.role_keywords.get(role.value, [])]
            self._keywords[role] = [kw for kw in normalized if kw]

    def classify(self, header_row: List[str], sample_rows: List[List[str]]) -> ColumnMapping:
        """Build a column mapping.

        Args:
            header_row: Column names, in input order
            sample_rows: Leading data rows; only the first ``sample_size`` are used

        Returns:
            ColumnMapping covering every input column. Check ``is_usable``
            before validating rows with it.
        """
        sample = sample_rows[:self.settings.sample_size]
        profiles = self.profiler.profile_table(header_row, sample)

        candidates = []
        for index, name in enumerate(header_row):
            scores = self.score_column(name, profiles[index])
            logger.debug(f"Column {index} '{name}' scores: "
                         f"{ {r.value: round(s, 2) for r, s in scores.items() if s > 0} }")
            for role_order, role in enumerate(_ASSIGNABLE_ROLES):
                if scores[role] > self.confidence_floor:
                    candidates.append((-scores[role], index, role_order, role))

        assigned: Dict[int, ColumnAssignment] = {}
        taken = set()
        for negative_score, index, _, role in sorted(candidates, key=lambda c: c[:3]):
            if index in assigned or role in taken:
                continue
            assigned[index] = ColumnAssignment(index, header_row[index], role, -negative_score)
            taken.add(role)

        columns = [
            assigned.get(index, ColumnAssignment(index, name, SemanticRole.UNMAPPED))
            for index, name in enumerate(header_row)
        ]
        mapping = ColumnMapping(columns)
        logger.debug(f"Column mapping: {mapping.roles()}, unmapped: {[c.name for c in mapping.unmapped_columns]}")
        return mapping

    def score_column(self, header: str, profile: Dict[str, Any]) -> Dict[SemanticRole, float]:
        """Score one column for every assignable role."""
        scores = {role: self.header_score(header, role) for role in _ASSIGNABLE_ROLES}
        for role, boost in self.content_boosts(profile).items():
            scores[role] += boost
        return scores

    def header_score(self, header: str, role: SemanticRole) -> float:
        """Header-name evidence for ``role`` in [0, 1].

        Exact keyword match scores 1.0. A keyword appearing as whole words
        inside the header scores 0.6 to 0.9 depending on how much of the
        header it covers. A fuzzy match scores 0.8 times the similarity.
        """
        normalized = self.lexical.normalize_text(header)
        if not normalized:
            return 0.0
        header_tokens = normalized.split()
        padded = f" {normalized} "

        best = 0.0
        for keyword in self._keywords.get(role, []):
            if keyword == normalized:
                return 1.0
            if f" {keyword} " in padded:
                best = max(best, 0.6 + 0.3 * len(keyword.split()) / len(header_tokens))
                continue
            similarity = self.lexical.calculate_similarity(normalized, keyword)
            if similarity >= FUZZY_THRESHOLD:
                best = max(best, similarity * 0.8)
        return best

    def content_boosts(self, profile: Dict[str, Any]) -> Dict[SemanticRole, float]:
        """Content-shape evidence from a column profile."""
        boosts: Dict[SemanticRole, float] = {}
        if profile['sample_size'] == 0:
            return boosts

        quantity_like = profile['numeric_ratio'] + profile['notation_ratio']
        if quantity_like >= 0.8 and profile['numeric_ratio'] > 0 and profile['year_ratio'] < 0.8:
            boosts[SemanticRole.QUANTITY] = 0.55
        if profile['notation_ratio'] >= 0.8:
            boosts[SemanticRole.NOTATION_KEY] = 0.55

        if profile['date_ratio'] >= 0.8:
            boosts[SemanticRole.DATE] = 0.6
        elif profile['year_ratio'] >= 0.8:
            boosts[SemanticRole.DATE] = 0.55
        elif profile['date_ratio'] >= 0.5:
            boosts[SemanticRole.DATE] = 0.4

        # Bare digits 1-3 are scope aliases too; leave numeric columns to the header
        if profile['scope_ratio'] >= 0.8 and profile['numeric_ratio'] < 0.8:
            boosts[SemanticRole.SCOPE] = 0.6
        if profile['activity_type_ratio'] >= 0.8:
            boosts[SemanticRole.ACTIVITY_TYPE] = 0.55
        if profile['unit_ratio'] >= 0.8:
            boosts[SemanticRole.UNIT] = 0.55

        if self.profiler.is_short_category(profile):
            for role in (SemanticRole.SCOPE, SemanticRole.ACTIVITY_TYPE):
                boosts[role] = boosts.get(role, 0.0) + 0.15

        return boosts
