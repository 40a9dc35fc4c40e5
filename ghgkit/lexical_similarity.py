"""Lexical similarity for header matching.

Headers in third-party exports are inconsistent ("Qty", "activity_type",
"ActivityType", "Quantitiy"). This module normalizes them to lower-case
space-separated tokens and scores how close a header is to a keyword.
"""

import re
from typing import Optional


# Abbreviations seen in emissions exports
ABBREVIATION_DICT = {
    "qty": "quantity",
    "qnty": "quantity",
    "amt": "amount",
    "uom": "unit of measure",
    "desc": "description",
    "loc": "location",
    "cat": "category",
    "fac": "facility",
    "cons": "consumption",
    "yr": "year",
    "dt": "date",
    "ghg": "ghg",
}

# Common typos
COMMON_MISSPELLINGS = {
    "quantitiy": "quantity",
    "quantiy": "quantity",
    "quanity": "quantity",
    "activty": "activity",
    "acitivity": "activity",
    "consumtion": "consumption",
    "facilty": "facility",
    "locaton": "location",
    "scpoe": "scope",
}


def normalize_header(text: Optional[str]) -> str:
    """Lower-case, split camelCase, turn separators into single spaces.

    >>> normalize_header("Activity_Type")
    'activity type'
    >>> normalize_header("  ActivityDataAmount ")
    'activity data amount'
    """
    if not text:
        return ""
    text = str(text).strip()
    text = re.sub(r'([a-z0-9])([A-Z])', r'\1 \2', text)
    text = text.lower()
    text = re.sub(r'[_\-\.,;:!?/()\[\]#]+', ' ', text)
    return re.sub(r'\s+', ' ', text).strip()


class LexicalSimilarity:
    """Similarity scores between a header and a role keyword."""

    def normalize_text(self, text: str) -> str:
        """Normalize and expand abbreviations and known typos token by token."""
        tokens = []
        for token in normalize_header(text).split():
            token = COMMON_MISSPELLINGS.get(token, token)
            tokens.append(ABBREVIATION_DICT.get(token, token))
        return " ".join(tokens)

    def jaro_winkler_similarity(self, s1: str, s2: str, p: float = 0.1) -> float:
        """Jaro-Winkler similarity, good at short labels with typos."""
        if not s1 or not s2:
            return 0.0
        if s1 == s2:
            return 1.0

        jaro = self._jaro_similarity(s1, s2)
        prefix = 0
        for a, b in zip(s1[:4], s2[:4]):
            if a != b:
                break
            prefix += 1
        return min(jaro + p * prefix * (1 - jaro), 1.0)

    def _jaro_similarity(self, s1: str, s2: str) -> float:
        window = max(max(len(s1), len(s2)) // 2 - 1, 0)
        s1_flags = [False] * len(s1)
        s2_flags = [False] * len(s2)

        matches = 0
        for i, ch in enumerate(s1):
            lo = max(0, i - window)
            hi = min(i + window + 1, len(s2))
            for j in range(lo, hi):
                if not s2_flags[j] and s2[j] == ch:
                    s1_flags[i] = s2_flags[j] = True
                    matches += 1
                    break
        if matches == 0:
            return 0.0

        s1_matched = [c for c, f in zip(s1, s1_flags) if f]
        s2_matched = [c for c, f in zip(s2, s2_flags) if f]
        transpositions = sum(a != b for a, b in zip(s1_matched, s2_matched)) / 2

        return (
            matches / len(s1) +
            matches / len(s2) +
            (matches - transpositions) / matches
        ) / 3.0

    def edit_distance(self, s1: str, s2: str) -> int:
        """Levenshtein distance, two-row variant."""
        if not s1:
            return len(s2)
        if not s2:
            return len(s1)
        previous = list(range(len(s2) + 1))
        for i, c1 in enumerate(s1, start=1):
            current = [i]
            for j, c2 in enumerate(s2, start=1):
                current.append(min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (c1 != c2),
                ))
            previous = current
        return previous[-1]

    def jaccard_similarity(self, s1: str, s2: str) -> float:
        tokens1 = set(self.normalize_text(s1).split())
        tokens2 = set(self.normalize_text(s2).split())
        if not tokens1 and not tokens2:
            return 1.0
        if not tokens1 or not tokens2:
            return 0.0
        return len(tokens1 & tokens2) / len(tokens1 | tokens2)

    def calculate_similarity(self, s1: str, s2: str) -> float:
        """Combined similarity in [0, 1].

        Short labels lean on character metrics (Jaro-Winkler, edit distance),
        longer ones on token overlap.
        """
        if not s1 or not s2:
            return 0.0
        norm1 = self.normalize_text(s1)
        norm2 = self.normalize_text(s2)
        if not norm1 or not norm2:
            return 0.0
        if norm1 == norm2:
            return 1.0

        jaccard = self.jaccard_similarity(norm1, norm2)
        if len(norm1) < 15 and len(norm2) < 15:
            jaro_winkler = self.jaro_winkler_similarity(norm1, norm2)
            edit = 1.0 - self.edit_distance(norm1, norm2) / max(len(norm1), len(norm2))
            return min(0.4 * jaro_winkler + 0.4 * edit + 0.2 * jaccard, 1.0)
        return jaccard
