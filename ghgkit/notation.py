"""Notation-key resolution for quantity cells.

GHG inventories use short tokens instead of numbers to say *why* a value is
absent. None of them means zero: a resolved notation yields a null quantity
tagged as excluded from totals.

    NO  not occurring          -> NOT_APPLICABLE
    NA  not applicable         -> NOT_APPLICABLE
    IE  included elsewhere     -> NOT_APPLICABLE
    NE  not estimated          -> NOT_ESTIMATED
    NR  not reported           -> NOT_ESTIMATED
    C   confidential           -> CONFIDENTIAL
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class NotationKind(Enum):
    NUMERIC = "numeric"
    NOT_APPLICABLE = "not_applicable"
    NOT_ESTIMATED = "not_estimated"
    CONFIDENTIAL = "confidential"
    UNRESOLVED = "unresolved"


NOTATION_TOKENS: Dict[str, NotationKind] = {
    "NO": NotationKind.NOT_APPLICABLE,
    "NA": NotationKind.NOT_APPLICABLE,
    "IE": NotationKind.NOT_APPLICABLE,
    "NE": NotationKind.NOT_ESTIMATED,
    "NR": NotationKind.NOT_ESTIMATED,
    "C": NotationKind.CONFIDENTIAL,
}

# "1500.25", "-3", "+4", "2e3"
_NUMBER_PATTERN = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')
# Thousands groups with one consistent separator: "1,500", "12,345.6", "1 500 000"
_GROUPED_PATTERN = re.compile(r'^[+-]?\d{1,3}(?P<sep>[, ])\d{3}((?P=sep)\d{3})*(\.\d+)?$')


@dataclass(frozen=True)
class NotationDecision:
    """Outcome of resolving one quantity cell."""
    kind: NotationKind
    value: Optional[float] = None
    token: Optional[str] = None

    @property
    def is_numeric(self) -> bool:
        return self.kind is NotationKind.NUMERIC

    @property
    def is_notation(self) -> bool:
        """True for the tokens that exclude a row from numeric totals."""
        return self.kind in (
            NotationKind.NOT_APPLICABLE,
            NotationKind.NOT_ESTIMATED,
            NotationKind.CONFIDENTIAL,
        )

    @property
    def is_blank(self) -> bool:
        return self.kind is NotationKind.UNRESOLVED and self.token is None


class NotationResolver:
    """Turns a raw quantity cell into a definite quantity/skip decision."""

    def __init__(self, tokens: Optional[Dict[str, NotationKind]] = None):
        self.tokens = dict(tokens) if tokens is not None else dict(NOTATION_TOKENS)

    def resolve(self, raw_value: Optional[str]) -> NotationDecision:
        """Resolve a cell.

        Blank cells are UNRESOLVED with no token; unrecognized text is
        UNRESOLVED with the offending text as token.
        """
        text = (raw_value or "").strip()
        if not text:
            return NotationDecision(NotationKind.UNRESOLVED)

        number = self.parse_number(text)
        if number is not None:
            return NotationDecision(NotationKind.NUMERIC, value=number)

        token = text.upper().strip(".")
        kind = self.tokens.get(token)
        if kind is not None:
            return NotationDecision(kind, token=token)

        return NotationDecision(NotationKind.UNRESOLVED, token=text)

    def is_token(self, raw_value: Optional[str]) -> bool:
        return (raw_value or "").strip().upper().strip(".") in self.tokens

    @staticmethod
    def parse_number(text: str) -> Optional[float]:
        """Parse a finite number, tolerating well-formed thousands groups.

        "1,500" and "1 500" are accepted; "1,5" and "12,34,5" are not, since
        a misplaced separator is more likely a decimal comma than a grouping.
        """
        cleaned = text.strip()
        if _GROUPED_PATTERN.match(cleaned):
            cleaned = re.sub(r'[, ]', '', cleaned)
        if not _NUMBER_PATTERN.match(cleaned):
            return None
        value = float(cleaned)
        if not math.isfinite(value):
            return None
        return value
