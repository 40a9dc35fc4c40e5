"""Unit canonicalization using the Pint library."""

import logging
from typing import Dict, Optional

from pint import UnitRegistry

from .schema import UNIT_ALIASES

logger = logging.getLogger(__name__)

# Initialize Pint unit registry
ureg = UnitRegistry()


class UnitNormalizer:
    """Maps free-text unit spellings to canonical symbols.

    Lookup order: alias table, then Pint (re-checked against the alias table),
    then the raw text unchanged. Quantities are never converted.
    """

    def __init__(self, aliases: Optional[Dict[str, str]] = None):
        self.ureg = ureg
        self.aliases = {k.lower(): v for k, v in (aliases if aliases is not None else UNIT_ALIASES).items()}
        self._cache: Dict[str, str] = {}

    def canonicalize(self, unit: Optional[str]) -> str:
        """Canonical symbol for ``unit``.

        Examples:
            canonicalize("kwh") -> "kWh"
            canonicalize("Litres") -> "L"
            canonicalize("kilowatt_hour") -> "kWh"
            canonicalize("pallets") -> "pallets"
        """
        text = (unit or "").strip()
        if not text:
            return ""
        if text in self._cache:
            return self._cache[text]

        canonical = self.aliases.get(text.lower())
        if canonical is None:
            canonical = self._canonicalize_with_pint(text) or text

        self._cache[text] = canonical
        return canonical

    def is_known(self, unit: Optional[str]) -> bool:
        """True when the unit is in the alias table or parses as a Pint unit."""
        text = (unit or "").strip()
        if not text:
            return False
        return text.lower() in self.aliases or self._canonicalize_with_pint(text) is not None

    def _canonicalize_with_pint(self, text: str) -> Optional[str]:
        try:
            units = self.ureg.parse_units(text.replace(" ", "_"))
        except Exception as e:
            # Pint raises a variety of parser errors for arbitrary text
            logger.debug(f"Pint could not parse unit '{text}': {e}")
            return None

        if units.dimensionless:
            return None
        symbol = f"{units:~}"
        return self.aliases.get(symbol.lower(), symbol)
