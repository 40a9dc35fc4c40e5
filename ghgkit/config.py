"""Runtime configuration for the ingestion pipeline.

Settings come from ``GHGKIT_*`` environment variables with sensible defaults.
The keyword and lookup tables start from ``ghgkit.schema`` and can be
overridden per deployment with a JSON file::

    {
        "activity_type_scopes": {"STEAM": "SCOPE_2"},
        "activity_type_units": {"STEAM": "kWh"}
    }

Dictionary tables are merged key by key over the defaults.
"""

import copy
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .schema import (
    ROLE_KEYWORDS,
    ACTIVITY_TYPE_ALIASES,
    ACTIVITY_TYPE_SCOPES,
    ACTIVITY_TYPE_UNITS,
    SCOPE_ALIASES,
    UNIT_ALIASES,
)

logger = logging.getLogger(__name__)

# Content sampling for column classification never looks further than this
MAX_SAMPLE_SIZE = 20


@dataclass
class LookupTables:
    """Keyword and lookup tables driving classification and inference."""
    role_keywords: Dict[str, List[str]] = field(default_factory=lambda: copy.deepcopy(ROLE_KEYWORDS))
    activity_type_aliases: Dict[str, List[str]] = field(default_factory=lambda: copy.deepcopy(ACTIVITY_TYPE_ALIASES))
    activity_type_scopes: Dict[str, str] = field(default_factory=lambda: dict(ACTIVITY_TYPE_SCOPES))
    activity_type_units: Dict[str, str] = field(default_factory=lambda: dict(ACTIVITY_TYPE_UNITS))
    scope_aliases: Dict[str, str] = field(default_factory=lambda: dict(SCOPE_ALIASES))
    unit_aliases: Dict[str, str] = field(default_factory=lambda: dict(UNIT_ALIASES))

    @classmethod
    def load(cls, path: Optional[str] = None) -> "LookupTables":
        """Build tables from the defaults, merged with a JSON override file.

        Raises:
            FileNotFoundError: If ``path`` is given but does not exist
            ValueError: If the file is not a JSON object or names an unknown table
        """
        tables = cls()
        if not path:
            return tables

        override_path = Path(path)
        if not override_path.exists():
            raise FileNotFoundError(f"Lookup table file not found: {path}")

        with open(override_path, 'r', encoding='utf-8') as f:
            overrides = json.load(f)

        if not isinstance(overrides, dict):
            raise ValueError(f"Lookup table file {path} must contain a JSON object")

        for name, values in overrides.items():
            if not hasattr(tables, name):
                raise ValueError(f"Unknown lookup table '{name}' in {path}")
            if not isinstance(values, dict):
                raise ValueError(f"Lookup table '{name}' in {path} must be an object")
            getattr(tables, name).update(values)
            logger.info(f"Lookup table '{name}' overridden with {len(values)} entries from {path}")

        return tables


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class IngestionSettings:
    """Tunable parameters of the ingestion pipeline.

    Attributes:
        confidence_floor: Minimum role score for a column to be mapped
        sample_size: Rows sampled for content-shape classification (max 20)
        preview_valid_rows: Valid rows returned in a parse preview
        preview_error_rows: Error rows returned with a parse report
        default_site_name: Site used when a row carries no site
        day_first: Try DD/MM/YYYY before MM/DD/YYYY for slash dates
        tables: Keyword and lookup tables
    """
    confidence_floor: float = 0.5
    sample_size: int = MAX_SAMPLE_SIZE
    preview_valid_rows: int = 5
    preview_error_rows: int = 20
    default_site_name: str = "Default Site"
    day_first: bool = True
    tables: LookupTables = field(default_factory=LookupTables)

    def __post_init__(self):
        if not 0.0 < self.confidence_floor <= 1.0:
            raise ValueError(f"confidence_floor must be in (0, 1], got {self.confidence_floor}")
        if self.sample_size < 1:
            raise ValueError(f"sample_size must be positive, got {self.sample_size}")
        self.sample_size = min(self.sample_size, MAX_SAMPLE_SIZE)

    @classmethod
    def from_env(cls) -> "IngestionSettings":
        """Read settings from ``GHGKIT_*`` environment variables."""
        return cls(
            confidence_floor=float(os.getenv("GHGKIT_CONFIDENCE_FLOOR", "0.5")),
            sample_size=int(os.getenv("GHGKIT_SAMPLE_SIZE", str(MAX_SAMPLE_SIZE))),
            preview_valid_rows=int(os.getenv("GHGKIT_PREVIEW_VALID_ROWS", "5")),
            preview_error_rows=int(os.getenv("GHGKIT_PREVIEW_ERROR_ROWS", "20")),
            default_site_name=os.getenv("GHGKIT_DEFAULT_SITE_NAME", "Default Site"),
            day_first=_env_bool("GHGKIT_DAY_FIRST", True),
            tables=LookupTables.load(os.getenv("GHGKIT_TABLES_PATH")),
        )
