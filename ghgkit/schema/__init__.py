"""Target schema for activity-record ingestion.

Every table in this module is plain data. ``ghgkit.config.LookupTables`` copies
these defaults and lets a deployment override any of them from a JSON file, so
nothing here should be treated as a guaranteed contract.
"""

from enum import Enum
from typing import Dict, List, Any


class SemanticRole(Enum):
    """Semantic role a raw input column can play."""
    DATE = "date"
    SITE = "site"
    ACTIVITY_TYPE = "activity_type"
    SCOPE = "scope"
    QUANTITY = "quantity"
    UNIT = "unit"
    NOTES = "notes"
    NOTATION_KEY = "notation_key"
    UNMAPPED = "unmapped"


# A mapping without these is unusable
MANDATORY_ROLES = (SemanticRole.QUANTITY, SemanticRole.ACTIVITY_TYPE)


class Scope(Enum):
    """GHG Protocol scopes."""
    SCOPE_1 = "SCOPE_1"
    SCOPE_2 = "SCOPE_2"
    SCOPE_3 = "SCOPE_3"


class IssueSeverity(Enum):
    ERROR = "error"
    WARNING = "warning"


class IssueCode(Enum):
    """Closed set of diagnostic codes.

    Row-level errors exclude the row from import, row-level warnings do not.
    The commit-level codes only ever appear in ``ImportResult.failures``.
    """
    # Row errors
    MISSING_ACTIVITY_TYPE = "MISSING_ACTIVITY_TYPE"
    MISSING_QUANTITY = "MISSING_QUANTITY"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    NEGATIVE_QUANTITY = "NEGATIVE_QUANTITY"
    UNRESOLVED_NOTATION = "UNRESOLVED_NOTATION"
    BAD_DATE = "BAD_DATE"

    # Row warnings
    INFERRED_YEAR = "INFERRED_YEAR"
    SCOPE_INFERRED = "SCOPE_INFERRED"
    SCOPE_DEFAULTED = "SCOPE_DEFAULTED"
    UNIT_MISSING = "UNIT_MISSING"
    ZERO_QUANTITY = "ZERO_QUANTITY"

    # Commit level
    SITE_NOT_FOUND = "SITE_NOT_FOUND"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"

    @property
    def severity(self) -> IssueSeverity:
        if self in _WARNING_CODES:
            return IssueSeverity.WARNING
        return IssueSeverity.ERROR


_WARNING_CODES = {
    IssueCode.INFERRED_YEAR,
    IssueCode.SCOPE_INFERRED,
    IssueCode.SCOPE_DEFAULTED,
    IssueCode.UNIT_MISSING,
    IssueCode.ZERO_QUANTITY,
}


# Header keywords per role. Matching is case, whitespace, underscore and
# hyphen insensitive (see lexical_similarity.normalize_header).
ROLE_KEYWORDS: Dict[str, List[str]] = {
    SemanticRole.DATE.value: [
        "date", "activity date", "start date", "period start", "from date",
        "date from", "transaction date", "invoice date", "reading date",
        "period", "year", "inventory year", "reporting year", "month",
    ],
    SemanticRole.SITE.value: [
        "site", "site name", "site id", "location", "location name",
        "facility", "facility name", "facility id", "building", "office",
        "plant", "branch",
    ],
    SemanticRole.ACTIVITY_TYPE.value: [
        "activity type", "activity", "type", "emission type", "emission category",
        "category", "fuel", "fuel type", "fuel type or activity",
        "fuel or activity", "energy type", "emission source", "source type",
    ],
    SemanticRole.SCOPE.value: [
        "scope", "emission scope", "ghg scope", "scope type",
    ],
    SemanticRole.QUANTITY.value: [
        "quantity", "qty", "amount", "consumption", "usage", "volume",
        "activity data", "activity data amount", "activity amount", "value",
        "total",
    ],
    SemanticRole.UNIT.value: [
        "unit", "units", "uom", "unit of measure", "measurement unit",
        "activity data unit",
    ],
    SemanticRole.NOTES.value: [
        "notes", "note", "comments", "comment", "remarks", "description",
        "details", "additional info",
    ],
    SemanticRole.NOTATION_KEY.value: [
        "notation key", "notation", "notation keys",
    ],
}


# Free-text activity descriptions -> canonical activity type
ACTIVITY_TYPE_ALIASES: Dict[str, List[str]] = {
    "ELECTRICITY": ["electricity", "electric", "power", "grid electricity", "mains electricity"],
    "NATURAL_GAS": ["natural gas", "gas", "mains gas"],
    "DIESEL": ["diesel", "diesel oil", "gas oil", "gasoil"],
    "PETROL": ["petrol", "gasoline", "motor gasoline"],
    "LPG": ["lpg", "liquefied petroleum gas", "liquefied petroleum gas lpg", "propane", "butane"],
    "KEROSENE": ["kerosene", "paraffin", "kerosene paraffin", "jet fuel"],
    "COAL": ["coal", "coal bituminous or black coal"],
    "FUEL_OIL": ["fuel oil", "residual fuel oil", "heating oil", "heavy fuel oil"],
    "DISTRICT_HEATING": ["district heating", "district heat", "heat network", "steam"],
    "DISTRICT_COOLING": ["district cooling", "cooling network"],
    "BIOMASS": ["biomass", "wood", "wood or wood waste", "wood pellets"],
    "BIOGAS": ["biogas", "other biogas"],
    "BIOFUEL": ["biofuel", "biodiesel", "other liquid biofuels"],
    "REFRIGERANTS": ["refrigerant", "refrigerants", "fugitive emissions", "hvac refrigerant"],
    "WATER": ["water", "water supply"],
    "WASTE": ["waste", "general waste", "landfill"],
    "BUSINESS_TRAVEL": ["business travel", "air travel", "flights", "rail travel"],
}


ACTIVITY_TYPE_SCOPES: Dict[str, str] = {
    "ELECTRICITY": Scope.SCOPE_2.value,
    "DISTRICT_HEATING": Scope.SCOPE_2.value,
    "DISTRICT_COOLING": Scope.SCOPE_2.value,
    "NATURAL_GAS": Scope.SCOPE_1.value,
    "DIESEL": Scope.SCOPE_1.value,
    "PETROL": Scope.SCOPE_1.value,
    "LPG": Scope.SCOPE_1.value,
    "KEROSENE": Scope.SCOPE_1.value,
    "COAL": Scope.SCOPE_1.value,
    "FUEL_OIL": Scope.SCOPE_1.value,
    "BIOMASS": Scope.SCOPE_1.value,
    "BIOGAS": Scope.SCOPE_1.value,
    "BIOFUEL": Scope.SCOPE_1.value,
    "REFRIGERANTS": Scope.SCOPE_1.value,
    "WATER": Scope.SCOPE_3.value,
    "WASTE": Scope.SCOPE_3.value,
    "BUSINESS_TRAVEL": Scope.SCOPE_3.value,
}


ACTIVITY_TYPE_UNITS: Dict[str, str] = {
    "ELECTRICITY": "kWh",
    "NATURAL_GAS": "kWh",
    "DISTRICT_HEATING": "kWh",
    "DISTRICT_COOLING": "kWh",
    "DIESEL": "L",
    "PETROL": "L",
    "LPG": "L",
    "KEROSENE": "L",
    "FUEL_OIL": "L",
    "BIOFUEL": "L",
    "COAL": "t",
    "BIOMASS": "t",
    "BIOGAS": "m3",
    "REFRIGERANTS": "kg",
    "WATER": "m3",
    "WASTE": "t",
    "BUSINESS_TRAVEL": "km",
}


# Keys are already normalized: case-folded with non-alphanumerics removed
SCOPE_ALIASES: Dict[str, str] = {
    "scope1": Scope.SCOPE_1.value,
    "scope2": Scope.SCOPE_2.value,
    "scope3": Scope.SCOPE_3.value,
    "scopeone": Scope.SCOPE_1.value,
    "scopetwo": Scope.SCOPE_2.value,
    "scopethree": Scope.SCOPE_3.value,
    "s1": Scope.SCOPE_1.value,
    "s2": Scope.SCOPE_2.value,
    "s3": Scope.SCOPE_3.value,
    "1": Scope.SCOPE_1.value,
    "2": Scope.SCOPE_2.value,
    "3": Scope.SCOPE_3.value,
    "directemissions": Scope.SCOPE_1.value,
    "indirectemissions": Scope.SCOPE_2.value,
    "valuechain": Scope.SCOPE_3.value,
}


# Lower-cased unit spelling -> canonical symbol
UNIT_ALIASES: Dict[str, str] = {
    "kwh": "kWh", "kilowatt hour": "kWh", "kilowatt hours": "kWh", "kilowatt-hour": "kWh",
    "mwh": "MWh", "megawatt hour": "MWh", "megawatt hours": "MWh",
    "gwh": "GWh",
    "wh": "Wh",
    "gj": "GJ", "gigajoule": "GJ", "gigajoules": "GJ",
    "mj": "MJ", "megajoule": "MJ", "megajoules": "MJ",
    "therm": "therm", "therms": "therm",
    "m3": "m3", "m³": "m3", "cubic meter": "m3", "cubic meters": "m3",
    "cubic metre": "m3", "cubic metres": "m3", "m ** 3": "m3",
    "l": "L", "litre": "L", "litres": "L", "liter": "L", "liters": "L", "ltr": "L",
    "gal": "gal", "gallon": "gal", "gallons": "gal",
    "kg": "kg", "kilogram": "kg", "kilograms": "kg", "kgs": "kg",
    "t": "t", "tonne": "t", "tonnes": "t", "metric ton": "t", "metric tons": "t",
    "km": "km", "kilometre": "km", "kilometres": "km", "kilometer": "km", "kilometers": "km",
    "mi": "mi", "mile": "mi", "miles": "mi",
}


# Label and description of every assignable role, reported alongside a column mapping
CANONICAL_ROLES: List[Dict[str, Any]] = [
    {
        "id": SemanticRole.DATE.value,
        "label": "Date",
        "description": "Activity date or reporting year. Accepts YYYY-MM-DD, DD/MM/YYYY, MM/DD/YYYY or a bare year.",
    },
    {
        "id": SemanticRole.SITE.value,
        "label": "Site",
        "description": "Name of the site or facility the activity is attributed to.",
    },
    {
        "id": SemanticRole.ACTIVITY_TYPE.value,
        "label": "Activity Type",
        "description": "What was consumed or done (electricity, diesel, business travel, ...).",
    },
    {
        "id": SemanticRole.SCOPE.value,
        "label": "Scope",
        "description": "GHG Protocol scope. Inferred from the activity type when absent or unreadable.",
    },
    {
        "id": SemanticRole.QUANTITY.value,
        "label": "Quantity",
        "description": "Measured amount, or a notation key (NO, NA, NE, C, IE) explaining its absence.",
    },
    {
        "id": SemanticRole.UNIT.value,
        "label": "Unit",
        "description": "Unit of the quantity. Inferred from the activity type when absent.",
    },
    {
        "id": SemanticRole.NOTES.value,
        "label": "Notes",
        "description": "Free text. Unmapped columns are appended here.",
    },
    {
        "id": SemanticRole.NOTATION_KEY.value,
        "label": "Notation Key",
        "description": "GPC/CRF notation key column, consulted when the quantity cell is blank.",
    },
]

ROLE_SCHEMAS: Dict[str, Dict[str, Any]] = {
    role["id"]: role for role in CANONICAL_ROLES
}

__all__ = [
    "SemanticRole",
    "MANDATORY_ROLES",
    "Scope",
    "IssueSeverity",
    "IssueCode",
    "ROLE_KEYWORDS",
    "ACTIVITY_TYPE_ALIASES",
    "ACTIVITY_TYPE_SCOPES",
    "ACTIVITY_TYPE_UNITS",
    "SCOPE_ALIASES",
    "UNIT_ALIASES",
    "CANONICAL_ROLES",
    "ROLE_SCHEMAS",
]
