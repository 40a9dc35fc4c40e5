"""Exception taxonomy.

Row-level problems are never raised; they travel as ``Issue`` data inside a
``RowOutcome``. Only pipeline-level and commit-level failures become
exceptions.
"""

from enum import Enum
from typing import Any, List, Optional


class GhgkitError(Exception):
    """Base class for all ghgkit errors."""


# ---------------------------------------------------------------------------
# Pipeline level
# ---------------------------------------------------------------------------


class PipelineError(GhgkitError):
    """Fatal to the current pipeline stage."""


class InvalidStageTransition(PipelineError):
    """Raised when an operation is attempted from a stage that does not allow it."""

    def __init__(self, upload_id: str, stage: Any, operation: str):
        super().__init__(
            f"Cannot {operation} upload {upload_id} in stage {getattr(stage, 'value', stage)}"
        )
        self.upload_id = upload_id
        self.stage = stage
        self.operation = operation


class UnusableSchemaError(PipelineError):
    """Raised when the column mapping lacks a mandatory role."""

    def __init__(self, missing_roles: List[Any], mapping: Any = None):
        names = ", ".join(getattr(r, "value", str(r)) for r in missing_roles)
        super().__init__(f"No column qualifies for mandatory role(s): {names}")
        self.missing_roles = list(missing_roles)
        self.mapping = mapping


class UnreadableFileError(PipelineError):
    """Raised when the uploaded bytes cannot be decoded into rows."""


class NoValidRowsError(PipelineError):
    """Raised when import is attempted on a parse that produced no valid rows."""


# ---------------------------------------------------------------------------
# Service surface
# ---------------------------------------------------------------------------


class UploadNotFoundError(GhgkitError, LookupError):
    """Raised when an upload id is unknown to the service."""


class UnsupportedFileError(GhgkitError, ValueError):
    """Raised when no adapter can read the uploaded file."""


# ---------------------------------------------------------------------------
# Commit level
# ---------------------------------------------------------------------------


class RepositoryError(GhgkitError):
    """Raised by repository implementations when a storage call fails."""


class ImportErrorKind(Enum):
    NO_PERIOD_SELECTED = "NoPeriodSelected"
    PERIOD_NOT_FOUND = "PeriodNotFound"
    PERSISTENCE_FAILURE = "PersistenceFailure"
    PARTIAL_COMMIT_FAILURE = "PartialCommitFailure"


class ActivityImportError(GhgkitError):
    """Raised when an import cannot produce a usable result.

    Attributes:
        kind: Which failure occurred
        result: Accounting of what was attempted, when any draft was processed
    """

    def __init__(self, kind: ImportErrorKind, message: str, result: Optional[Any] = None):
        super().__init__(message)
        self.kind = kind
        self.result = result
