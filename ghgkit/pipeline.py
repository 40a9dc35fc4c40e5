"""Per-upload ingestion state machine.

    Uploaded --parse()--> Parsed --import_()--> Imported --finalize()--> Complete
        |                    |
        +--> Failed <--------+

An upload reaches Failed on an unreadable file or an unusable column mapping
during parse, or on an import attempted with zero valid rows. Forward
transitions are final: calling an operation from any other stage raises
``InvalidStageTransition``, and redoing a parse requires a new upload.
Import errors from the committer leave the pipeline in Parsed so the import
can be retried; idempotency keys keep the retry from duplicating records.
"""

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .column_classifier import ColumnClassifier, ColumnMapping
from .config import IngestionSettings
from .errors import (
    ActivityImportError,
    InvalidStageTransition,
    NoValidRowsError,
    UnreadableFileError,
    UnsupportedFileError,
    UnusableSchemaError,
)
from .ingest.activity_import import ActivityRepository, ImportCommitter
from .models import ActivityDraft, ImportResult, ParseSummary, RawRow, RowOutcome, Stage, UploadHandle
from .reader import Table, TableReader
from .summary import AggregationSummarizer
from .validator import RowValidator

logger = logging.getLogger(__name__)


@dataclass
class ParseOptions:
    """Options of one parse pass.

    Attributes:
        has_headers: First non-skipped row holds column names
        skip_rows: Rows to discard before the header
        default_year: Year for rows without a date (current year if None)
        quarterly: Group dated rows into quarterly periods
    """
    has_headers: bool = True
    skip_rows: int = 0
    default_year: Optional[int] = None
    quarterly: bool = False


@dataclass
class ImportOptions:
    auto_create: bool = False
    target_period_id: Optional[str] = None
    debug: bool = False


@dataclass
class ParseReport:
    """What a caller sees after parse: summary plus bounded samples."""
    upload_id: str
    mapping: ColumnMapping
    summary: ParseSummary
    preview: List[RowOutcome] = field(default_factory=list)
    errors: List[RowOutcome] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "upload_id": self.upload_id,
            "mapping": self.mapping.to_dict(),
            "summary": self.summary.to_dict(),
            "preview": [o.to_dict() for o in self.preview],
            "errors": [o.to_dict() for o in self.errors],
            "message": self.message,
        }


class IngestionPipeline:
    """Drives one upload through parse and import.

    State lives on the instance only, so pipelines of different uploads are
    independent. Operations on one pipeline are serialized by its lock.
    """

    def __init__(
        self,
        handle: UploadHandle,
        data: bytes,
        repository: ActivityRepository,
        settings: Optional[IngestionSettings] = None,
        reader: Optional[TableReader] = None
    ):
        self.handle = handle
        self.repository = repository
        self.settings = settings or IngestionSettings()
        self.reader = reader or TableReader.default(self.settings.tables)
        self.mapping: Optional[ColumnMapping] = None
        self.summary: Optional[ParseSummary] = None
        self.result: Optional[ImportResult] = None
        self.failure: Optional[str] = None
        self._data: Optional[bytes] = data
        self._drafts: Optional[List[ActivityDraft]] = None
        self._lock = threading.Lock()

    @property
    def stage(self) -> Stage:
        return self.handle.stage

    def parse(self, options: Optional[ParseOptions] = None) -> ParseReport:
        """Classify columns and validate every row.

        Only the first ``sample_size`` rows are buffered for classification;
        the rest are streamed through the validator one at a time. Valid
        drafts are retained for import and the raw bytes are released.

        Raises:
            InvalidStageTransition: If the upload is not in Uploaded
            UnreadableFileError: If the file cannot be read (stage -> Failed)
            UnusableSchemaError: If Quantity or ActivityType has no column (stage -> Failed)
        """
        options = options or ParseOptions()
        with self._lock:
            self._require(Stage.UPLOADED, "parse")

            try:
                table = self.reader.open(self._data, self.handle.original_filename,
                                         options.has_headers, options.skip_rows)
            except (UnreadableFileError, UnsupportedFileError) as e:
                self._fail(str(e))
                if isinstance(e, UnreadableFileError):
                    raise
                raise UnreadableFileError(str(e)) from e

            try:
                return self._parse_table(table, options)
            except UnreadableFileError as e:
                self._fail(str(e))
                raise
            finally:
                table.close()

    def _parse_table(self, table: Table, options: ParseOptions) -> ParseReport:
        # Callers hold self._lock
        sample = list(itertools.islice(table.rows, self.settings.sample_size))

        mapping = ColumnClassifier(self.settings).classify(table.header, sample)
        if not mapping.is_usable:
            error = UnusableSchemaError(mapping.missing_roles(), mapping)
            self._fail(str(error))
            raise error

        validator = RowValidator(self.settings, default_year=options.default_year,
                                 quarterly=options.quarterly)
        summary = ParseSummary()
        drafts: List[ActivityDraft] = []
        preview: List[RowOutcome] = []
        errors: List[RowOutcome] = []

        for row_index, values in enumerate(itertools.chain(sample, table.rows), start=1):
            raw_row = RawRow(row_index, values)
            if raw_row.is_blank():
                continue
            outcome = validator.validate(raw_row, mapping)
            AggregationSummarizer.add(summary, outcome)
            if outcome.is_importable:
                drafts.append(outcome.draft)
                if len(preview) < self.settings.preview_valid_rows:
                    preview.append(outcome)
            elif len(errors) < self.settings.preview_error_rows:
                errors.append(outcome)

        self.mapping = mapping
        self.summary = summary
        self._drafts = drafts
        self._data = None
        self._transition(Stage.PARSED)

        message = (
            f"Parsed {summary.total_rows} rows: {summary.valid_rows} valid "
            f"({summary.warning_rows} with warnings), {summary.error_rows} with errors"
        )
        logger.info(f"Upload {self.handle.id}: {message}")
        return ParseReport(self.handle.id, mapping, summary, preview, errors, message)

    def import_(self, options: Optional[ImportOptions] = None) -> ImportResult:
        """Commit the retained drafts.

        Raises:
            InvalidStageTransition: If the upload is not in Parsed
            NoValidRowsError: If the parse produced no valid rows (stage -> Failed)
            ActivityImportError: From the committer; the stage stays Parsed
        """
        options = options or ImportOptions()
        with self._lock:
            self._require(Stage.PARSED, "import")

            if not self._drafts:
                error = NoValidRowsError(f"Upload {self.handle.id} has no valid rows to import")
                self._fail(str(error))
                raise error

            committer = ImportCommitter(self.repository)
            try:
                result = committer.commit(
                    self._drafts,
                    customer_id=self.handle.customer_scope,
                    upload_id=self.handle.id,
                    target_period_id=options.target_period_id,
                    auto_create=options.auto_create,
                    debug=options.debug,
                )
            except ActivityImportError as e:
                logger.warning(f"Upload {self.handle.id}: import failed ({e.kind.value}): {e}")
                raise

            self.result = result
            self._transition(Stage.IMPORTED)
            return result

    def finalize(self) -> UploadHandle:
        """Mark an imported upload complete and release the retained drafts."""
        with self._lock:
            self._require(Stage.IMPORTED, "finalize")
            self._drafts = None
            self._transition(Stage.COMPLETE)
            return self.handle

    def abandon(self) -> None:
        """Release everything held for this upload. Not allowed once complete."""
        with self._lock:
            if self.stage is Stage.COMPLETE:
                raise InvalidStageTransition(self.handle.id, self.stage, "abandon")
            self._data = None
            self._drafts = None
            logger.info(f"Upload {self.handle.id}: abandoned in stage {self.stage.value}")

    def _require(self, expected: Stage, operation: str) -> None:
        if self.handle.stage is not expected:
            raise InvalidStageTransition(self.handle.id, self.handle.stage, operation)

    def _transition(self, stage: Stage) -> None:
        logger.info(f"Upload {self.handle.id}: {self.handle.stage.value} -> {stage.value}")
        self.handle.stage = stage

    def _fail(self, reason: str) -> None:
        logger.warning(f"Upload {self.handle.id} failed in stage {self.handle.stage.value}: {reason}")
        self.failure = reason
        self._data = None
        self._drafts = None
        self.handle.stage = Stage.FAILED
