"""
Tests for the per-upload pipeline.

These tests verify that:
1. parse() classifies, validates and summarizes a file in one pass
2. Stage transitions are enforced and failures land in Failed
3. import() works from retained drafts without the raw bytes
4. Import errors leave the upload in Parsed so the import can be retried
5. A parse that stops early still releases the file reader
"""

import io
from datetime import datetime, timezone

import openpyxl
import pytest

from ghgkit.errors import (
    ActivityImportError,
    ImportErrorKind,
    InvalidStageTransition,
    NoValidRowsError,
    UnreadableFileError,
    UnusableSchemaError,
)
from ghgkit.ingest import InMemoryClient
from ghgkit.models import RowStatus, Stage, UploadHandle
from ghgkit.pipeline import ImportOptions, IngestionPipeline, ParseOptions
from ghgkit.reader import TableReader
from ghgkit.schema import IssueCode, SemanticRole

HEADER = "Date,Site,Activity Type,Scope,Quantity,Unit"


def make_pipeline(text: str, repo=None, filename: str = "activities.csv", reader=None) -> IngestionPipeline:
    """Helper to create a pipeline for CSV text."""
    data = text.encode("utf-8") if isinstance(text, str) else text
    handle = UploadHandle(
        id="upload-1",
        original_filename=filename,
        byte_size=len(data),
        received_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
        customer_scope="customer-1",
        content_digest="digest",
    )
    return IngestionPipeline(handle, data, repo if repo is not None else InMemoryClient(), reader=reader)


def csv_text(*rows: str, header: str = HEADER) -> str:
    return "\n".join((header,) + rows) + "\n"


OPTIONS = ParseOptions(default_year=2024)


class TrackingAdapter:
    """Adapter that records when its row generator is finalized."""

    def __init__(self, rows):
        self.rows = rows
        self.closed = False

    def can_handle(self, filename):
        return True

    def read(self, data, filename, skip_rows=0):
        try:
            for row in self.rows[skip_rows:]:
                yield row
        finally:
            self.closed = True


# =============================================================================
# Parse
# =============================================================================

class TestParse:

    def test_single_valid_row(self):
        pipeline = make_pipeline(csv_text("2024-01-15,Main Office,ELECTRICITY,SCOPE_2,1500,kWh"))

        report = pipeline.parse(OPTIONS)

        assert report.summary.total_rows == 1
        assert report.summary.valid_rows == 1
        assert report.summary.error_rows == 0
        assert pipeline.stage is Stage.PARSED

        outcome = report.preview[0]
        assert outcome.status is RowStatus.VALID
        assert outcome.draft.quantity == 1500
        assert outcome.draft.unit == "kWh"
        assert outcome.draft.scope == "SCOPE_2"
        assert outcome.draft.site_ref == "Main Office"

    def test_missing_scope_column_defaults_from_activity_type(self):
        text = csv_text("2024-01-15,Main Office,ELECTRICITY,1500,kWh", header="Date,Site,Activity Type,Quantity,Unit")
        report = make_pipeline(text).parse(OPTIONS)

        outcome = report.preview[0]
        assert outcome.status is RowStatus.WARNING
        assert outcome.codes == [IssueCode.SCOPE_DEFAULTED]
        assert outcome.draft.scope == "SCOPE_2"
        assert report.summary.valid_rows == 1
        assert report.summary.warning_rows == 1

    def test_mixed_rows(self):
        text = csv_text(
            "2024-01-15,Main Office,Electricity,Scope 2,1500,kWh",
            "2024-02-15,Depot,Diesel,Scope 1,abc,L",
            "2024-03-15,Depot,Diesel,Scope 1,NO,L",
            "not a date,Depot,Diesel,Scope 1,10,L",
        )
        report = make_pipeline(text).parse(OPTIONS)
        summary = report.summary

        assert summary.total_rows == 4
        assert summary.valid_rows == 2
        assert summary.error_rows == 2
        assert summary.excluded_rows == 1
        assert summary.quantity_totals == {"kWh": 1500.0}
        assert [o.codes for o in report.errors] == [[IssueCode.INVALID_QUANTITY], [IssueCode.BAD_DATE]]

        notation = report.preview[1].draft
        assert notation.quantity is None
        assert notation.notation_key == "NO"
        assert notation.excluded_from_totals is True

    def test_blank_rows_are_skipped_but_keep_numbering(self):
        text = csv_text(
            "2024-01-15,Main Office,ELECTRICITY,SCOPE_2,1,kWh",
            ",,,,,",
            "",
            "2024-01-16,Main Office,ELECTRICITY,SCOPE_2,2,kWh",
        )
        report = make_pipeline(text).parse(OPTIONS)
        assert report.summary.total_rows == 2
        assert [o.row_index for o in report.preview] == [1, 4]

    def test_rows_beyond_the_sample_are_validated(self):
        rows = [f"2024-01-{day:02d},Main Office,ELECTRICITY,SCOPE_2,{day},kWh" for day in range(1, 31)]
        report = make_pipeline(csv_text(*rows)).parse(OPTIONS)

        assert report.summary.total_rows == 30
        assert report.summary.valid_rows == 30
        assert report.summary.quantity_totals == {"kWh": float(sum(range(1, 31)))}
        assert len(report.preview) == 5

    def test_error_list_is_bounded(self):
        rows = [f"2024-01-01,Main Office,ELECTRICITY,SCOPE_2,bad{i},kWh" for i in range(25)]
        rows.append("2024-01-01,Main Office,ELECTRICITY,SCOPE_2,5,kWh")
        report = make_pipeline(csv_text(*rows)).parse(OPTIONS)

        assert report.summary.error_rows == 25
        assert len(report.errors) == 20

    def test_skip_rows_and_headerless(self):
        text = "Exported 2024-06-01\nElectricity,1500\nDiesel,20\n"
        report = make_pipeline(text).parse(ParseOptions(has_headers=False, skip_rows=1, default_year=2023))

        assert report.mapping.column_for(SemanticRole.ACTIVITY_TYPE).index == 0
        assert report.mapping.column_for(SemanticRole.QUANTITY).index == 1
        assert report.summary.valid_rows == 2
        assert report.summary.year_range == (2023, 2023)

    def test_quarterly(self):
        text = csv_text("2024-05-10,Main Office,ELECTRICITY,SCOPE_2,5,kWh")
        report = make_pipeline(text).parse(ParseOptions(quarterly=True))
        assert report.preview[0].draft.period_quarter == 2

    def test_parse_twice_is_rejected(self):
        pipeline = make_pipeline(csv_text("2024-01-15,Main Office,ELECTRICITY,SCOPE_2,1500,kWh"))
        pipeline.parse(OPTIONS)
        with pytest.raises(InvalidStageTransition):
            pipeline.parse(OPTIONS)

    def test_unusable_schema_fails_upload(self):
        pipeline = make_pipeline("Site,Notes\nMain Office,hello\n")
        with pytest.raises(UnusableSchemaError) as exc_info:
            pipeline.parse(OPTIONS)
        assert SemanticRole.QUANTITY in exc_info.value.missing_roles
        assert pipeline.stage is Stage.FAILED
        with pytest.raises(InvalidStageTransition):
            pipeline.import_(ImportOptions(auto_create=True))

    def test_unusable_schema_closes_reader(self):
        adapter = TrackingAdapter([["Site", "Notes"]] + [["Main Office", "hello"]] * 50)
        reader = TableReader()
        reader.register_adapter(adapter)
        pipeline = make_pipeline("", reader=reader)

        with pytest.raises(UnusableSchemaError):
            pipeline.parse(OPTIONS)

        assert adapter.closed is True
        assert pipeline.stage is Stage.FAILED

    def test_unreadable_workbook_fails_upload(self):
        pipeline = make_pipeline(b"not a zip file", filename="activities.xlsx")
        with pytest.raises(UnreadableFileError):
            pipeline.parse(OPTIONS)
        assert pipeline.stage is Stage.FAILED

    def test_empty_file_fails_upload(self):
        pipeline = make_pipeline("")
        with pytest.raises(UnreadableFileError):
            pipeline.parse(OPTIONS)
        assert pipeline.stage is Stage.FAILED

    def test_xlsx_upload(self):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Date", "Site", "Activity Type", "Scope", "Quantity", "Unit"])
        ws.append([datetime(2024, 1, 15), "Main Office", "Electricity", "Scope 2", 1500, "kWh"])
        buffer = io.BytesIO()
        wb.save(buffer)

        report = make_pipeline(buffer.getvalue(), filename="activities.xlsx").parse(OPTIONS)

        draft = report.preview[0].draft
        assert draft.quantity == 1500
        assert draft.date_start.isoformat() == "2024-01-15"

    def test_raw_bytes_released_after_parse(self):
        pipeline = make_pipeline(csv_text("2024-01-15,Main Office,ELECTRICITY,SCOPE_2,1500,kWh"))
        pipeline.parse(OPTIONS)
        assert pipeline._data is None

    def test_report_to_dict(self):
        report = make_pipeline(csv_text("2024-01-15,Main Office,ELECTRICITY,SCOPE_2,1500,kWh")).parse(OPTIONS)
        data = report.to_dict()
        assert data["upload_id"] == "upload-1"
        assert data["summary"]["valid_rows"] == 1
        assert data["preview"][0]["status"] == "valid"


# =============================================================================
# Import and completion
# =============================================================================

class TestImport:

    def test_full_flow(self):
        repo = InMemoryClient()
        pipeline = make_pipeline(csv_text(
            "2024-01-15,Main Office,ELECTRICITY,SCOPE_2,1500,kWh",
            "2024-02-15,Depot,Diesel,SCOPE_1,20,L",
        ), repo)
        pipeline.parse(OPTIONS)

        result = pipeline.import_(ImportOptions(auto_create=True))

        assert result.total_imported == 2
        assert pipeline.stage is Stage.IMPORTED
        assert len(repo.activities_for("customer-1")) == 2

        handle = pipeline.finalize()
        assert handle.stage is Stage.COMPLETE
        with pytest.raises(InvalidStageTransition):
            pipeline.abandon()

    def test_import_before_parse(self):
        pipeline = make_pipeline(csv_text("2024-01-15,Main Office,ELECTRICITY,SCOPE_2,1500,kWh"))
        with pytest.raises(InvalidStageTransition):
            pipeline.import_(ImportOptions(auto_create=True))

    def test_second_import_is_rejected_without_writing(self):
        repo = InMemoryClient()
        pipeline = make_pipeline(csv_text("2024-01-15,Main Office,ELECTRICITY,SCOPE_2,1500,kWh"), repo)
        pipeline.parse(OPTIONS)
        pipeline.import_(ImportOptions(auto_create=True))

        with pytest.raises(InvalidStageTransition):
            pipeline.import_(ImportOptions(auto_create=True))

        assert pipeline.stage is Stage.IMPORTED
        assert len(repo.activities_for("customer-1")) == 1

    def test_finalize_before_import(self):
        pipeline = make_pipeline(csv_text("2024-01-15,Main Office,ELECTRICITY,SCOPE_2,1500,kWh"))
        pipeline.parse(OPTIONS)
        with pytest.raises(InvalidStageTransition):
            pipeline.finalize()

    def test_no_valid_rows(self):
        pipeline = make_pipeline(csv_text("2024-01-15,Main Office,ELECTRICITY,SCOPE_2,abc,kWh"))
        report = pipeline.parse(OPTIONS)
        assert report.summary.valid_rows == 0

        with pytest.raises(NoValidRowsError):
            pipeline.import_(ImportOptions(auto_create=True))
        assert pipeline.stage is Stage.FAILED

    def test_no_period_selected_can_be_retried(self):
        repo = InMemoryClient()
        pipeline = make_pipeline(csv_text("2024-01-15,Main Office,ELECTRICITY,SCOPE_2,1500,kWh"), repo)
        pipeline.parse(OPTIONS)

        with pytest.raises(ActivityImportError) as exc_info:
            pipeline.import_(ImportOptions())
        assert exc_info.value.kind is ImportErrorKind.NO_PERIOD_SELECTED
        assert pipeline.stage is Stage.PARSED

        result = pipeline.import_(ImportOptions(auto_create=True))
        assert result.total_imported == 1
        assert pipeline.stage is Stage.IMPORTED

    def test_abandon_before_import(self):
        pipeline = make_pipeline(csv_text("2024-01-15,Main Office,ELECTRICITY,SCOPE_2,1500,kWh"))
        pipeline.parse(OPTIONS)
        pipeline.abandon()
        assert pipeline._drafts is None
