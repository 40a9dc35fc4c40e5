"""Tests for the upload/parse/import operation surface."""

import hashlib
import threading

import pytest

from ghgkit.config import IngestionSettings
from ghgkit.errors import (
    ActivityImportError,
    ImportErrorKind,
    InvalidStageTransition,
    RepositoryError,
    UnsupportedFileError,
    UploadNotFoundError,
)
from ghgkit.ingest import InMemoryClient
from ghgkit.models import Stage
from ghgkit.pipeline import ImportOptions, ParseOptions
from ghgkit.schema import IssueCode
from ghgkit.service import IngestionService

CSV = (
    b"Date,Site,Activity Type,Scope,Quantity,Unit\n"
    b"2024-01-15,Main Office,ELECTRICITY,SCOPE_2,1500,kWh\n"
    b"2024-02-15,Main Office,NATURAL_GAS,SCOPE_1,800,kWh\n"
)


@pytest.fixture
def repo():
    return InMemoryClient()


@pytest.fixture
def service(repo):
    return IngestionService(repo, settings=IngestionSettings())


class LostAckClient(InMemoryClient):
    """Stores every insert but reports a failure for the first ``lost`` of them."""

    def __init__(self, lost: int):
        super().__init__()
        self.lost = lost

    def insert_activity(self, record):
        created = super().insert_activity(record)
        if self.lost > 0:
            self.lost -= 1
            raise RepositoryError("connection reset after write")
        return created


class TestUpload:

    def test_upload_registers_handle(self, service):
        handle = service.upload(CSV, "activities.csv", "customer-1")

        assert handle.stage is Stage.UPLOADED
        assert handle.byte_size == len(CSV)
        assert handle.content_digest == hashlib.sha256(CSV).hexdigest()
        assert handle.customer_scope == "customer-1"
        assert service.get(handle.id) is handle

    def test_unsupported_file(self, service):
        with pytest.raises(UnsupportedFileError):
            service.upload(b"%PDF-1.4", "report.pdf", "customer-1")

    def test_unknown_upload(self, service):
        with pytest.raises(UploadNotFoundError):
            service.parse("missing")
        with pytest.raises(UploadNotFoundError):
            service.get("missing")

    def test_upload_ids_are_unique(self, service):
        first = service.upload(CSV, "a.csv", "customer-1")
        second = service.upload(CSV, "a.csv", "customer-1")
        assert first.id != second.id
        assert first.content_digest == second.content_digest


class TestFlow:

    def test_full_flow(self, service, repo):
        handle = service.upload(CSV, "activities.csv", "customer-1")

        report = service.parse(handle.id, ParseOptions(default_year=2024))
        assert report.summary.valid_rows == 2

        result = service.import_activities(handle.id, ImportOptions(auto_create=True))
        assert result.total_imported == 2

        completed = service.complete(handle.id)
        assert completed.stage is Stage.COMPLETE
        assert len(repo.activities_for("customer-1")) == 2

    def test_decimal_comma_quantity_is_rejected(self, service):
        data = b"Activity Type;Quantity;Unit\nElectricity;1,5;kWh\n"
        handle = service.upload(data, "activities.csv", "customer-1")

        report = service.parse(handle.id, ParseOptions(default_year=2024))

        assert report.summary.valid_rows == 0
        assert report.summary.error_rows == 1
        assert IssueCode.INVALID_QUANTITY in report.errors[0].codes

    def test_abandon_removes_upload(self, service):
        handle = service.upload(CSV, "activities.csv", "customer-1")
        service.parse(handle.id)
        service.abandon(handle.id)
        with pytest.raises(UploadNotFoundError):
            service.get(handle.id)

    def test_abandon_after_complete_is_rejected(self, service):
        handle = service.upload(CSV, "activities.csv", "customer-1")
        service.parse(handle.id)
        service.import_activities(handle.id, ImportOptions(auto_create=True))
        service.complete(handle.id)
        with pytest.raises(InvalidStageTransition):
            service.abandon(handle.id)

    def test_retry_after_lost_acknowledgements_creates_no_duplicates(self):
        repo = LostAckClient(lost=2)
        service = IngestionService(repo, settings=IngestionSettings())
        handle = service.upload(CSV, "activities.csv", "customer-1")
        service.parse(handle.id)

        with pytest.raises(ActivityImportError) as exc_info:
            service.import_activities(handle.id, ImportOptions(auto_create=True))
        assert exc_info.value.kind is ImportErrorKind.PARTIAL_COMMIT_FAILURE
        assert service.get(handle.id).stage is Stage.PARSED

        result = service.import_activities(handle.id, ImportOptions(auto_create=True))

        assert result.total_imported == 0
        assert result.total_duplicates == 2
        assert len(repo.activities_for("customer-1")) == 2

    def test_concurrent_uploads_are_independent(self, service, repo):
        errors = []

        def run(customer):
            try:
                handle = service.upload(CSV, "activities.csv", customer)
                service.parse(handle.id, ParseOptions(default_year=2024))
                service.import_activities(handle.id, ImportOptions(auto_create=True))
                service.complete(handle.id)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=run, args=(f"customer-{i}",)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        for i in range(8):
            assert len(repo.activities_for(f"customer-{i}")) == 2
