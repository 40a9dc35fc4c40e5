"""Operation surface for callers such as an HTTP layer.

``IngestionService`` keys one ``IngestionPipeline`` per upload id. The
registry belongs to the service instance, never to the process, and the
pipelines themselves share no mutable state.
"""

import hashlib
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Optional
from uuid import uuid4

from .config import IngestionSettings
from .errors import UnsupportedFileError, UploadNotFoundError
from .ingest.activity_import import ActivityRepository
from .models import ImportResult, UploadHandle
from .pipeline import ImportOptions, IngestionPipeline, ParseOptions, ParseReport
from .reader import TableReader

logger = logging.getLogger(__name__)


class IngestionService:
    """Upload, Parse and Import over a repository."""

    def __init__(
        self,
        repository: ActivityRepository,
        settings: Optional[IngestionSettings] = None,
        reader: Optional[TableReader] = None
    ):
        self.repository = repository
        self.settings = settings or IngestionSettings.from_env()
        self.reader = reader or TableReader.default(self.settings.tables)
        self._pipelines: Dict[str, IngestionPipeline] = {}
        self._lock = threading.Lock()

    def upload(self, data: bytes, filename: str, customer_scope: str) -> UploadHandle:
        """Register an uploaded file.

        Raises:
            UnsupportedFileError: If no adapter reads this kind of file
        """
        if not self.reader.can_read(filename):
            raise UnsupportedFileError(f"No adapter found for {filename}")

        handle = UploadHandle(
            id=str(uuid4()),
            original_filename=filename,
            byte_size=len(data),
            received_at=datetime.now(timezone.utc),
            customer_scope=customer_scope,
            content_digest=hashlib.sha256(data).hexdigest(),
        )
        pipeline = IngestionPipeline(handle, data, self.repository, self.settings, self.reader)
        with self._lock:
            self._pipelines[handle.id] = pipeline

        logger.info(f"Upload {handle.id} received: '{filename}' ({handle.byte_size} bytes) for {customer_scope}")
        return handle

    def parse(self, upload_id: str, options: Optional[ParseOptions] = None) -> ParseReport:
        return self._pipeline(upload_id).parse(options)

    def import_activities(self, upload_id: str, options: Optional[ImportOptions] = None) -> ImportResult:
        return self._pipeline(upload_id).import_(options)

    def complete(self, upload_id: str) -> UploadHandle:
        return self._pipeline(upload_id).finalize()

    def abandon(self, upload_id: str) -> None:
        """Drop an upload at any stage before Complete."""
        pipeline = self._pipeline(upload_id)
        pipeline.abandon()
        with self._lock:
            self._pipelines.pop(upload_id, None)

    def get(self, upload_id: str) -> UploadHandle:
        return self._pipeline(upload_id).handle

    def _pipeline(self, upload_id: str) -> IngestionPipeline:
        with self._lock:
            pipeline = self._pipelines.get(upload_id)
        if pipeline is None:
            raise UploadNotFoundError(f"Unknown upload {upload_id}")
        return pipeline
