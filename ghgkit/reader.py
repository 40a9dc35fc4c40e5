"""Adapter registry turning uploaded bytes into a header plus a row stream."""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Generator, Iterator, List, Optional

from .adapters import CsvAdapter, ExcelAdapter
from .config import LookupTables
from .errors import UnreadableFileError, UnsupportedFileError

logger = logging.getLogger(__name__)


@dataclass
class Table:
    """Header and lazily-read data rows of one uploaded file."""
    header: List[str]
    rows: Iterator[List[str]]
    source: Optional[Generator] = field(default=None, repr=False)

    def close(self):
        """Stop reading early and release the adapter's resources (an open workbook)."""
        if self.source is not None:
            self.source.close()


class TableReader:
    """Reads uploaded files through registered adapters.

    Adapters expose ``can_handle(filename)`` and a generator
    ``read(data, filename, skip_rows)``; the first registered adapter that
    can handle a filename is used.
    """

    def __init__(self):
        self.adapters = []

    @classmethod
    def default(cls, tables: Optional[LookupTables] = None) -> "TableReader":
        """Reader with the CSV and XLSX adapters registered."""
        tables = tables or LookupTables()
        reader = cls()
        reader.register_adapter(CsvAdapter())
        reader.register_adapter(ExcelAdapter(tables.role_keywords))
        return reader

    def register_adapter(self, adapter):
        """Register a file adapter.

        Args:
            adapter: Adapter instance with can_handle() and read() methods
        """
        self.adapters.append(adapter)

    def adapter_for(self, filename: str):
        for adapter in self.adapters:
            if adapter.can_handle(filename):
                return adapter
        raise UnsupportedFileError(f"No adapter found for {filename}")

    def can_read(self, filename: str) -> bool:
        return any(adapter.can_handle(filename) for adapter in self.adapters)

    def open(self, data: bytes, filename: str, has_headers: bool = True, skip_rows: int = 0) -> Table:
        """Open a file as a table.

        Args:
            data: Raw file bytes
            filename: Original filename, used to pick an adapter
            has_headers: First non-skipped row is the header; otherwise
                columns are named "Column 1", "Column 2", ...
            skip_rows: Leading rows to discard before the header

        Raises:
            UnsupportedFileError: If no adapter handles the filename
            UnreadableFileError: If the file holds no rows after skipping
        """
        if skip_rows < 0:
            raise ValueError(f"skip_rows must not be negative, got {skip_rows}")

        adapter = self.adapter_for(filename)
        rows = adapter.read(data, filename, skip_rows)

        first = next(rows, None)
        if first is None:
            rows.close()
            raise UnreadableFileError(f"{filename} contains no rows after skipping {skip_rows}")

        if has_headers:
            header = [
                (name or '').strip() or f"Column {index + 1}"
                for index, name in enumerate(first)
            ]
            logger.debug(f"{filename}: header {header}")
            return Table(header=header, rows=rows, source=rows)

        header = [f"Column {index + 1}" for index in range(len(first))]
        return Table(header=header, rows=itertools.chain([first], rows), source=rows)
