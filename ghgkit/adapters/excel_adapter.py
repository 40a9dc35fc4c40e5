import io
import logging
import zipfile
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import UnreadableFileError
from ..lexical_similarity import normalize_header
from ..schema import ROLE_KEYWORDS

logger = logging.getLogger(__name__)


class ExcelAdapter:
    """XLSX adapter yielding rows in the same shape as the CSV adapter.

    A workbook may hold several sheets; the one whose header row (the first
    row after any skipped ones) carries the most role keywords is read.
    """

    def __init__(self, role_keywords: Optional[Dict[str, List[str]]] = None):
        keywords = role_keywords if role_keywords is not None else ROLE_KEYWORDS
        self.keywords = {normalize_header(kw) for kws in keywords.values() for kw in kws}

    def can_handle(self, filename):
        return Path(filename).suffix.lower() in [".xlsx", ".xlsm"]

    def read(self, data: bytes, filename: str, skip_rows: int = 0) -> Iterator[List[str]]:
        try:
            wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
            raise UnreadableFileError(f"Could not open workbook {filename}: {e}") from e

        try:
            ws = self._select_sheet(wb, skip_rows + 1)
            logger.debug(f"Reading sheet '{ws.title}' of {filename}")
            for row in ws.iter_rows(min_row=skip_rows + 1, values_only=True):
                yield [self.render(value) for value in row]
        finally:
            wb.close()

    def _select_sheet(self, wb, header_row: int = 1):
        best, best_hits = wb.worksheets[0], -1
        for ws in wb.worksheets:
            first_row = next(ws.iter_rows(min_row=header_row, max_row=header_row, values_only=True), ())
            hits = sum(1 for value in first_row if normalize_header(self.render(value)) in self.keywords)
            if hits > best_hits:
                best, best_hits = ws, hits
        return best

    @staticmethod
    def render(value: Any) -> str:
        """Cell value as text: dates in ISO form, integral floats without '.0'."""
        if value is None:
            return ''
        if isinstance(value, datetime):
            if value.time() == time(0, 0):
                return value.date().isoformat()
            return value.isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
