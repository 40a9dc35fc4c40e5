import csv
import io
import itertools
import logging
from pathlib import Path
from typing import Iterator, List

import chardet

from ..errors import UnreadableFileError

logger = logging.getLogger(__name__)


class CsvAdapter:
    """CSV adapter for reading uploaded CSV and TSV bytes.

    Handles:
    - Multiple encodings (UTF-8, UTF-8-BOM, Windows-1252, ISO-8859-1, etc.)
    - Comma-delimited text, or semicolon/tab when the header clearly uses them
    - Double-quote quoting with doubled-quote escaping (``""`` -> ``"``)
    """

    def can_handle(self, filename: str) -> bool:
        """Check if this adapter can handle the given file."""
        return Path(filename).suffix.lower() in [".csv", ".tsv", ".txt"]

    def _detect_encoding(self, data: bytes) -> str:
        """Detect encoding with a BOM check first, then chardet."""
        if data.startswith(b'\xef\xbb\xbf'):
            return 'utf-8-sig'

        encoding = chardet.detect(data[:10000]).get('encoding') or 'utf-8'
        encoding_lower = encoding.lower()
        if 'utf-8' in encoding_lower or 'utf8' in encoding_lower or encoding_lower == 'ascii':
            return 'utf-8'
        return encoding

    def decode(self, data: bytes) -> str:
        """Decode bytes: valid UTF-8 as is, otherwise the detected encoding, then latin-1."""
        if not data.startswith(b'\xef\xbb\xbf'):
            try:
                return data.decode('utf-8')
            except UnicodeDecodeError:
                pass
        encoding = self._detect_encoding(data)
        try:
            return data.decode(encoding)
        except (UnicodeDecodeError, LookupError) as e:
            logger.warning(f"Decoding as {encoding} failed ({e}); falling back to latin-1")
            return data.decode('latin-1')

    def _detect_delimiter(self, first_line: str, filename: str) -> str:
        """Comma unless the header line clearly uses semicolons or tabs."""
        if Path(filename).suffix.lower() == '.tsv':
            return '\t'

        comma_count = first_line.count(',')
        semicolon_count = first_line.count(';')
        tab_count = first_line.count('\t')

        if tab_count > comma_count and tab_count > semicolon_count:
            return '\t'
        if semicolon_count > comma_count:
            return ';'
        return ','

    def read(self, data: bytes, filename: str, skip_rows: int = 0) -> Iterator[List[str]]:
        """Stream rows of the file as lists of cell text, after ``skip_rows`` records.

        The delimiter is detected on the first line after the skipped ones,
        so a preamble written with different punctuation does not decide it.

        Raises:
            UnreadableFileError: If the text cannot be tokenized as CSV
        """
        text = self.decode(data)
        lines = text.split('\n', skip_rows + 1)
        header_line = lines[skip_rows] if skip_rows < len(lines) else ''
        delimiter = self._detect_delimiter(header_line, filename)
        logger.debug(f"Reading {filename} with delimiter {delimiter!r}")

        reader = csv.reader(io.StringIO(text, newline=''), delimiter=delimiter, quotechar='"', doublequote=True)
        try:
            for row in itertools.islice(reader, skip_rows, None):
                yield [value if value is not None else '' for value in row]
        except csv.Error as e:
            raise UnreadableFileError(f"Error parsing CSV file {filename} at line {reader.line_num}: {e}") from e
