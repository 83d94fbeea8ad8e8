"""CSV reading and column discovery for Bizzio exports.

Bizzio writes ``;``-separated files, quoted with ``"`` and escaped with ``\\``.
Older exports come in Windows-1251, so every line is decoded on its own:
valid UTF-8 is taken as-is, anything else goes through charset-normalizer.
"""

from __future__ import annotations

import csv
import re
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Sequence, Tuple, Union

from charset_normalizer import from_bytes

CSV_DELIM = ';'
CSV_QUOTE = '"'
CSV_ESCAPE = '\\'

# utf_8 is tried first with a strict decode, the rest are detection candidates
FALLBACK_ENCODINGS = ["cp1251", "cp1252", "latin_1"]

LANG_COLUMN_RE = re.compile(r'Web (?:name|име) \(([^)]+)\)', re.IGNORECASE)


class EmptyInputError(ValueError):
    """CSV has no header row."""


class MissingColumnError(ValueError):
    """A required column is not in the header."""


def to_utf8(raw: bytes) -> str:
    if not raw:
        return ""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        pass
    match = from_bytes(raw, cp_isolation=FALLBACK_ENCODINGS).best()
    if match is None:
        # every byte maps to one character, so nothing is lost or replaced
        return raw.decode("latin_1")
    return str(match)


def _decoded_lines(fh: BinaryIO) -> Iterator[str]:
    for raw in fh:
        yield to_utf8(raw)


class CsvRows:
    """Single forward pass over the data rows; the file closes at the end."""

    def __init__(self, reader: Iterator[List[str]], fh: BinaryIO) -> None:
        self._reader = reader
        self._fh = fh

    def __iter__(self) -> "CsvRows":
        return self

    def __next__(self) -> List[str]:
        if self._fh.closed:
            raise StopIteration
        try:
            return next(self._reader)
        except StopIteration:
            self.close()
            raise

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()


def read_csv(path: Union[str, Path], delimiter: str = CSV_DELIM) -> Tuple[List[str], CsvRows]:
    """Open ``path`` and return ``(header, rows)``.

    ``rows`` is a lazy single-pass iterator; the file is closed once it is
    exhausted or ``rows.close()`` is called. Raises ``FileNotFoundError`` /
    ``OSError`` when the file cannot be opened and ``EmptyInputError`` when
    there is no header.
    """
    fh = open(path, 'rb')
    reader = csv.reader(
        _decoded_lines(fh),
        delimiter=delimiter,
        quotechar=CSV_QUOTE,
        escapechar=CSV_ESCAPE,
    )
    try:
        header = next(reader)
    except StopIteration:
        fh.close()
        raise EmptyInputError(f"CSV header is empty: {path}")
    except Exception:
        fh.close()
        raise

    header = [h.strip() for h in header]
    if header:
        header[0] = header[0].lstrip('\ufeff').strip()
    if not any(header):
        fh.close()
        raise EmptyInputError(f"CSV header is empty: {path}")
    return header, CsvRows(reader, fh)


def resolve_column(header: Sequence[str], candidates: Sequence[str]) -> Optional[int]:
    """First header index matching a candidate, or ``None``.

    A cell matches when it equals the candidate, equals ``(candidate)`` or
    contains it, all case-insensitive. Candidates are tried in order.
    """
    for name in candidates:
        needle = name.lower()
        wrapped = f"({needle})"
        for idx, h in enumerate(header):
            cell_l = (h or '').lower()
            if cell_l == needle or cell_l == wrapped or needle in cell_l:
                return idx
    return None


def pick_column(header: Sequence[str], candidates: Sequence[str]) -> Optional[int]:
    """Strict variant of ``resolve_column``: case-insensitive equality only."""
    lowered = [(h or '').lower() for h in header]
    for name in candidates:
        try:
            return lowered.index(name.lower())
        except ValueError:
            continue
    return None


def detect_languages(header: Sequence[str]) -> List[str]:
    langs: List[str] = []
    for col_name in header:
        m = LANG_COLUMN_RE.search(col_name or '')
        if not m:
            continue
        code = m.group(1).strip().lower()
        if code and code not in langs:
            langs.append(code)
    return langs


def cell(row: Sequence[str], idx: Optional[int]) -> str:
    if idx is None or idx >= len(row):
        return ''
    return (row[idx] or '').strip()
