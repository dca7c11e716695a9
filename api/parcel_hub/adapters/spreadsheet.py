# parcel_hub/adapters/spreadsheet.py
"""
Spreadsheet decoder: uploaded bytes -> grid of strings (header row first).

.xlsx/.xls go through pandas.read_excel (openpyxl engine); everything else
is treated as delimited text (CSV/TSV, UTF-8-SIG with cp1250 fallback).
"""
from __future__ import annotations
import csv
import io
import logging
from pathlib import Path
from typing import List, Optional

import pandas as pd

from parcel_hub.errors import FormatError

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}


def _decode_bytes_auto(b: bytes) -> str:
    try:
        return b.decode("utf-8-sig")
    except UnicodeDecodeError:
        try:
            return b.decode("cp1250")
        except UnicodeDecodeError:
            return b.decode("utf-8", errors="ignore")


def _detect_delimiter(line: str) -> str:
    counts = {';': line.count(';'), '\t': line.count('\t'), ',': line.count(',')}
    delim = max(counts, key=lambda k: counts[k])
    return delim if counts[delim] > 0 else ','


def _read_excel(data: bytes) -> List[List[str]]:
    try:
        df = pd.read_excel(io.BytesIO(data), sheet_name=0, header=None, dtype=str)
    except Exception as e:
        logger.exception(f"Failed to parse workbook: {e}")
        raise FormatError(f"Unreadable spreadsheet: {e}") from e
    df = df.fillna("")
    return [[str(v) for v in row] for row in df.values.tolist()]


def _read_delimited(data: bytes) -> List[List[str]]:
    text = _decode_bytes_auto(data)
    first_line = next((ln for ln in text.splitlines() if ln.strip()), "")
    if not first_line:
        return []
    # Products cells use ';' between SKUs, so only the header line decides
    delim = _detect_delimiter(first_line)
    try:
        return [list(row) for row in csv.reader(io.StringIO(text), delimiter=delim)]
    except csv.Error as e:
        raise FormatError(f"Unreadable delimited file: {e}") from e


def decode(data: bytes, filename: Optional[str] = None) -> List[List[str]]:
    """Decode an uploaded spreadsheet. Raises FormatError on unreadable or empty input."""
    if not data:
        raise FormatError("Uploaded file is empty")

    suffix = Path(filename or "").suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        grid = _read_excel(data)
    else:
        grid = _read_delimited(data)

    if not grid or all(not any(str(c).strip() for c in row) for row in grid):
        raise FormatError("Spreadsheet has no rows")
    logger.info(f"Decoded {filename or 'upload'}: {len(grid)} row(s)")
    return grid
