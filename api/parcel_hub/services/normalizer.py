# parcel_hub/services/normalizer.py
"""
Normalizer - spreadsheet row / manual form -> ImportRow.

Header mapping is resolved once per import by case-insensitive substring
match; only the products column is mandatory.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, List, Sequence

from parcel_hub.errors import ConfigurationError
from parcel_hub.services.types import ImportRow

# First header containing the substring wins
_COLUMN_KEYS = {
    "beneficiary": "beneficiary",
    "company": "company",
    "address": "address",
    "products": "product",
    "notes": "note",
}


@dataclass(frozen=True)
class HeaderMap:
    products: int
    beneficiary: Optional[int] = None
    company: Optional[int] = None
    address: Optional[int] = None
    notes: Optional[int] = None


def _cell(row: Sequence, idx: Optional[int]) -> str:
    if idx is None or idx >= len(row):
        return ""
    v = row[idx]
    return "" if v is None else str(v).strip()


def is_blank_row(row: Sequence) -> bool:
    return not row or all(not str(c if c is not None else "").strip() for c in row)


def resolve_headers(headers: Sequence) -> HeaderMap:
    """Map header cells to column indices; raises ConfigurationError without a products column."""
    norm = [str(h if h is not None else "").strip().lower() for h in headers]
    found = {}
    for field_name, needle in _COLUMN_KEYS.items():
        found[field_name] = next((i for i, h in enumerate(norm) if needle in h), None)

    if found["products"] is None:
        raise ConfigurationError("Spreadsheet must have a Products column")
    return HeaderMap(**found)


def split_beneficiary(value: str) -> tuple[str, str]:
    parts = (value or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def split_products(cell: str) -> List[str]:
    """Products cell 'SKU; SKU; ...' -> trimmed non-empty tokens in order."""
    return [t.strip() for t in (cell or "").split(";") if t.strip()]


def normalize_row(row: Sequence, header_map: HeaderMap, row_number: int) -> Optional[ImportRow]:
    """
    Normalize one grid row.

    Returns None when the row must be skipped (empty products cell or no
    non-empty SKU tokens); skipped rows count neither as success nor failure.
    """
    products = _cell(row, header_map.products)
    if not products:
        return None
    tokens = split_products(products)
    if not tokens:
        return None

    name, surname = split_beneficiary(_cell(row, header_map.beneficiary))
    return ImportRow(
        row_number=row_number,
        beneficiary_name=name,
        surname=surname,
        company=_cell(row, header_map.company),
        address=_cell(row, header_map.address),
        notes=_cell(row, header_map.notes),
        raw_sku_tokens=tokens,
    )


def normalize_manual(
    beneficiary_name: Optional[str] = None,
    surname: Optional[str] = None,
    company: Optional[str] = None,
    address: Optional[str] = None,
    notes: Optional[str] = None,
) -> ImportRow:
    """Manual entry form -> ImportRow (row_number 0, no SKU tokens; items arrive resolved)."""
    return ImportRow(
        row_number=0,
        beneficiary_name=(beneficiary_name or "").strip(),
        surname=(surname or "").strip(),
        company=(company or "").strip(),
        address=(address or "").strip(),
        notes=(notes or "").strip(),
    )
