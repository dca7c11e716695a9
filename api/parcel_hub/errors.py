# parcel_hub/errors.py
"""
Exceptions raised by the package pipeline.

Only ConfigurationError, Unauthenticated and FormatError abort a bulk import;
row and batch failures are collected in the ReconciliationReport instead.
"""
from __future__ import annotations
from typing import List


class ParcelHubError(Exception):
    """Base class for all Parcel Hub errors."""


class ConfigurationError(ParcelHubError):
    """Spreadsheet layout is unusable (e.g. no products column)."""


class Unauthenticated(ParcelHubError):
    """No authenticated user is available for created_by / user_id."""


class FormatError(ParcelHubError):
    """Uploaded file could not be decoded into a grid."""


class StoreError(ParcelHubError):
    """The data store rejected a call or did not answer in time."""


class RowError(ParcelHubError):
    """A single import row cannot become a package."""

    def __init__(self, row_number: int, message: str):
        self.row_number = row_number
        self.message = message
        super().__init__(f"Row {row_number}: {message}")


class InsufficientStockError(ParcelHubError):
    """Manual creation asked for more than is on hand; nothing was written."""

    def __init__(self, shortages: List[str]):
        self.shortages = list(shortages)
        super().__init__("Insufficient stock: " + "; ".join(self.shortages))
