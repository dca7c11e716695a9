# parcel_hub/services/types.py
"""
Plain data records passed between pipeline stages.

These are store-agnostic: the SQL store converts ORM rows into them, the
in-memory test store builds them directly.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List
import uuid

from parcel_hub.db_models import PackageStatus, Symbology


@dataclass
class ImportRow:
    row_number: int
    beneficiary_name: str = ""
    surname: str = ""
    company: str = ""
    address: str = ""
    notes: str = ""
    raw_sku_tokens: List[str] = field(default_factory=list)


@dataclass
class SkuCount:
    quantity: int
    original: str


@dataclass
class InventoryRecord:
    id: uuid.UUID
    sku: str
    name: str
    stock_on_hand: int
    min_threshold: int = 0
    unit: str = "pcs"
    active: bool = True

    @property
    def low_stock(self) -> bool:
        return self.stock_on_hand <= self.min_threshold


@dataclass
class BranchRecord:
    id: uuid.UUID
    code: str
    name: str
    address: Optional[str] = None


@dataclass
class ResolvedLineItem:
    product_id: uuid.UUID
    display_name: str
    quantity: int


@dataclass
class StockDelta:
    item_id: uuid.UUID
    delta: int
    temp_id: uuid.UUID


@dataclass
class PackagePlan:
    temp_id: uuid.UUID
    short_code: str
    contents_note: str
    notes: str
    line_items: List[ResolvedLineItem]
    deltas: List[StockDelta]
    origin: str
    current_location: str
    destination_branch_id: Optional[uuid.UUID]
    encoded_payload: str
    status: PackageStatus = PackageStatus.created
    symbology: Symbology = Symbology.code128
    row_number: Optional[int] = None

    def to_row(self, created_by: str) -> dict:
        """Package row for the store's bulk insert (correlation_id carries temp_id)."""
        return {
            "correlation_id": self.temp_id,
            "short_code": self.short_code,
            "status": self.status,
            "origin": self.origin,
            "current_location": self.current_location,
            "destination_branch_id": self.destination_branch_id,
            "contents_note": self.contents_note,
            "notes": self.notes,
            "symbology": self.symbology,
            "encoded_payload": self.encoded_payload,
            "created_by": created_by,
        }


@dataclass
class PackageRecord:
    id: uuid.UUID
    correlation_id: uuid.UUID
    short_code: str
    status: PackageStatus
    origin: str
    current_location: str
    destination_branch_id: Optional[uuid.UUID]
    contents_note: str
    notes: str
    symbology: Symbology
    encoded_payload: str
    created_by: str
    created_at: Optional[datetime] = None


@dataclass
class MovementRow:
    item_id: uuid.UUID
    delta: int
    reason: str
    ref_package_id: uuid.UUID
    user_id: str


@dataclass
class CreatedPackage:
    package: PackageRecord
    line_items: List[ResolvedLineItem]
    warnings: List[str] = field(default_factory=list)
