from __future__ import annotations
from datetime import datetime
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field

class ManualItemIn(BaseModel):
    product_id: UUID
    quantity: int = Field(default=1, ge=1)

class PackageCreateIn(BaseModel):
    beneficiary_name: Optional[str] = None
    surname: Optional[str] = None
    company: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    branch_code: Optional[str] = None
    items: List[ManualItemIn] = Field(default_factory=list)

class LineItemOut(BaseModel):
    product_id: UUID
    name: str
    quantity: int

class PackageOut(BaseModel):
    id: UUID
    short_code: str
    status: str
    origin: str
    current_location: str
    destination_branch_id: Optional[UUID] = None
    contents_note: str
    notes: str = ""
    symbology: str
    encoded_payload: str
    created_by: str
    created_at: Optional[datetime] = None

class PackageCreatedOut(BaseModel):
    package: PackageOut
    items: List[LineItemOut]
    warnings: List[str] = Field(default_factory=list)

class ContentsItemOut(BaseModel):
    name: str
    quantity: int

class PackageContentsOut(BaseModel):
    recipient: str = ""
    company: str = ""
    address: str = ""
    items: List[ContentsItemOut] = Field(default_factory=list)

class PackageTrackingOut(BaseModel):
    package: PackageOut
    contents: PackageContentsOut

class ImportReportOut(BaseModel):
    total_rows: int
    processed_rows: int
    success_count: int
    error_count: int
    skipped_count: int
    warning_count: int
    errors: List[str]
    warnings: List[str]
    created_codes: List[str]
    cancelled: bool = False

class InventoryItemOut(BaseModel):
    id: UUID
    sku: str
    name: str
    unit: str
    stock_on_hand: int
    min_threshold: int
    low_stock: bool
