# parcel_hub/db_models.py
"""
SQLAlchemy ORM Models for Parcel Hub.

Inventory items, branches, packages and the immutable inventory movement
ledger. Primary keys are UUIDs so the schema runs unchanged on PostgreSQL
and SQLite.
"""
from __future__ import annotations
from datetime import datetime
from typing import Optional, List
import enum
import uuid

from sqlalchemy import (
    String, Integer, Boolean, Text, DateTime, Uuid,
    ForeignKey, Index, CheckConstraint,
    Enum as SQLEnum, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parcel_hub.database import Base

# ============================================================================
# ENUMS
# ============================================================================

class PackageStatus(str, enum.Enum):
    created = "created"


class Symbology(str, enum.Enum):
    code128 = "code128"
    qr = "qr"


# ============================================================================
# MIXIN for created_at
# ============================================================================

class CreatedAtMixin:
    """Mixin for the created_at column (rows here are never updated in place)."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=func.now(),
        nullable=False
    )


# ============================================================================
# 1. BRANCHES
# ============================================================================

class Branch(CreatedAtMixin, Base):
    __tablename__ = "branches"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text)

    packages: Mapped[List["Package"]] = relationship(back_populates="destination_branch")


# ============================================================================
# 2. INVENTORY ITEMS
# ============================================================================

class InventoryItem(CreatedAtMixin, Base):
    __tablename__ = "inventory_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="pcs", nullable=False)
    stock_on_hand: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_threshold: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    movements: Mapped[List["InventoryMovement"]] = relationship(back_populates="item")

    __table_args__ = (
        CheckConstraint("stock_on_hand >= 0", name="ck_inventory_items_stock_non_negative"),
        CheckConstraint("min_threshold >= 0", name="ck_inventory_items_threshold_non_negative"),
    )


# ============================================================================
# 3. PACKAGES
# ============================================================================

class Package(CreatedAtMixin, Base):
    __tablename__ = "packages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    correlation_id: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, nullable=False)
    short_code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    status: Mapped[PackageStatus] = mapped_column(
        SQLEnum(PackageStatus, name="package_status"),
        default=PackageStatus.created,
        nullable=False
    )
    origin: Mapped[str] = mapped_column(String(255), nullable=False)
    current_location: Mapped[str] = mapped_column(String(255), nullable=False)
    destination_branch_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("branches.id", ondelete="SET NULL")
    )
    contents_note: Mapped[str] = mapped_column(Text, default="", nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    symbology: Mapped[Symbology] = mapped_column(
        SQLEnum(Symbology, name="package_symbology"),
        default=Symbology.code128,
        nullable=False
    )
    encoded_payload: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)

    destination_branch: Mapped[Optional["Branch"]] = relationship(back_populates="packages")
    movements: Mapped[List["InventoryMovement"]] = relationship(back_populates="package")

    __table_args__ = (
        Index("idx_packages_created_at", "created_at"),
    )


# ============================================================================
# 4. INVENTORY MOVEMENTS (immutable ledger)
# ============================================================================

class InventoryMovement(CreatedAtMixin, Base):
    __tablename__ = "inventory_movements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=False
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    ref_package_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("packages.id", ondelete="SET NULL")
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    item: Mapped["InventoryItem"] = relationship(back_populates="movements")
    package: Mapped[Optional["Package"]] = relationship(back_populates="movements")

    __table_args__ = (
        CheckConstraint("delta <> 0", name="ck_inventory_movements_delta_non_zero"),
        Index("idx_inventory_movements_item", "item_id", "created_at"),
        Index("idx_inventory_movements_package", "ref_package_id"),
    )
