# parcel_hub/services/store.py
"""
Package Store - data-store boundary for the package pipeline.

PackageStore is the async interface the pipeline talks to; SqlPackageStore
implements it on SQLAlchemy 2.0 async (asyncpg in production, aiosqlite in
tests). Every SQLAlchemyError leaves this module as StoreError.
"""
from __future__ import annotations
import abc
import asyncio
import contextvars
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Dict, List, Optional, Set, TypeVar

from sqlalchemy import select, insert, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from parcel_hub.db_models import Branch, InventoryItem, InventoryMovement, Package
from parcel_hub.errors import StoreError
from parcel_hub.services.types import (
    BranchRecord, InventoryRecord, MovementRow, PackageRecord,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_store(aw: Awaitable[T], timeout: float) -> T:
    """Await one store round trip; a timeout is reported as StoreError."""
    try:
        return await asyncio.wait_for(aw, timeout=timeout)
    except asyncio.TimeoutError:
        raise StoreError(f"Store call timed out after {timeout:g}s")


class PackageStore(abc.ABC):
    """Store operations used by the importer, the manual path and the API."""

    @abc.abstractmethod
    async def load_inventory(self) -> List[InventoryRecord]:
        """Active inventory items (the per-run snapshot)."""

    @abc.abstractmethod
    async def find_destination_branch(self, code: Optional[str] = None) -> Optional[BranchRecord]:
        """Branch with `code`, or the first branch by code when `code` is None."""

    @abc.abstractmethod
    async def insert_packages(self, rows: List[dict]) -> List[PackageRecord]:
        """Insert all rows in one statement; all-or-nothing."""

    @abc.abstractmethod
    async def decrement_stock(self, deltas: Dict[uuid.UUID, int]) -> Set[uuid.UUID]:
        """Apply signed deltas with `stock + delta >= 0`; returns ids whose update was rejected."""

    @abc.abstractmethod
    async def insert_movements(self, rows: List[MovementRow]) -> None:
        """Bulk insert ledger rows."""

    @abc.abstractmethod
    def transaction(self, timeout: Optional[float] = None):
        """Async context manager; decrement_stock/insert_movements inside it commit together.

        `timeout` bounds the commit the same way call_store bounds other round trips.
        """

    @abc.abstractmethod
    async def get_package(self, short_code: str) -> Optional[PackageRecord]:
        """Package by tracking code (case-insensitive)."""


# ============================================================================
# SQLAlchemy implementation
# ============================================================================

def _to_inventory(item: InventoryItem) -> InventoryRecord:
    return InventoryRecord(
        id=item.id,
        sku=item.sku,
        name=item.name,
        stock_on_hand=item.stock_on_hand,
        min_threshold=item.min_threshold,
        unit=item.unit,
        active=item.active,
    )


def _to_package(pkg: Package) -> PackageRecord:
    return PackageRecord(
        id=pkg.id,
        correlation_id=pkg.correlation_id,
        short_code=pkg.short_code,
        status=pkg.status,
        origin=pkg.origin,
        current_location=pkg.current_location,
        destination_branch_id=pkg.destination_branch_id,
        contents_note=pkg.contents_note,
        notes=pkg.notes,
        symbology=pkg.symbology,
        encoded_payload=pkg.encoded_payload,
        created_by=pkg.created_by,
        created_at=pkg.created_at,
    )


class SqlPackageStore(PackageStore):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._tx: contextvars.ContextVar[Optional[AsyncSession]] = contextvars.ContextVar(
            f"parcel_store_tx_{id(self)}", default=None
        )

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Current transaction's session, or a fresh one committed on exit."""
        current = self._tx.get()
        if current is not None:
            yield current
            return
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

    @asynccontextmanager
    async def transaction(self, timeout: Optional[float] = None) -> AsyncIterator[None]:
        try:
            async with self.session_factory() as session:
                token = self._tx.set(session)
                try:
                    yield
                except BaseException:
                    await session.rollback()
                    raise
                finally:
                    self._tx.reset(token)
                # the commit is a round trip too
                if timeout is None:
                    await session.commit()
                else:
                    await call_store(session.commit(), timeout)
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

    # =========================================================================
    # Reads
    # =========================================================================

    async def load_inventory(self) -> List[InventoryRecord]:
        async with self._session() as db:
            stmt = (
                select(InventoryItem)
                .where(InventoryItem.active == True)
                .order_by(InventoryItem.sku)
            )
            result = await db.execute(stmt)
            return [_to_inventory(i) for i in result.scalars().all()]

    async def find_destination_branch(self, code: Optional[str] = None) -> Optional[BranchRecord]:
        async with self._session() as db:
            stmt = select(Branch)
            if code:
                stmt = stmt.where(Branch.code == code)
            stmt = stmt.order_by(Branch.code).limit(1)
            branch = (await db.execute(stmt)).scalar_one_or_none()
            if branch is None:
                return None
            return BranchRecord(id=branch.id, code=branch.code, name=branch.name, address=branch.address)

    async def get_package(self, short_code: str) -> Optional[PackageRecord]:
        async with self._session() as db:
            stmt = select(Package).where(func.upper(Package.short_code) == (short_code or "").strip().upper())
            pkg = (await db.execute(stmt)).scalar_one_or_none()
            return _to_package(pkg) if pkg else None

    # =========================================================================
    # Writes
    # =========================================================================

    async def insert_packages(self, rows: List[dict]) -> List[PackageRecord]:
        if not rows:
            return []
        async with self._session() as db:
            result = await db.scalars(insert(Package).returning(Package), rows)
            created = [_to_package(p) for p in result.all()]
        logger.debug(f"Inserted {len(created)} package row(s)")
        return created

    async def decrement_stock(self, deltas: Dict[uuid.UUID, int]) -> Set[uuid.UUID]:
        rejected: Set[uuid.UUID] = set()
        async with self._session() as db:
            for item_id, delta in deltas.items():
                if delta == 0:
                    continue
                stmt = (
                    update(InventoryItem)
                    .where(
                        InventoryItem.id == item_id,
                        InventoryItem.stock_on_hand + delta >= 0,
                    )
                    .values(stock_on_hand=InventoryItem.stock_on_hand + delta)
                    .execution_options(synchronize_session=False)
                )
                result = await db.execute(stmt)
                if result.rowcount == 0:
                    rejected.add(item_id)
        return rejected

    async def insert_movements(self, rows: List[MovementRow]) -> None:
        if not rows:
            return
        payload = [
            {
                "item_id": r.item_id,
                "delta": r.delta,
                "reason": r.reason,
                "ref_package_id": r.ref_package_id,
                "user_id": r.user_id,
            }
            for r in rows
        ]
        async with self._session() as db:
            await db.execute(insert(InventoryMovement), payload)
