"""
Shared fixtures: an in-memory PackageStore and a SQLite-backed SqlPackageStore.
"""
import asyncio
import os
import tempfile
import uuid
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set

# Settings are read at import time
_TMP = Path(tempfile.mkdtemp(prefix="parcel-hub-tests-"))
os.environ.setdefault("PARCEL_DATA_ROOT", str(_TMP))
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP / 'health.db'}")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from parcel_hub.database import Base, make_session_factory
from parcel_hub.db_models import Branch, InventoryItem
from parcel_hub.errors import StoreError
from parcel_hub.services.store import PackageStore, SqlPackageStore
from parcel_hub.services.types import (
    BranchRecord, InventoryRecord, MovementRow, PackageRecord,
)


def make_item(sku: str, stock: int, name: Optional[str] = None, **kw) -> InventoryRecord:
    return InventoryRecord(id=uuid.uuid4(), sku=sku, name=name or f"Item {sku}", stock_on_hand=stock, **kw)


def sequential_codes(prefix: str = "P"):
    """Deterministic short-code factory: P00001, P00002, ..."""
    counter = iter(range(1, 1_000_000))
    return lambda: f"{prefix}{next(counter):05d}"


class FakeStore(PackageStore):
    """In-memory store with failure injection; transaction() restores stock/ledger on error."""

    def __init__(self, items=(), branches=None):
        self.items: Dict[uuid.UUID, InventoryRecord] = {i.id: replace(i) for i in items}
        self.branches: List[BranchRecord] = branches if branches is not None else [
            BranchRecord(id=uuid.uuid4(), code="MAIN", name="Main Branch"),
        ]
        self.packages: List[PackageRecord] = []
        self.movements: List[MovementRow] = []
        self.calls: List[str] = []
        self.decrement_calls: List[Dict[uuid.UUID, int]] = []

        self.fail_insert_calls: Set[int] = set()   # 1-based insert_packages call numbers
        self.insert_delay: float = 0.0
        self.fail_movements: bool = False
        self.fail_movement_calls: Set[int] = set()  # 1-based insert_movements call numbers
        self.reverse_returned: bool = False
        self.drop_returned: Set[str] = set()        # short codes silently not returned
        self._insert_calls = 0
        self._movement_calls = 0

    def stock(self, sku: str) -> int:
        return next(i.stock_on_hand for i in self.items.values() if i.sku == sku)

    async def load_inventory(self):
        self.calls.append("load_inventory")
        return [replace(i) for i in self.items.values() if i.active]

    async def find_destination_branch(self, code=None):
        self.calls.append("find_destination_branch")
        candidates = sorted(self.branches, key=lambda b: b.code)
        if code:
            candidates = [b for b in candidates if b.code == code]
        return candidates[0] if candidates else None

    async def insert_packages(self, rows):
        self.calls.append("insert_packages")
        self._insert_calls += 1
        if self.insert_delay:
            await asyncio.sleep(self.insert_delay)
        if self._insert_calls in self.fail_insert_calls:
            raise StoreError("duplicate key value violates unique constraint")
        taken = {p.short_code for p in self.packages}
        if any(r["short_code"] in taken for r in rows):
            raise StoreError("duplicate key value violates unique constraint \"packages_short_code_key\"")
        now = datetime.now(timezone.utc)
        records = [PackageRecord(id=uuid.uuid4(), created_at=now, **r) for r in rows]
        self.packages.extend(records)
        returned = [r for r in records if r.short_code not in self.drop_returned]
        if self.reverse_returned:
            returned.reverse()
        return returned

    async def decrement_stock(self, deltas):
        self.calls.append("decrement_stock")
        self.decrement_calls.append(dict(deltas))
        rejected = set()
        for item_id, delta in deltas.items():
            item = self.items.get(item_id)
            if item is None or item.stock_on_hand + delta < 0:
                rejected.add(item_id)
            else:
                item.stock_on_hand += delta
        return rejected

    async def insert_movements(self, rows):
        self.calls.append("insert_movements")
        self._movement_calls += 1
        if self.fail_movements or self._movement_calls in self.fail_movement_calls:
            raise StoreError("ledger unavailable")
        self.movements.extend(rows)

    @asynccontextmanager
    async def transaction(self, timeout=None):
        saved_stock = {k: v.stock_on_hand for k, v in self.items.items()}
        saved_movements = len(self.movements)
        try:
            yield
        except BaseException:
            for k, v in saved_stock.items():
                self.items[k].stock_on_hand = v
            del self.movements[saved_movements:]
            raise

    async def get_package(self, short_code):
        code = (short_code or "").strip().upper()
        return next((p for p in self.packages if p.short_code.upper() == code), None)


@pytest.fixture
def a1():
    return make_item("A1", 10, name="Widget")


@pytest.fixture
def b2():
    return make_item("B2", 5, name="Gadget")


@pytest.fixture
def fake_store(a1, b2):
    return FakeStore([a1, b2])


# ============================================================================
# SQLite-backed store
# ============================================================================

@pytest.fixture
async def sql_engine(tmp_path):
    from parcel_hub import db_models  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'parcel.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def sql_seed(sql_engine):
    """Seeds two branches and items A1 (10), B2 (5), C3 (inactive); returns their ids by sku/code."""
    factory = make_session_factory(sql_engine)
    ids = {}
    async with factory() as db:
        async with db.begin():
            for code, name in (("ZAGREB", "Zagreb"), ("MAIN", "Main Branch")):
                b = Branch(code=code, name=name, address=f"{name} 1")
                db.add(b)
            for sku, name, stock, active in (
                ("A1", "Widget", 10, True),
                ("B2", "Gadget", 5, True),
                ("C3", "Retired", 7, False),
            ):
                item = InventoryItem(sku=sku, name=name, stock_on_hand=stock, min_threshold=5, active=active)
                db.add(item)
            await db.flush()
        for obj in (await db.execute(InventoryItem.__table__.select())).all():
            ids[obj.sku] = obj.id
        for obj in (await db.execute(Branch.__table__.select())).all():
            ids[obj.code] = obj.id
    return ids


@pytest.fixture
def sql_store(sql_engine, sql_seed):
    return SqlPackageStore(make_session_factory(sql_engine))
