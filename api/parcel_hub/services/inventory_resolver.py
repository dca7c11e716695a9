# parcel_hub/services/inventory_resolver.py
"""
Inventory Resolver - SKU counts + inventory snapshot -> resolved line items.

The snapshot is read once per run; the allocation guard here is best-effort,
the store's conditional decrement stays authoritative.
"""
from __future__ import annotations
import logging
import uuid
from typing import Dict, List, Iterable

from parcel_hub.errors import RowError
from parcel_hub.services.types import InventoryRecord, ResolvedLineItem, SkuCount

logger = logging.getLogger(__name__)


class InventoryResolver:
    """Case-insensitive SKU lookup over one inventory snapshot."""

    def __init__(self, snapshot: Iterable[InventoryRecord]):
        self.items: Dict[uuid.UUID, InventoryRecord] = {}
        self._by_sku: Dict[str, InventoryRecord] = {}
        for item in snapshot:
            if not item.active:
                continue
            self.items[item.id] = item
            # first item wins on case-only duplicates
            self._by_sku.setdefault(item.sku.lower(), item)
        # quantity already planned per item during this run
        self.allocated: Dict[uuid.UUID, int] = {}

    def lookup(self, sku: str):
        return self._by_sku.get((sku or "").strip().lower())

    def resolve(self, counts: Dict[str, SkuCount], row_number: int) -> List[ResolvedLineItem]:
        """Resolve SKUs; unmatched ones are dropped, none matching raises RowError."""
        items: List[ResolvedLineItem] = []
        for key, entry in counts.items():
            item = self._by_sku.get(key)
            if item is None:
                logger.debug(f"Row {row_number}: SKU '{entry.original}' not found in inventory")
                continue
            items.append(ResolvedLineItem(
                product_id=item.id,
                display_name=item.name,
                quantity=entry.quantity,
            ))

        if not items:
            raise RowError(row_number, "No valid products found")
        return items

    def check_allocation(self, items: List[ResolvedLineItem], row_number: int) -> None:
        """Raise RowError if these items, on top of earlier allocations, exceed snapshot stock."""
        issues: List[str] = []
        for li in items:
            item = self.items.get(li.product_id)
            if item is None:
                continue
            needed = self.allocated.get(item.id, 0) + li.quantity
            if item.stock_on_hand < needed:
                issues.append(f"{item.name}: need {needed}, have {item.stock_on_hand}")
        if issues:
            raise RowError(row_number, "Insufficient stock - " + "; ".join(issues))

    def allocate(self, items: List[ResolvedLineItem]) -> None:
        for li in items:
            self.allocated[li.product_id] = self.allocated.get(li.product_id, 0) + li.quantity

    def release(self, items: List[ResolvedLineItem]) -> None:
        """Undo allocate() for plans whose batch was not persisted."""
        for li in items:
            left = self.allocated.get(li.product_id, 0) - li.quantity
            if left > 0:
                self.allocated[li.product_id] = left
            else:
                self.allocated.pop(li.product_id, None)
