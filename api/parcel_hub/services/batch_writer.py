# parcel_hub/services/batch_writer.py
"""
Batch Writer - persists one batch of PackagePlans.

Per batch:
1. one bulk insert of all package rows (all-or-nothing)
2. pair returned rows to plans by correlation id
3. aggregate stock deltas per item across the batch
4. in one store transaction: one conditional decrement per item; an item
   whose net decrement is rejected is retried package by package, so only
   the line items that overdraw are flagged. Then one movement per
   (package, line item) that was deducted.

Only step 1 decides whether a row counts as created; stock/ledger problems
become warnings on packages that stand.
"""
from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from parcel_hub.errors import StoreError
from parcel_hub.services.store import PackageStore, call_store
from parcel_hub.services.types import MovementRow, PackagePlan, PackageRecord

logger = logging.getLogger(__name__)

BULK_REASON = "Package {code} created via Excel import"
MANUAL_REASON = "Package {code} created"


@dataclass
class BatchResult:
    batch_no: int
    created: List[Tuple[PackagePlan, PackageRecord]] = field(default_factory=list)
    failed: List[PackagePlan] = field(default_factory=list)
    batch_error: Optional[str] = None
    store_error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    # (plan temp_id, item id) pairs whose stock was not deducted
    rejected_lines: Set[Tuple[uuid.UUID, uuid.UUID]] = field(default_factory=set)
    ledger_written: bool = False


def net_deltas(plans: List[PackagePlan]) -> Dict[uuid.UUID, int]:
    """Sum every plan's deltas per inventory item (one update per item per batch)."""
    net: Dict[uuid.UUID, int] = {}
    for plan in plans:
        for d in plan.deltas:
            net[d.item_id] = net.get(d.item_id, 0) + d.delta
    return {k: v for k, v in net.items() if v != 0}


class BatchWriter:

    def __init__(
        self,
        store: PackageStore,
        user_id: str,
        timeout: float = 15.0,
        reason_template: str = BULK_REASON,
    ):
        self.store = store
        self.user_id = user_id
        self.timeout = timeout
        self.reason_template = reason_template

    async def write(self, plans: List[PackagePlan], batch_no: int = 1) -> BatchResult:
        result = BatchResult(batch_no=batch_no)
        if not plans:
            return result

        logger.info(f"Batch {batch_no}: inserting {len(plans)} package(s)")

        # 1. Packages (whole batch fails together)
        rows = [p.to_row(self.user_id) for p in plans]
        try:
            records = await call_store(self.store.insert_packages(rows), self.timeout)
        except StoreError as e:
            logger.error(f"Batch {batch_no}: package insert failed: {e}")
            result.failed = list(plans)
            result.store_error = str(e)
            result.batch_error = f"Batch {batch_no}: {e}"
            return result

        # 2. Pair by correlation id, never by position
        by_corr: Dict[uuid.UUID, PackageRecord] = {r.correlation_id: r for r in records}
        for plan in plans:
            rec = by_corr.pop(plan.temp_id, None)
            if rec is None:
                result.failed.append(plan)
                where = f"Row {plan.row_number}" if plan.row_number else f"Package {plan.short_code}"
                result.errors.append(f"{where}: package {plan.short_code} not confirmed by store")
            else:
                result.created.append((plan, rec))
        for stray in by_corr.values():
            logger.warning(f"Batch {batch_no}: store returned unknown package {stray.short_code} ({stray.correlation_id})")

        if not result.created:
            return result

        # 3. Net deltas per item
        deltas = net_deltas([plan for plan, _ in result.created])

        # 4. Stock + ledger, committed together
        try:
            async with self.store.transaction(timeout=self.timeout):
                rejected = await call_store(self.store.decrement_stock(deltas), self.timeout)
                if rejected:
                    result.rejected_lines = await self._decrement_per_package(result.created, deltas, rejected)
                movements = [
                    MovementRow(
                        item_id=li.product_id,
                        delta=-li.quantity,
                        reason=self.reason_template.format(code=rec.short_code),
                        ref_package_id=rec.id,
                        user_id=self.user_id,
                    )
                    for plan, rec in result.created
                    for li in plan.line_items
                    if (plan.temp_id, li.product_id) not in result.rejected_lines
                ]
                if movements:
                    await call_store(self.store.insert_movements(movements), self.timeout)
        except StoreError as e:
            logger.exception(f"Batch {batch_no}: stock/ledger write rolled back")
            result.rejected_lines = set()
            for _, rec in result.created:
                result.warnings.append(f"Package {rec.short_code}: stock and ledger not recorded ({e})")
            return result

        result.ledger_written = True
        for plan, rec in result.created:
            for li in plan.line_items:
                if (plan.temp_id, li.product_id) in result.rejected_lines:
                    msg = (
                        f"Package {rec.short_code}: stock for {li.display_name} not deducted "
                        f"(insufficient stock at write time)"
                    )
                    logger.warning(msg)
                    result.warnings.append(msg)

        logger.info(
            f"Batch {batch_no}: {len(result.created)} created, {len(result.failed)} failed, "
            f"{len(deltas)} item(s) updated, {len(result.rejected_lines)} line item(s) rejected"
        )
        return result

    async def _decrement_per_package(
        self,
        created: List[Tuple[PackagePlan, PackageRecord]],
        deltas: Dict[uuid.UUID, int],
        rejected: Set[uuid.UUID],
    ) -> Set[Tuple[uuid.UUID, uuid.UUID]]:
        """Retry rejected items one package at a time, in plan order; returns the lines that still overdraw."""
        lines: Set[Tuple[uuid.UUID, uuid.UUID]] = set()
        for item_id in deltas:
            if item_id not in rejected:
                continue
            for plan, _ in created:
                qty = sum(li.quantity for li in plan.line_items if li.product_id == item_id)
                if not qty:
                    continue
                refused = await call_store(self.store.decrement_stock({item_id: -qty}), self.timeout)
                if item_id in refused:
                    lines.add((plan.temp_id, item_id))
        return lines
