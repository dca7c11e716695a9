# parcel_hub/services/single_package.py
"""
Single Package Creator - manual entry path.

Items arrive already resolved (product id + quantity). Before any write,
every requested quantity must be covered by the snapshot stock; otherwise
InsufficientStockError lists every short item and nothing is written.
"""
from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from parcel_hub.errors import ConfigurationError, InsufficientStockError, StoreError
from parcel_hub.services.batch_writer import MANUAL_REASON, BatchWriter
from parcel_hub.services.identity import current_user_id
from parcel_hub.services.inventory_resolver import InventoryResolver
from parcel_hub.services.normalizer import normalize_manual
from parcel_hub.services.package_planner import PackagePlanner
from parcel_hub.services.store import PackageStore, call_store
from parcel_hub.services.types import CreatedPackage, ResolvedLineItem
from parcel_hub.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class SinglePackageRequest:
    items: List[Tuple[uuid.UUID, int]]
    beneficiary_name: str = ""
    surname: str = ""
    company: str = ""
    address: str = ""
    notes: str = ""
    branch_code: Optional[str] = None


def merge_items(items: List[Tuple[uuid.UUID, int]]) -> Dict[uuid.UUID, int]:
    """Sum quantities of repeated product ids, keeping first-seen order."""
    merged: Dict[uuid.UUID, int] = {}
    for product_id, qty in items:
        if qty < 1:
            raise ValueError(f"Quantity must be at least 1 (got {qty})")
        merged[product_id] = merged.get(product_id, 0) + qty
    return merged


class SinglePackageCreator:

    def __init__(
        self,
        store: PackageStore,
        user_id: Optional[str],
        timeout: Optional[float] = None,
        origin: Optional[str] = None,
        short_code_length: Optional[int] = None,
        short_code_factory: Optional[Callable[[], str]] = None,
    ):
        self.store = store
        self.user_id = user_id
        self.timeout = timeout or settings.STORE_TIMEOUT_S
        self.origin = origin or settings.DEFAULT_ORIGIN
        self.short_code_length = short_code_length or settings.SHORT_CODE_LENGTH
        self.short_code_factory = short_code_factory

    async def create(self, request: SinglePackageRequest) -> CreatedPackage:
        if not request.items:
            raise ValueError("Select at least one item")
        user_id = current_user_id(self.user_id)
        wanted = merge_items(request.items)

        snapshot = await call_store(self.store.load_inventory(), self.timeout)
        resolver = InventoryResolver(snapshot)

        shortages: List[str] = []
        line_items: List[ResolvedLineItem] = []
        for product_id, qty in wanted.items():
            item = resolver.items.get(product_id)
            if item is None:
                shortages.append(f"Unknown: needed {qty}, available 0")
            elif qty > item.stock_on_hand:
                shortages.append(f"{item.name}: needed {qty}, available {item.stock_on_hand}")
            else:
                line_items.append(ResolvedLineItem(product_id=item.id, display_name=item.name, quantity=qty))
        if shortages:
            logger.info(f"Manual package rejected: {'; '.join(shortages)}")
            raise InsufficientStockError(shortages)

        branch_code = request.branch_code or settings.DEFAULT_BRANCH_CODE
        branch = await call_store(self.store.find_destination_branch(branch_code), self.timeout)
        if branch is None:
            raise ConfigurationError("No branches found. Please set up branches in the database.")

        row = normalize_manual(
            beneficiary_name=request.beneficiary_name,
            surname=request.surname,
            company=request.company,
            address=request.address,
            notes=request.notes,
        )
        planner = PackagePlanner(
            destination_branch_id=branch.id,
            origin=self.origin,
            short_code_length=self.short_code_length,
            short_code_factory=self.short_code_factory,
        )
        plan = planner.plan(row, line_items)

        writer = BatchWriter(self.store, user_id, timeout=self.timeout, reason_template=MANUAL_REASON)
        result = await writer.write([plan])
        if result.store_error:
            raise StoreError(result.store_error)
        if not result.created:
            raise StoreError(f"Package {plan.short_code} not confirmed by store")

        _, record = result.created[0]
        logger.info(f"Manual package {record.short_code} created by {user_id} ({len(line_items)} item(s))")
        return CreatedPackage(package=record, line_items=line_items, warnings=list(result.warnings))
