# parcel_hub/routers/packages.py
"""
Packages Router - bulk import, manual creation, tracking lookup, inventory.
"""
from __future__ import annotations
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, UploadFile

from parcel_hub.database import get_session_factory
from parcel_hub.db_models import PackageStatus, Symbology
from parcel_hub.errors import (
    ConfigurationError, FormatError, InsufficientStockError, StoreError, Unauthenticated,
)
from parcel_hub.models import (
    ContentsItemOut, ImportReportOut, InventoryItemOut, LineItemOut,
    PackageContentsOut, PackageCreatedOut, PackageCreateIn, PackageOut, PackageTrackingOut,
)
from parcel_hub.services import (
    PackageImporter, PackageStore, SinglePackageCreator, SinglePackageRequest, SqlPackageStore,
)
from parcel_hub.services.identity import current_user_id
from parcel_hub.services.package_planner import parse_contents_note
from parcel_hub.services.store import call_store
from parcel_hub.services.types import PackageRecord
from parcel_hub.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Packages"])

# ============================================================================
# Dependencies
# ============================================================================

async def get_store() -> PackageStore:
    return SqlPackageStore(await get_session_factory())


def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    try:
        return current_user_id(x_user_id)
    except Unauthenticated as e:
        raise HTTPException(401, detail=str(e))


# ============================================================================
# Helpers
# ============================================================================

def _package_out(rec: PackageRecord) -> PackageOut:
    return PackageOut(
        id=rec.id,
        short_code=rec.short_code,
        status=PackageStatus(rec.status).value,
        origin=rec.origin,
        current_location=rec.current_location,
        destination_branch_id=rec.destination_branch_id,
        contents_note=rec.contents_note,
        notes=rec.notes or "",
        symbology=Symbology(rec.symbology).value,
        encoded_payload=rec.encoded_payload,
        created_by=rec.created_by,
        created_at=rec.created_at,
    )


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/packages/import", response_model=ImportReportOut)
async def import_packages(
    file: UploadFile = File(...),
    user_id: str = Depends(get_user_id),
    store: PackageStore = Depends(get_store),
):
    """
    Bulk-create packages from an Excel/CSV upload.

    Header row needs a Products column; Beneficiary, Company, Address and
    Notes columns are optional. Row and batch failures are reported, not raised.
    """
    data = await file.read()
    importer = PackageImporter(store, user_id)
    try:
        report = await importer.import_file(data, file.filename)
    except (ConfigurationError, FormatError) as e:
        raise HTTPException(400, detail=str(e))
    except StoreError as e:
        raise HTTPException(502, detail=f"Store error: {e}")
    return ImportReportOut(**report.to_dict())


@router.post("/packages", response_model=PackageCreatedOut, status_code=201)
async def create_package(
    payload: PackageCreateIn,
    user_id: str = Depends(get_user_id),
    store: PackageStore = Depends(get_store),
):
    request = SinglePackageRequest(
        items=[(i.product_id, i.quantity) for i in payload.items],
        beneficiary_name=payload.beneficiary_name or "",
        surname=payload.surname or "",
        company=payload.company or "",
        address=payload.address or "",
        notes=payload.notes or "",
        branch_code=payload.branch_code,
    )
    creator = SinglePackageCreator(store, user_id)
    try:
        created = await creator.create(request)
    except ValueError as e:
        raise HTTPException(400, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(400, detail=str(e))
    except InsufficientStockError as e:
        raise HTTPException(409, detail={"message": "Insufficient stock", "items": e.shortages})
    except StoreError as e:
        raise HTTPException(502, detail=f"Store error: {e}")

    return PackageCreatedOut(
        package=_package_out(created.package),
        items=[
            LineItemOut(product_id=li.product_id, name=li.display_name, quantity=li.quantity)
            for li in created.line_items
        ],
        warnings=created.warnings,
    )


@router.get("/packages/{short_code}", response_model=PackageTrackingOut)
async def track_package(short_code: str, store: PackageStore = Depends(get_store)):
    try:
        rec = await call_store(store.get_package(short_code), settings.STORE_TIMEOUT_S)
    except StoreError as e:
        raise HTTPException(502, detail=f"Store error: {e}")
    if rec is None:
        raise HTTPException(404, detail="Package not found")

    parsed = parse_contents_note(rec.contents_note)
    contents = PackageContentsOut(
        recipient=parsed["recipient"],
        company=parsed["company"],
        address=parsed["address"],
        items=[ContentsItemOut(**i) for i in parsed["items"]],
    )
    return PackageTrackingOut(package=_package_out(rec), contents=contents)


@router.get("/inventory", response_model=List[InventoryItemOut])
async def list_inventory(store: PackageStore = Depends(get_store)):
    try:
        items = await call_store(store.load_inventory(), settings.STORE_TIMEOUT_S)
    except StoreError as e:
        raise HTTPException(502, detail=f"Store error: {e}")
    return [
        InventoryItemOut(
            id=i.id,
            sku=i.sku,
            name=i.name,
            unit=i.unit,
            stock_on_hand=i.stock_on_hand,
            min_threshold=i.min_threshold,
            low_stock=i.low_stock,
        )
        for i in items
    ]
