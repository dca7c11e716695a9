# parcel_hub/services/__init__.py
"""
Package pipeline services for Parcel Hub.
"""
from parcel_hub.services.bulk_import import PackageImporter
from parcel_hub.services.report import ReconciliationReport
from parcel_hub.services.single_package import SinglePackageCreator, SinglePackageRequest
from parcel_hub.services.store import PackageStore, SqlPackageStore

__all__ = [
    "PackageImporter",
    "ReconciliationReport",
    "SinglePackageCreator",
    "SinglePackageRequest",
    "PackageStore",
    "SqlPackageStore",
]
