# parcel_hub/services/bulk_import.py
"""
Package Importer - spreadsheet grid -> packages, stock deductions, ledger.

Rows are processed in fixed-size batches, strictly one after another:
normalize -> aggregate SKUs -> resolve against the snapshot -> plan ->
BatchWriter. Row and batch failures go into the ReconciliationReport; only
ConfigurationError, Unauthenticated and FormatError abort the import.
"""
from __future__ import annotations
import inspect
import logging
from typing import Any, Callable, List, Optional, Sequence

from parcel_hub.adapters import spreadsheet
from parcel_hub.errors import ConfigurationError, RowError
from parcel_hub.services.batch_writer import BULK_REASON, BatchWriter, BatchResult
from parcel_hub.services.identity import current_user_id
from parcel_hub.services.inventory_resolver import InventoryResolver
from parcel_hub.services.normalizer import HeaderMap, is_blank_row, normalize_row, resolve_headers
from parcel_hub.services.package_planner import PackagePlanner
from parcel_hub.services.report import ReconciliationReport
from parcel_hub.services.sku_aggregator import aggregate_skus
from parcel_hub.services.store import PackageStore, call_store
from parcel_hub.services.types import PackagePlan
from parcel_hub.settings import settings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], Any]


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


class PackageImporter:
    """Bulk package creation from a decoded spreadsheet."""

    def __init__(
        self,
        store: PackageStore,
        user_id: Optional[str],
        batch_size: Optional[int] = None,
        timeout: Optional[float] = None,
        max_errors: Optional[int] = None,
        origin: Optional[str] = None,
        branch_code: Optional[str] = None,
        short_code_length: Optional[int] = None,
        short_code_factory: Optional[Callable[[], str]] = None,
    ):
        self.store = store
        self.user_id = user_id
        self.batch_size = batch_size or settings.IMPORT_BATCH_SIZE
        self.timeout = timeout or settings.STORE_TIMEOUT_S
        self.max_errors = settings.MAX_REPORTED_ERRORS if max_errors is None else max_errors
        self.origin = origin or settings.DEFAULT_ORIGIN
        self.branch_code = branch_code if branch_code is not None else settings.DEFAULT_BRANCH_CODE
        self.short_code_length = short_code_length or settings.SHORT_CODE_LENGTH
        self.short_code_factory = short_code_factory

    async def import_file(
        self,
        data: bytes,
        filename: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[Callable[[], Any]] = None,
    ) -> ReconciliationReport:
        grid = spreadsheet.decode(data, filename)
        return await self.import_grid(grid, on_progress=on_progress, should_stop=should_stop)

    async def import_grid(
        self,
        grid: Sequence[Sequence],
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[Callable[[], Any]] = None,
    ) -> ReconciliationReport:
        if not grid:
            raise ConfigurationError("Spreadsheet must have a header row")
        header_map = resolve_headers(grid[0])
        user_id = current_user_id(self.user_id)

        data_rows = [row for row in grid[1:] if not is_blank_row(row)]
        report = ReconciliationReport(total_rows=len(data_rows), max_errors=self.max_errors)
        if not data_rows:
            logger.info("Import: no data rows")
            return report

        # Snapshot + destination, once per run
        snapshot = await call_store(self.store.load_inventory(), self.timeout)
        branch = await call_store(self.store.find_destination_branch(self.branch_code), self.timeout)
        if branch is None:
            raise ConfigurationError("No branches found. Please set up branches in the database.")

        resolver = InventoryResolver(snapshot)
        planner = PackagePlanner(
            destination_branch_id=branch.id,
            origin=self.origin,
            short_code_length=self.short_code_length,
            short_code_factory=self.short_code_factory,
        )
        writer = BatchWriter(self.store, user_id, timeout=self.timeout, reason_template=BULK_REASON)

        logger.info(
            f"Import started: {report.total_rows} row(s), batch size {self.batch_size}, "
            f"{len(resolver.items)} active item(s), destination {branch.code}"
        )

        total = report.total_rows
        for batch_no, start in enumerate(range(0, total, self.batch_size), start=1):
            if should_stop is not None and await _maybe_await(should_stop()):
                report.cancelled = True
                logger.info(f"Import cancelled before batch {batch_no} ({report.processed_rows}/{total} rows)")
                break

            chunk = data_rows[start:start + self.batch_size]
            plans = self._plan_chunk(chunk, start, header_map, resolver, planner, report)
            result = await writer.write(plans, batch_no)
            self._apply(result, resolver, report)

            processed, _ = report.advance(start + len(chunk))
            if on_progress is not None:
                await _maybe_await(on_progress(processed, total))

        logger.info(
            f"Import finished: {report.success_count} created, {report.error_count} failed, "
            f"{report.skipped_count} skipped, {report.warning_count} warning(s)"
            + (" (cancelled)" if report.cancelled else "")
        )
        return report

    def _plan_chunk(
        self,
        chunk: Sequence[Sequence],
        start: int,
        header_map: HeaderMap,
        resolver: InventoryResolver,
        planner: PackagePlanner,
        report: ReconciliationReport,
    ) -> List[PackagePlan]:
        plans: List[PackagePlan] = []
        for offset, raw in enumerate(chunk):
            row_number = start + offset + 2  # header is line 1
            row = normalize_row(raw, header_map, row_number)
            if row is None:
                report.add_skipped()
                continue
            try:
                items = resolver.resolve(aggregate_skus(row.raw_sku_tokens), row_number)
                resolver.check_allocation(items, row_number)
            except RowError as e:
                report.add_error(str(e))
                continue
            resolver.allocate(items)
            plans.append(planner.plan(row, items))
        return plans

    @staticmethod
    def _apply(result: BatchResult, resolver: InventoryResolver, report: ReconciliationReport) -> None:
        if result.batch_error:
            report.add_error(result.batch_error, count=len(result.failed))
        else:
            for msg in result.errors:
                report.add_error(msg)
        for plan in result.failed:
            resolver.release(plan.line_items)
        for plan, rec in result.created:
            report.add_success(rec.short_code)
            # stock that was never deducted goes back to the snapshot guard
            if not result.ledger_written:
                resolver.release(plan.line_items)
            else:
                resolver.release([
                    li for li in plan.line_items
                    if (plan.temp_id, li.product_id) in result.rejected_lines
                ])
        for msg in result.warnings:
            report.add_warning(msg)
