"""
PackageImporter end-to-end over the in-memory store.
"""
import pytest

from parcel_hub.errors import ConfigurationError, FormatError, Unauthenticated
from parcel_hub.services.bulk_import import PackageImporter

from conftest import FakeStore, make_item, sequential_codes

HEADER = ["Beneficiary", "Company", "Address", "Products", "Notes"]


def _importer(store, **kw):
    kw.setdefault("short_code_factory", sequential_codes())
    kw.setdefault("batch_size", 50)
    kw.setdefault("timeout", 5)
    kw.setdefault("max_errors", 10)
    kw.setdefault("branch_code", "")
    return PackageImporter(store, "user-1", **kw)


async def test_scenario_a_resolves_and_deducts(fake_store, a1, b2):
    grid = [HEADER, ["Jon Doe", "", "", "A1;A1;B2", ""]]
    report = await _importer(fake_store).import_grid(grid)

    assert (report.success_count, report.error_count, report.skipped_count) == (1, 0, 0)
    assert fake_store.stock("A1") == 8
    assert fake_store.stock("B2") == 4
    pkg = fake_store.packages[0]
    assert pkg.contents_note == "To: Jon Doe\nItems: Widget x2, Gadget x1"
    assert pkg.created_by == "user-1"
    assert pkg.destination_branch_id == fake_store.branches[0].id
    assert len(fake_store.movements) == 2
    assert {m.ref_package_id for m in fake_store.movements} == {pkg.id}
    assert report.created_codes == [pkg.short_code]


async def test_scenario_b_empty_products_skipped(fake_store):
    grid = [HEADER, ["Jon Doe", "ACME", "Main St", "", "note"]]
    report = await _importer(fake_store).import_grid(grid)

    assert report.success_count == 0
    assert report.error_count == 0
    assert report.skipped_count == 1
    assert "insert_packages" not in fake_store.calls


async def test_scenario_c_unknown_sku_is_row_error(fake_store):
    grid = [HEADER, ["Jon Doe", "", "", "ZZZ", ""]]
    report = await _importer(fake_store).import_grid(grid)

    assert report.error_count == 1
    assert report.errors == ["Row 2: No valid products found"]
    assert fake_store.packages == []


async def test_scenario_e_progress_is_monotonic_and_completes():
    item = make_item("A1", 1000)
    store = FakeStore([item])
    grid = [HEADER] + [[f"R {i}", "", "", "A1", ""] for i in range(120)]
    seen = []

    report = await _importer(store).import_grid(grid, on_progress=lambda done, total: seen.append((done, total)))

    assert seen == [(50, 120), (100, 120), (120, 120)]
    assert report.success_count == 120
    assert report.completed
    assert store.calls.count("insert_packages") == 3
    assert store.calls.count("load_inventory") == 1


async def test_async_progress_callback_is_awaited(fake_store):
    seen = []

    async def on_progress(done, total):
        seen.append(done)

    await _importer(fake_store).import_grid([HEADER, ["", "", "", "A1", ""]], on_progress=on_progress)
    assert seen == [1]


async def test_missing_products_column_aborts_before_store_access(fake_store):
    with pytest.raises(ConfigurationError):
        await _importer(fake_store).import_grid([["Beneficiary", "Company"], ["Jon", "ACME"]])
    assert fake_store.calls == []


async def test_missing_user_aborts(fake_store):
    importer = PackageImporter(fake_store, None, short_code_factory=sequential_codes())
    with pytest.raises(Unauthenticated):
        await importer.import_grid([HEADER, ["", "", "", "A1", ""]])
    assert fake_store.calls == []


async def test_no_branch_is_configuration_error(a1):
    store = FakeStore([a1], branches=[])
    with pytest.raises(ConfigurationError):
        await _importer(store).import_grid([HEADER, ["", "", "", "A1", ""]])


async def test_blank_rows_are_not_counted_and_row_numbers_follow_data_rows(fake_store):
    grid = [
        HEADER,
        ["", "", "", "", ""],
        ["A", "", "", "nope", ""],
        ["   ", None, "", "", ""],
        ["B", "", "", "nope", ""],
    ]
    report = await _importer(fake_store).import_grid(grid)
    assert report.total_rows == 2
    assert report.errors == ["Row 2: No valid products found", "Row 3: No valid products found"]


async def test_allocation_guard_across_batches(fake_store):
    # B2 has 5 on hand: rows 2-6 take one each, row 7 exceeds the snapshot
    grid = [HEADER] + [["", "", "", "B2", ""] for _ in range(6)]
    report = await _importer(fake_store, batch_size=2).import_grid(grid)

    assert report.success_count == 5
    assert report.errors == ["Row 7: Insufficient stock - Gadget: need 6, have 5"]
    assert fake_store.stock("B2") == 0


async def test_rolled_back_ledger_releases_allocation(fake_store):
    # first batch's stock+ledger write rolls back, so B2 still has 5 on hand
    fake_store.fail_movement_calls = {1}
    grid = [HEADER] + [["", "", "", "B2;B2", ""] for _ in range(3)]
    report = await _importer(fake_store, batch_size=2).import_grid(grid)

    assert report.success_count == 3
    assert report.error_count == 0
    assert report.warning_count == 2
    assert fake_store.stock("B2") == 3
    assert len(fake_store.movements) == 1


async def test_rejected_line_releases_allocation():
    x = make_item("X", 4)
    store = FakeStore([x])
    original = store.load_inventory

    async def load_inventory():
        snapshot = await original()
        # stock taken elsewhere right after the snapshot
        store.items[x.id].stock_on_hand = 1
        return snapshot

    store.load_inventory = load_inventory
    grid = [HEADER] + [["", "", "", "X;X;X", ""] for _ in range(2)]
    report = await _importer(store, batch_size=1).import_grid(grid)

    assert report.success_count == 2
    assert report.error_count == 0
    assert report.warning_count == 2
    assert store.stock("X") == 1
    assert store.movements == []


async def test_failed_batch_counts_every_row_and_continues():
    store = FakeStore([make_item("A1", 100)])
    store.fail_insert_calls = {2}
    grid = [HEADER] + [["", "", "", "A1", ""] for _ in range(120)]
    report = await _importer(store).import_grid(grid)

    assert report.success_count == 70
    assert report.error_count == 50
    assert report.errors == ["Batch 2: duplicate key value violates unique constraint"]
    assert store.stock("A1") == 30
    assert len(store.movements) == 70


async def test_batch_timeout_fails_only_that_batch():
    store = FakeStore([make_item("A1", 100)])

    calls = {"n": 0}
    original = store.insert_packages

    async def insert_packages(rows):
        calls["n"] += 1
        if calls["n"] == 1:
            store.insert_delay = 0.5
        else:
            store.insert_delay = 0
        return await original(rows)

    store.insert_packages = insert_packages
    grid = [HEADER] + [["", "", "", "A1", ""] for _ in range(4)]
    report = await _importer(store, batch_size=2, timeout=0.05).import_grid(grid)

    assert report.error_count == 2
    assert report.success_count == 2
    assert report.errors[0].startswith("Batch 1: Store call timed out")
    assert store.stock("A1") == 98


async def test_error_list_is_capped_but_counts_are_exact(fake_store):
    grid = [HEADER] + [["", "", "", "nope", ""] for _ in range(25)]
    report = await _importer(fake_store, max_errors=10).import_grid(grid)

    assert report.error_count == 25
    assert len(report.errors) == 10
    assert report.errors[0] == "Row 2: No valid products found"


async def test_cancellation_keeps_committed_batches():
    store = FakeStore([make_item("A1", 1000)])
    grid = [HEADER] + [["", "", "", "A1", ""] for _ in range(120)]
    progress = []

    report = await _importer(store).import_grid(
        grid,
        on_progress=lambda done, total: progress.append(done),
        should_stop=lambda: len(progress) >= 1,
    )

    assert report.cancelled
    assert not report.completed
    assert report.success_count == 50
    assert report.processed_rows == 50
    assert progress == [50]
    assert store.stock("A1") == 950


async def test_header_only_grid_returns_empty_report(fake_store):
    report = await _importer(fake_store).import_grid([HEADER])
    assert report.total_rows == 0
    assert fake_store.calls == []


async def test_import_file_csv(fake_store):
    data = "Beneficiary,Company,Products\nJon Doe,ACME,A1;B2\n".encode("utf-8")
    report = await _importer(fake_store).import_file(data, "upload.csv")
    assert report.success_count == 1
    assert fake_store.packages[0].contents_note == "To: Jon Doe | ACME\nItems: Widget x1, Gadget x1"


async def test_import_file_empty_is_format_error(fake_store):
    with pytest.raises(FormatError):
        await _importer(fake_store).import_file(b"", "upload.csv")
