"""
Tests for the read-side reports: valuation, COGS, expiry and low-stock
alerts, aging, monthly purchase/sales and ledger drift.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

from stockledger.models.batch import Batch, WarehouseBatchStock
from stockledger.models.ledger import MovementKind
from stockledger.services import ledger, live_stock, operations, reporting
from stockledger.utils.clock import utcnow


def _recomputed_asset_value(db):
    total = Decimal("0")
    for row in db.query(WarehouseBatchStock).all():
        total += row.quantity * db.get(Batch, row.batch_id).cost_price
    return total


# =============================================================================
# Valuation
# =============================================================================


class TestAssetValue:

    def test_matches_independent_recompute(self, db, admin, make_variant, warehouses, inward):
        w1, w2 = warehouses
        v1, v2 = make_variant("V1"), make_variant("V2")
        inward(v1.id, w1.id, 10, batch_number="A", cost_price="4.25")
        inward(v1.id, w2.id, 3, batch_number="A", cost_price="5.00")
        inward(v2.id, w1.id, 7, batch_number="X", cost_price="19.99")
        operations.record_sale(db, admin, variant_id=v1.id, warehouse_id=w1.id, quantity=4)

        assert reporting.asset_value(db) == _recomputed_asset_value(db)

    def test_empty_store(self, db):
        assert reporting.asset_value(db) == Decimal("0")

    def test_stats(self, db, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 10, cost_price="10.00")
        stats = reporting.inventory_stats(db)
        assert stats.asset_value == Decimal("100.00")
        assert stats.revenue_potential == Decimal("150.00")
        assert stats.total_units == 10


class TestLifecycleScenario:

    def test_inward_transfer_sale_entry(self, db, admin, variant, warehouses, inward):
        w1, w2 = warehouses
        before = reporting.asset_value(db)

        result = inward(variant.id, w1.id, 100, batch_number="B1", cost_price="10")
        assert reporting.asset_value(db) - before == Decimal("1000")

        operations.transfer_stock(
            db, admin, variant_id=variant.id, source_warehouse_id=w1.id, target_warehouse_id=w2.id, quantity=30
        )
        assert live_stock.current_stock(db, variant.id, w1.id) == 70
        assert live_stock.current_stock(db, variant.id, w2.id) == 30
        assert reporting.asset_value(db) == Decimal("1000")

        ledger.append_entry(
            db,
            warehouse_id=w1.id,
            variant_id=variant.id,
            batch_id=result.batch_id,
            kind=MovementKind.SALE,
            quantity_change=-20,
            running_balance=80,
            unit_cost=Decimal("10"),
            performed_by=admin.id,
        )
        db.commit()

        now = utcnow()
        assert reporting.cogs(db, now - timedelta(hours=1), now + timedelta(hours=1)) == Decimal("200")


# =============================================================================
# COGS
# =============================================================================


class TestCogs:

    def test_only_sales_in_range_count(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        result = inward(variant.id, w1.id, 50, cost_price="2.00")
        old = utcnow() - timedelta(days=40)
        ledger.append_entry(
            db, warehouse_id=w1.id, variant_id=variant.id, batch_id=result.batch_id, kind=MovementKind.SALE,
            quantity_change=-5, running_balance=45, unit_cost=Decimal("2.00"), performed_by=admin.id,
            transaction_date=old,
        )
        db.commit()
        operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=3)

        since = utcnow() - timedelta(days=1)
        assert reporting.cogs(db, since, None) == Decimal("6.00")
        assert reporting.cogs(db) == Decimal("16.00")

    def test_falls_back_to_unit_cost(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        result = inward(variant.id, w1.id, 10, cost_price="4.00")
        ledger.append_entry(
            db, warehouse_id=w1.id, variant_id=variant.id, batch_id=result.batch_id, kind=MovementKind.SALE,
            quantity_change=-2, running_balance=8, unit_cost=Decimal("4.00"), total_value=Decimal("0"),
            performed_by=admin.id,
        )
        db.commit()
        assert reporting.cogs(db) == Decimal("8.00")


# =============================================================================
# Alerts
# =============================================================================


class TestExpiringBatches:

    def _batch(self, db, variant, number, days, current):
        today = utcnow().date()
        batch = Batch(
            variant_id=variant.id,
            batch_number=number,
            expiry_date=today + timedelta(days=days),
            cost_price=Decimal("1.00"),
            initial_quantity=10,
            current_quantity=current,
        )
        db.add(batch)
        db.commit()
        return batch

    def test_window_boundaries(self, db, variant):
        self._batch(db, variant, "IN-89", 89, 5)
        self._batch(db, variant, "OUT-91", 91, 5)
        self._batch(db, variant, "EMPTY-30", 30, 0)
        self._batch(db, variant, "EXPIRED", -1, 5)

        numbers = [b.batch_number for b in reporting.expiring_batches(db, 90, today=utcnow().date())]
        assert numbers == ["IN-89"]

    def test_default_window_and_order(self, db, variant):
        self._batch(db, variant, "LATER", 60, 1)
        self._batch(db, variant, "SOON", 5, 1)
        self._batch(db, variant, "TODAY", 0, 1)
        numbers = [b.batch_number for b in reporting.expiring_batches(db)]
        assert numbers == ["TODAY", "SOON", "LATER"]

    def test_window_follows_the_utc_clock(self, db, variant, monkeypatch):
        # Late evening UTC; the local calendar may already be on the next day
        monkeypatch.setattr(reporting, "utcnow", lambda: datetime(2030, 3, 1, 23, 30))
        for number, expiry in (("ENDS-TODAY", date(2030, 3, 1)), ("ENDED", date(2030, 2, 28))):
            db.add(Batch(variant_id=variant.id, batch_number=number, expiry_date=expiry,
                         cost_price=Decimal("1.00"), initial_quantity=1, current_quantity=1))
        db.commit()

        numbers = [b.batch_number for b in reporting.expiring_batches(db, 0)]
        assert numbers == ["ENDS-TODAY"]


class TestLowStock:

    def test_threshold_is_inclusive(self, db, admin, make_variant, warehouses):
        w1, _ = warehouses
        at_threshold = make_variant("AT", min_stock_level=10)
        above = make_variant("ABOVE", min_stock_level=10)
        for v, qty in ((at_threshold, 10), (above, 11)):
            operations.adjust_stock(db, admin, variant_id=v.id, warehouse_id=w1.id, quantity_change=qty, reason="Count")

        skus = {r.variant.sku for r in reporting.low_stock_variants(db)}
        assert "AT" in skus
        assert "ABOVE" not in skus

    def test_variant_without_stock_is_low(self, db, variant):
        rows = reporting.low_stock_variants(db)
        assert [(r.variant.sku, r.current_stock, r.threshold, r.reorder_quantity) for r in rows] == [("V1", 0, 10, 50)]

    def test_stock_is_summed_across_warehouses(self, db, admin, variant, warehouses):
        w1, w2 = warehouses
        for w in (w1, w2):
            operations.adjust_stock(db, admin, variant_id=variant.id, warehouse_id=w.id, quantity_change=6, reason="Count")
        assert reporting.low_stock_variants(db) == []


# =============================================================================
# Aging and monthly summary
# =============================================================================


class TestAging:

    def test_stock_without_recent_movement_is_aged(self, db, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 4)

        assert reporting.aging_stock(db, 90) == []
        rows = reporting.aging_stock(db, 90, now=utcnow() + timedelta(days=120))
        assert len(rows) == 1
        assert rows[0].current_stock == 4
        assert rows[0].value == Decimal("60.00")

    def test_sold_out_variant_is_not_aged(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 2)
        operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=2)
        assert reporting.aging_stock(db, 1, now=utcnow() + timedelta(days=30)) == []


class TestPurchaseSalesSummary:

    def test_groups_by_month(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 100, cost_price="10.00")
        operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=20)

        rows = reporting.purchase_sales_summary(db)
        assert rows == [{"month": utcnow().strftime("%Y-%m"), "purchases": 1000.0, "sales": 300.0}]

    def test_empty(self, db):
        assert reporting.purchase_sales_summary(db) == []


# =============================================================================
# Drift between the three stock views
# =============================================================================


class TestReconciliation:

    def test_in_sync_after_inward_and_sale(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 12)
        operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=5)

        rows = reporting.reconciliation(db)
        assert len(rows) == 1
        assert rows[0].in_sync
        assert (rows[0].batch_stock, rows[0].ledger_stock, rows[0].live_stock) == (7, 7, 7)

    def test_adjustment_shows_as_drift(self, db, admin, variant, warehouses, inward):
        w1, w2 = warehouses
        inward(variant.id, w1.id, 12)
        operations.adjust_stock(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity_change=-2, reason="Damaged")
        operations.transfer_stock(
            db, admin, variant_id=variant.id, source_warehouse_id=w1.id, target_warehouse_id=w2.id, quantity=3
        )

        drifting = {(r.warehouse_id, r.drift) for r in reporting.reconciliation(db, only_drift=True)}
        assert drifting == {(w1.id, -5), (w2.id, 3)}


# =============================================================================
# Export
# =============================================================================


class TestLedgerExport:

    def test_csv_has_one_row_per_entry(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 5, batch_number="LOT-7")
        operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=1)

        frame = reporting.ledger_frame(ledger.list_entries(db))
        assert list(frame.columns) == reporting.LEDGER_COLUMNS
        assert list(frame["transaction_type"]) == ["SALE", "PURCHASE"]
        assert set(frame["batch_number"]) == {"LOT-7"}

        csv_text = reporting.ledger_csv(ledger.list_entries(db))
        assert csv_text.splitlines()[0] == ",".join(reporting.LEDGER_COLUMNS)

    def test_empty_export_keeps_header(self):
        assert reporting.ledger_csv([]).strip() == ",".join(reporting.LEDGER_COLUMNS)
