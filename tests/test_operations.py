"""
Tests for the stock operations: inward, adjust, transfer and sale.

Each operation runs as one unit of work, so every failure case also checks
that nothing was left behind.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal

import pytest

from stockledger.errors import InsufficientStock, NotAuthenticated, NotFound, ValidationError
from stockledger.models.accounting import AccountingEntry
from stockledger.models.batch import Batch, WarehouseBatchStock
from stockledger.models.ledger import LedgerEntry, MovementKind
from stockledger.models.stock import LiveStockEntry
from stockledger.models.warehouse import Warehouse
from stockledger.services import batch_stock, ledger, live_stock, operations


# =============================================================================
# Inward
# =============================================================================


class TestInwardStock:

    def test_creates_batch_stock_and_both_logs(self, db, variant, warehouses, inward):
        w1, _ = warehouses
        result = inward(variant.id, w1.id, 100)

        batch = db.get(Batch, result.batch_id)
        assert batch.batch_number == "B1"
        assert batch.initial_quantity == 100
        assert batch.current_quantity == 100
        assert result.warehouse_quantity == 100
        assert batch_stock.get_quantity(db, w1.id, variant.id, batch.id) == 100

        entry = db.get(LedgerEntry, result.ledger_entry_id)
        assert entry.transaction_type == MovementKind.PURCHASE
        assert entry.running_balance == 100
        assert entry.total_value == Decimal("1000.00")
        assert entry.reason == "Stock Inward"

        live = db.get(LiveStockEntry, result.live_stock_entry_id)
        assert live.transaction_type == "purchase"
        assert live.reason == "Inward Batch: B1"
        assert live.reference_id == str(batch.id)
        assert live_stock.current_stock(db, variant.id, w1.id) == 100

    def test_repeated_batch_number_merges(self, db, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 30, cost_price="10.00")
        result = inward(variant.id, w1.id, 20, cost_price="12.50", expiry_days=200)

        batch = db.get(Batch, result.batch_id)
        assert db.query(Batch).count() == 1
        assert batch.initial_quantity == 50
        assert batch.current_quantity == 50
        # Last write wins for cost and expiry
        assert batch.cost_price == Decimal("12.50")
        assert batch.expiry_date == date.today() + timedelta(days=200)

        history = ledger.balance_history(db, warehouse_id=w1.id, variant_id=variant.id, batch_id=batch.id)
        assert [e.running_balance for e in history] == [30, 50]
        assert ledger.verify_running_balances(history)

    def test_sum_of_inwards_matches_batch_and_warehouse_stock(self, db, variant, warehouses, inward):
        w1, _ = warehouses
        quantities = [5, 17, 1, 40]
        for q in quantities:
            result = inward(variant.id, w1.id, q)

        batch = db.get(Batch, result.batch_id)
        assert batch.current_quantity == sum(quantities)
        assert batch_stock.get_quantity(db, w1.id, variant.id, batch.id) == sum(quantities)

    def test_same_batch_into_two_warehouses(self, db, variant, warehouses, inward):
        w1, w2 = warehouses
        inward(variant.id, w1.id, 10)
        result = inward(variant.id, w2.id, 5)

        batch = db.get(Batch, result.batch_id)
        assert batch.current_quantity == 15
        assert result.warehouse_quantity == 5
        assert batch_stock.get_quantity(db, w1.id, variant.id, batch.id) == 10

    def test_updates_tax_fields(self, db, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 1, hsn_code="3004", tax_rate=Decimal("12"))
        db.refresh(variant)
        assert variant.hsn_code == "3004"
        assert variant.tax_rate == Decimal("12.00")

    def test_posts_inventory_asset_debit(self, db, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 4, cost_price="2.50")
        posting = db.query(AccountingEntry).one()
        assert posting.account_name == "Inventory Asset"
        assert posting.debit_amount == Decimal("10.00")
        assert posting.credit_amount == Decimal("0")

    @pytest.mark.parametrize("quantity", [0, -3, True, 2.5])
    def test_rejects_invalid_quantity(self, db, variant, warehouses, inward, quantity):
        w1, _ = warehouses
        with pytest.raises(ValidationError) as exc:
            inward(variant.id, w1.id, quantity)
        assert exc.value.step == "validate"
        assert db.query(Batch).count() == 0

    def test_rejects_negative_cost(self, db, variant, warehouses, inward):
        w1, _ = warehouses
        with pytest.raises(ValidationError):
            inward(variant.id, w1.id, 1, cost_price="-1")

    def test_rejects_non_numeric_tax_rate(self, db, variant, warehouses, inward):
        w1, _ = warehouses
        with pytest.raises(ValidationError, match="tax rate") as exc:
            inward(variant.id, w1.id, 1, tax_rate="abc")
        assert exc.value.step == "validate"
        assert db.query(Batch).count() == 0

    def test_rejects_missing_expiry_and_batch_number(self, db, admin, variant, warehouses):
        w1, _ = warehouses
        base = dict(variant_id=variant.id, warehouse_id=w1.id, cost_price=Decimal("1"), quantity=1)
        with pytest.raises(ValidationError, match="Expiry"):
            operations.inward_stock(db, admin, batch_number="B1", expiry_date=None, **base)
        with pytest.raises(ValidationError, match="Batch number"):
            operations.inward_stock(db, admin, batch_number="  ", expiry_date=date.today(), **base)

    def test_requires_actor(self, db, variant, warehouses):
        w1, _ = warehouses
        with pytest.raises(NotAuthenticated):
            operations.inward_stock(
                db, None, variant_id=variant.id, warehouse_id=w1.id, batch_number="B1",
                expiry_date=date.today(), cost_price=Decimal("1"), quantity=1,
            )

    def test_unknown_variant(self, db, warehouses, inward):
        w1, _ = warehouses
        with pytest.raises(NotFound) as exc:
            inward(999, w1.id, 1)
        assert exc.value.step == "validate"

    def test_inactive_warehouse_cannot_receive(self, db, variant, inward):
        closed = Warehouse(name="Closed", is_active=False)
        db.add(closed)
        db.commit()
        with pytest.raises(ValidationError, match="not active"):
            inward(variant.id, closed.id, 1)

    def test_failure_in_late_step_rolls_back_everything(self, db, variant, warehouses, inward, monkeypatch):
        w1, _ = warehouses

        def _boom(*args, **kwargs):
            raise RuntimeError("live stock unavailable")

        monkeypatch.setattr(live_stock, "append_entry", _boom)
        with pytest.raises(RuntimeError):
            inward(variant.id, w1.id, 10)

        assert db.query(Batch).count() == 0
        assert db.query(WarehouseBatchStock).count() == 0
        assert db.query(LedgerEntry).count() == 0
        assert db.query(AccountingEntry).count() == 0


# =============================================================================
# Adjust
# =============================================================================


class TestAdjustStock:

    def test_adjusts_only_live_stock(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 20)
        result = operations.adjust_stock(
            db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity_change=-5, reason="Broken", type="damage"
        )
        assert result.stock_after == 15
        assert live_stock.current_stock(db, variant.id, w1.id) == 15
        # Batch-level figures are untouched
        assert db.query(Batch).one().current_quantity == 20
        assert db.query(LedgerEntry).count() == 1
        assert db.get(LiveStockEntry, result.entry_id).transaction_type == "damage"

    def test_negative_beyond_stock_is_rejected(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 3)
        with pytest.raises(InsufficientStock) as exc:
            operations.adjust_stock(
                db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity_change=-4, reason="Count"
            )
        assert exc.value.step == "check_stock"
        assert exc.value.available == 3
        assert live_stock.current_stock(db, variant.id, w1.id) == 3

    def test_positive_adjustment_without_prior_stock(self, db, admin, variant, warehouses):
        w1, _ = warehouses
        result = operations.adjust_stock(
            db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity_change=7, reason="Found", type="return"
        )
        assert result.stock_after == 7

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({"quantity_change": 0, "reason": "x"}, "zero"),
            ({"quantity_change": 1, "reason": "  "}, "Reason"),
            ({"quantity_change": 1, "reason": "x", "type": "theft"}, "Unknown adjustment type"),
        ],
    )
    def test_validation(self, db, admin, variant, warehouses, kwargs, message):
        w1, _ = warehouses
        with pytest.raises(ValidationError, match=message):
            operations.adjust_stock(db, admin, variant_id=variant.id, warehouse_id=w1.id, **kwargs)

    def test_idempotency_key_replays_result(self, db, admin, variant, warehouses):
        w1, _ = warehouses
        args = dict(variant_id=variant.id, warehouse_id=w1.id, quantity_change=5, reason="Recount", idempotency_key="adj-1")
        first = operations.adjust_stock(db, admin, **args)
        second = operations.adjust_stock(db, admin, **args)

        assert not first.replayed
        assert second.replayed
        assert second.entry_id == first.entry_id
        assert live_stock.current_stock(db, variant.id, w1.id) == 5

    def test_idempotency_key_cannot_be_reused_across_operations(self, db, admin, variant, warehouses):
        w1, w2 = warehouses
        operations.adjust_stock(
            db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity_change=5, reason="Recount",
            idempotency_key="key-1",
        )
        with pytest.raises(ValidationError) as exc:
            operations.transfer_stock(
                db, admin, variant_id=variant.id, source_warehouse_id=w1.id, target_warehouse_id=w2.id,
                quantity=1, idempotency_key="key-1",
            )
        assert exc.value.step == "idempotency"

    def test_key_stored_after_the_replay_check_is_a_validation_error(self, db, admin, variant, warehouses, monkeypatch):
        # Another writer stores the same key between our lookup and our insert
        w1, _ = warehouses
        args = dict(variant_id=variant.id, warehouse_id=w1.id, quantity_change=5, reason="Recount", idempotency_key="adj-race")
        operations.adjust_stock(db, admin, **args)
        monkeypatch.setattr(operations, "_replay", lambda db, key, operation: None)

        with pytest.raises(ValidationError) as exc:
            operations.adjust_stock(db, admin, **args)
        assert exc.value.step == "idempotency"
        assert live_stock.current_stock(db, variant.id, w1.id) == 5
        assert db.query(LiveStockEntry).count() == 1

    def test_replay_is_not_logged_as_a_commit(self, db, admin, variant, warehouses, caplog):
        w1, _ = warehouses
        args = dict(variant_id=variant.id, warehouse_id=w1.id, quantity_change=2, reason="Recount", idempotency_key="adj-log")
        with caplog.at_level(logging.INFO, logger="stockledger.services.operations"):
            operations.adjust_stock(db, admin, **args)
            operations.adjust_stock(db, admin, **args)

        messages = [r.getMessage() for r in caplog.records if r.name == "stockledger.services.operations"]
        assert messages == ["adjust committed", "adjust replayed for idempotency key adj-log"]


# =============================================================================
# Transfer
# =============================================================================


class TestTransferStock:

    def test_round_trip_restores_stock(self, db, admin, variant, warehouses, inward):
        w1, w2 = warehouses
        inward(variant.id, w1.id, 50)
        inward(variant.id, w2.id, 8, batch_number="B2")

        operations.transfer_stock(db, admin, variant_id=variant.id, source_warehouse_id=w1.id, target_warehouse_id=w2.id, quantity=12)
        assert live_stock.current_stock(db, variant.id, w1.id) == 38
        assert live_stock.current_stock(db, variant.id, w2.id) == 20

        operations.transfer_stock(db, admin, variant_id=variant.id, source_warehouse_id=w2.id, target_warehouse_id=w1.id, quantity=12)
        assert live_stock.current_stock(db, variant.id, w1.id) == 50
        assert live_stock.current_stock(db, variant.id, w2.id) == 8

    def test_writes_paired_entries(self, db, admin, variant, warehouses, inward):
        w1, w2 = warehouses
        inward(variant.id, w1.id, 10)
        result = operations.transfer_stock(
            db, admin, variant_id=variant.id, source_warehouse_id=w1.id, target_warehouse_id=w2.id,
            quantity=4, reason="Rebalance",
        )
        out_entry = db.get(LiveStockEntry, result.out_entry_id)
        in_entry = db.get(LiveStockEntry, result.in_entry_id)

        assert (out_entry.transaction_type, out_entry.quantity_change) == ("transfer_out", -4)
        assert (in_entry.transaction_type, in_entry.quantity_change) == ("transfer_in", 4)
        assert out_entry.reason == "Transfer to W2 - Rebalance"
        assert in_entry.reason == "Transfer from W1 - Rebalance"
        assert in_entry.reference_id == str(out_entry.id)
        assert (result.source_stock, result.target_stock) == (6, 4)

    def test_insufficient_source_stock(self, db, admin, variant, warehouses, inward):
        w1, w2 = warehouses
        inward(variant.id, w1.id, 2)
        with pytest.raises(InsufficientStock):
            operations.transfer_stock(db, admin, variant_id=variant.id, source_warehouse_id=w1.id, target_warehouse_id=w2.id, quantity=3)
        assert db.query(LiveStockEntry).count() == 1

    def test_same_warehouse_is_rejected(self, db, admin, variant, warehouses):
        w1, _ = warehouses
        with pytest.raises(ValidationError, match="differ"):
            operations.transfer_stock(db, admin, variant_id=variant.id, source_warehouse_id=w1.id, target_warehouse_id=w1.id, quantity=1)

    def test_inactive_target_is_rejected(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        closed = Warehouse(name="Closed", is_active=False)
        db.add(closed)
        db.commit()
        inward(variant.id, w1.id, 5)
        with pytest.raises(ValidationError):
            operations.transfer_stock(db, admin, variant_id=variant.id, source_warehouse_id=w1.id, target_warehouse_id=closed.id, quantity=1)


# =============================================================================
# Sale
# =============================================================================


class TestRecordSale:

    def test_fefo_draws_earliest_expiry_first(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        late = inward(variant.id, w1.id, 50, batch_number="LATE", cost_price="12.00", expiry_days=300)
        early = inward(variant.id, w1.id, 20, batch_number="EARLY", cost_price="10.00", expiry_days=30)

        result = operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=30)

        assert result.allocations == [
            {"batch_id": early.batch_id, "quantity": 20},
            {"batch_id": late.batch_id, "quantity": 10},
        ]
        assert result.cost_value == Decimal("320.00")
        assert result.stock_after == 40
        assert db.get(Batch, early.batch_id).current_quantity == 0
        assert db.get(Batch, late.batch_id).current_quantity == 40

        sales = db.query(LedgerEntry).filter(LedgerEntry.transaction_type == MovementKind.SALE).all()
        assert sorted(e.quantity_change for e in sales) == [-20, -10]
        assert sum(e.total_value for e in sales) == Decimal("-320.00")
        assert live_stock.current_stock(db, variant.id, w1.id) == 40

    def test_lifo_draws_newest_lot_first(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 10, batch_number="OLD", expiry_days=10)
        newest = inward(variant.id, w1.id, 10, batch_number="NEW", expiry_days=400)

        result = operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=5, strategy="lifo")
        assert result.allocations == [{"batch_id": newest.batch_id, "quantity": 5}]

    def test_posts_cogs_and_credits_inventory(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 10, cost_price="3.00")
        operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=4, reference_id="SO-1")

        sale_postings = db.query(AccountingEntry).filter(AccountingEntry.ledger_type == "SALE").all()
        by_account = {p.account_name: p for p in sale_postings}
        assert by_account["Cost of Goods Sold"].debit_amount == Decimal("12.00")
        assert by_account["Inventory Asset"].credit_amount == Decimal("12.00")
        assert all(p.reference_id == "SO-1" for p in sale_postings)

    def test_more_than_available_is_rejected(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 5)
        with pytest.raises(InsufficientStock) as exc:
            operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=6)
        assert exc.value.step == "check_stock"
        assert db.query(Batch).one().current_quantity == 5

    def test_live_stock_without_batches_cannot_be_allocated(self, db, admin, variant, warehouses):
        w1, _ = warehouses
        operations.adjust_stock(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity_change=10, reason="Found")
        with pytest.raises(InsufficientStock) as exc:
            operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=10)
        assert exc.value.step == "allocate"
        assert live_stock.current_stock(db, variant.id, w1.id) == 10

    def test_unknown_strategy(self, db, admin, variant, warehouses):
        w1, _ = warehouses
        with pytest.raises(ValidationError, match="strategy"):
            operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=1, strategy="RANDOM")

    def test_idempotent_replay(self, db, admin, variant, warehouses, inward):
        w1, _ = warehouses
        inward(variant.id, w1.id, 10)
        first = operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=3, idempotency_key="so-9")
        second = operations.record_sale(db, admin, variant_id=variant.id, warehouse_id=w1.id, quantity=3, idempotency_key="so-9")

        assert second.replayed
        assert second.cost_value == first.cost_value
        assert second.ledger_entry_ids == first.ledger_entry_ids
        assert live_stock.current_stock(db, variant.id, w1.id) == 7
