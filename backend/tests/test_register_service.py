# Overview: Pytest coverage for register shift open, summary and close.

"""
Register Shift Tests

SCENARIOS:
1. One open shift per cashier (local state and persisted rows)
2. Summary buckets sales by payment method, per payment row
3. Change handed back is netted from the cash bucket
4. Close returns summary and closed row together, then clears local state
5. A failed close write leaves the shift open
"""

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest

from duka.errors import AlreadyOpenError, NotOpenError, StoreError, ValidationError
from duka.services import register_service, sales_service
from duka.services.payment_service import METHOD_MOBILE_MONEY
from duka.services.register_service import (
    STATUS_CLOSED,
    STATUS_OPEN,
    VARIANCE_BALANCED,
    VARIANCE_OVERAGE,
    VARIANCE_SHORTAGE,
)
from duka.services.session_context import CashierSession
from duka.time_utils import utcnow


@pytest.fixture
def untaxed(profile):
    return replace(profile, tax_rate=Decimal("0"))


def _sell(session, store, profile, product, *, method=None, tendered=None):
    session.add_product(product, 1)
    session.begin_checkout(profile.tax_rate)
    entry = session.payments.entries[0]
    if method:
        session.payments.update(entry.id, "method", method)
    if tendered is not None:
        session.payments.update(entry.id, "amount", tendered)
    return sales_service.commit_sale(session, store, profile)


class TestOpenRegister:
    def test_open_sets_local_and_persisted_state(self, store, cashier):
        row = register_service.open_register(cashier, store, 5000, notes="Morning")

        assert row["status"] == STATUS_OPEN
        assert row["opening_cents"] == 5000
        assert cashier.register.register_id == row["id"]

    def test_second_open_rejected(self, store, cashier):
        register_service.open_register(cashier, store, 5000)

        with pytest.raises(AlreadyOpenError):
            register_service.open_register(cashier, store, 1000)

    def test_open_rejected_when_persisted_row_open(self, store, cashier):
        """
        SCENARIO: Process restarted, fresh session for the same cashier
        EXPECTED: The persisted open shift still blocks a second open
        """
        register_service.open_register(cashier, store, 5000)
        fresh = CashierSession(cashier.cashier_id, cashier.location_id)

        with pytest.raises(AlreadyOpenError):
            register_service.open_register(fresh, store, 5000)

    def test_restore_open_register(self, store, cashier):
        row = register_service.open_register(cashier, store, 5000)
        fresh = CashierSession(cashier.cashier_id, cashier.location_id)

        restored = register_service.restore_open_register(fresh, store)

        assert restored["id"] == row["id"]
        assert fresh.register.opening_cents == 5000

    def test_negative_float_rejected(self, store, cashier):
        with pytest.raises(ValidationError):
            register_service.open_register(cashier, store, -1)


class TestShiftSummary:
    def test_requires_open_shift(self, store, cashier):
        with pytest.raises(NotOpenError):
            register_service.shift_summary(cashier, store)

    def test_split_sale_feeds_each_bucket(self, store, cashier, untaxed, make_product):
        register_service.open_register(cashier, store, 0)
        cashier.add_product(make_product(price_cents=1000), 1)
        cashier.begin_checkout(untaxed.tax_rate)
        payments = cashier.payments
        payments.update(payments.entries[0].id, "amount", 400)
        payments.add()
        sales_service.commit_sale(cashier, store, untaxed)

        summary = register_service.shift_summary(cashier, store)

        assert summary.method_totals["cash"] == 400
        assert summary.method_totals["card"] == 600
        assert summary.total_sales_cents == 1000
        assert summary.transaction_count == 1

    def test_change_netted_from_cash(self, store, cashier, untaxed, make_product):
        register_service.open_register(cashier, store, 5000)
        _sell(cashier, store, untaxed, make_product(price_cents=800), tendered=1000)

        summary = register_service.shift_summary(cashier, store)

        assert summary.cash_sales_cents == 800
        assert summary.expected_cents == 5800

    def test_sale_without_payment_rows_uses_label(self, store, cashier):
        register_service.open_register(cashier, store, 0)
        store.insert("sales", {
            "location_id": 1,
            "cashier_id": cashier.cashier_id,
            "subtotal_cents": 500,
            "total_cents": 500,
            "payment_method": "card",
            "amount_paid_cents": 500,
            "created_at": utcnow(),
        })

        summary = register_service.shift_summary(cashier, store)
        assert summary.method_totals["card"] == 500

    def test_only_this_cashiers_sales_since_open(self, store, cashier, owner, untaxed, make_product):
        product = make_product(price_cents=700, stock=10)
        store.insert("sales", {
            "cashier_id": cashier.cashier_id,
            "total_cents": 9999,
            "payment_method": "cash",
            "created_at": utcnow() - timedelta(hours=2),
        })
        register_service.open_register(cashier, store, 0)
        register_service.open_register(owner, store, 0)
        _sell(owner, store, untaxed, product)
        _sell(cashier, store, untaxed, product)

        summary = register_service.shift_summary(cashier, store)

        assert summary.transaction_count == 1
        assert summary.cash_sales_cents == 700


    def test_fresh_session_picks_up_persisted_shift(self, store, cashier, untaxed, make_product):
        """
        SCENARIO: Shift opened, process restarted (fresh session, no local state)
        EXPECTED: Summary reloads the open shift instead of reporting none
        """
        row = register_service.open_register(cashier, store, 2000)
        _sell(cashier, store, untaxed, make_product(price_cents=500))
        fresh = CashierSession(cashier.cashier_id, cashier.location_id)

        summary = register_service.shift_summary(fresh, store)

        assert summary.register_id == row["id"]
        assert summary.expected_cents == 2500
        assert fresh.register.register_id == row["id"]


class TestCloseRegister:
    def test_close_reports_shortage(self, store, cashier, untaxed, make_product):
        """
        SCENARIO: Float 5000, cash sale 1200, mobile money sale 800, count 6000
        EXPECTED: Expected 6200, variance -200 (shortage)
        """
        register_service.open_register(cashier, store, 5000)
        _sell(cashier, store, untaxed, make_product(name="Rice", price_cents=1200))
        _sell(cashier, store, untaxed, make_product(name="Tea", price_cents=800), method=METHOD_MOBILE_MONEY)

        result = register_service.close_register(cashier, store, 6000)

        assert result.summary.expected_cents == 6200
        assert result.summary.method_totals[METHOD_MOBILE_MONEY] == 800
        assert result.variance_cents == -200
        assert result.variance_status == VARIANCE_SHORTAGE
        assert cashier.register is None

        row = result.register
        assert row["status"] == STATUS_CLOSED
        assert row["closing_cents"] == 6000
        assert row["expected_cents"] == 6200
        assert row["variance_cents"] == -200
        assert row["cash_sales_cents"] == 1200
        assert row["mobile_money_sales_cents"] == 800
        assert row["transaction_count"] == 2
        assert row["closed_at"] is not None

    def test_close_without_open(self, store, cashier):
        with pytest.raises(NotOpenError):
            register_service.close_register(cashier, store, 0)

    def test_fresh_session_can_close_persisted_shift(self, store, cashier):
        row = register_service.open_register(cashier, store, 5000)
        fresh = CashierSession(cashier.cashier_id, cashier.location_id)

        with pytest.raises(AlreadyOpenError):
            register_service.open_register(fresh, store, 5000)

        result = register_service.close_register(fresh, store, 5000)

        assert result.register["id"] == row["id"]
        assert result.register["status"] == STATUS_CLOSED
        assert result.variance_status == VARIANCE_BALANCED
        assert fresh.register is None

    def test_close_twice_rejected(self, store, cashier):
        register_service.open_register(cashier, store, 1000)
        register_service.close_register(cashier, store, 1000)

        with pytest.raises(NotOpenError):
            register_service.close_register(cashier, store, 1000)

    def test_closed_elsewhere_clears_local_state(self, store, cashier):
        row = register_service.open_register(cashier, store, 1000)
        store.update("cash_registers", row["id"], {"status": STATUS_CLOSED})

        with pytest.raises(NotOpenError):
            register_service.close_register(cashier, store, 1000)
        assert cashier.register is None

    def test_failed_close_keeps_shift_open(self, failing_store, store, cashier):
        register_service.open_register(cashier, failing_store, 1000)
        failing_store.fail("update", "cash_registers")

        with pytest.raises(StoreError):
            register_service.close_register(cashier, failing_store, 1000)

        assert cashier.register is not None
        failing_store.heal()
        result = register_service.close_register(cashier, failing_store, 1000)
        assert result.variance_status == VARIANCE_BALANCED

    def test_reopen_after_close(self, store, cashier):
        register_service.open_register(cashier, store, 1000)
        register_service.close_register(cashier, store, 1500)

        row = register_service.open_register(cashier, store, 2000)
        assert row["status"] == STATUS_OPEN

    def test_variance_status(self):
        assert register_service.variance_status(0) == VARIANCE_BALANCED
        assert register_service.variance_status(50) == VARIANCE_OVERAGE
        assert register_service.variance_status(-1) == VARIANCE_SHORTAGE

    def test_list_sessions(self, store, cashier):
        register_service.open_register(cashier, store, 1000)
        register_service.close_register(cashier, store, 1000)
        register_service.open_register(cashier, store, 2000)

        rows = register_service.list_sessions(store, cashier_id=cashier.cashier_id)
        assert [r["status"] for r in rows] == [STATUS_OPEN, STATUS_CLOSED]
        assert len(register_service.list_sessions(store, status=STATUS_CLOSED)) == 1


class TestSalesNeedOpenShift:
    def test_commit_without_shift_rejected(self, store, cashier, untaxed, make_product):
        """
        SCENARIO: Cashier never opened a register and rings up a cash sale
        EXPECTED: NotOpenError, nothing written, cart kept
        """
        with pytest.raises(NotOpenError):
            _sell(cashier, store, untaxed, make_product())

        assert store.query("sales") == []
        assert len(cashier.cart.lines) == 1

    def test_commit_after_close_rejected(self, store, cashier, untaxed, make_product):
        register_service.open_register(cashier, store, 0)
        register_service.close_register(cashier, store, 0)

        with pytest.raises(NotOpenError):
            _sell(cashier, store, untaxed, make_product())
        assert store.query("sales") == []

    def test_commit_restores_persisted_shift(self, store, cashier, untaxed, make_product):
        register_service.open_register(cashier, store, 0)
        fresh = CashierSession(cashier.cashier_id, cashier.location_id)

        result = _sell(fresh, store, untaxed, make_product(price_cents=900))

        assert result.sale["total_cents"] == 900
        assert register_service.shift_summary(cashier, store).cash_sales_cents == 900
