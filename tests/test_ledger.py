"""Tests for the Settlement Ledger: balances, payout validation, settlement completion."""

from __future__ import annotations

import random
import threading
from decimal import Decimal

import pytest

from snaplist.config import LedgerConfig
from snaplist.database import Database
from snaplist.errors import (
    InvalidTransitionError,
    PayoutNotFoundError,
    SettlementNotFoundError,
    ValidationError,
)
from snaplist.ledger import SettlementLedger
from snaplist.schema.listing import (
    Listing,
    NotificationType,
    PayoutStatus,
    SettlementRecord,
    SettlementStatus,
)

SELLER = "seller-1"


@pytest.fixture
def funded(ledger, sell):
    """One completed $100 sale with $10 fees and $5 shipping: $85.00 available"""
    settlement = sell(price="100.00")
    ledger.complete_settlement(settlement.listing_id, fees="10.00", shipping_cost="5.00")
    return settlement


class TestBalances:
    def test_only_completed_settlements_count(self, ledger, sell) -> None:
        sell(price="100.00")
        assert ledger.available_balance(SELLER) == Decimal("0.00")
        assert ledger.pending_balance(SELLER) == Decimal("100.00")

    def test_completed_net_is_available(self, ledger, funded) -> None:
        assert ledger.available_balance(SELLER) == Decimal("85.00")
        assert ledger.pending_balance(SELLER) == Decimal("0.00")

    def test_balances_are_per_seller(self, ledger, funded) -> None:
        assert ledger.available_balance("someone-else") == Decimal("0.00")

    def test_summary(self, ledger, funded, sell) -> None:
        sell(price="40.00")
        payout = ledger.request_payout(SELLER, "50.00")
        ledger.complete_payout(payout.id)

        summary = ledger.balance_summary(SELLER)

        assert summary.available == Decimal("35.00")
        assert summary.completed_settlements == Decimal("85.00")
        assert summary.pending_settlements == Decimal("40.00")
        assert summary.pending_payouts == Decimal("0.00")
        assert summary.paid_out == Decimal("50.00")
        assert not summary.can_request_payout
        assert summary.to_dict()["available"] == "35.00"


class TestPayoutRequests:
    def test_second_request_exceeds_balance(self, ledger, funded) -> None:
        """$85 available: $50 is accepted, a second $50 is not."""
        first = ledger.request_payout(SELLER, "50.00")
        assert first.status is PayoutStatus.PENDING
        assert ledger.available_balance(SELLER) == Decimal("35.00")

        with pytest.raises(ValidationError) as excinfo:
            ledger.request_payout(SELLER, "50.00")

        assert excinfo.value.reason == (
            "Requested amount exceeds available balance. Available: $35.00"
        )
        assert len(ledger.list_payouts(SELLER)) == 1

    @pytest.mark.parametrize("amount", ["49.99", "0", "-10"])
    def test_below_minimum_is_rejected(self, ledger, funded, amount) -> None:
        with pytest.raises(ValidationError, match=r"Minimum payout amount is \$50\.00"):
            ledger.request_payout(SELLER, amount)

    def test_exactly_available_is_accepted(self, ledger, funded) -> None:
        ledger.request_payout(SELLER, "85.00")
        assert ledger.available_balance(SELLER) == Decimal("0.00")

    def test_request_is_notified(self, ledger, funded, store) -> None:
        ledger.request_payout(SELLER, "50")

        notifications = store.list_notifications(SELLER)
        assert notifications[0].type is NotificationType.PAYOUT_REQUESTED
        assert "$50.00" in notifications[0].message

    def test_concurrent_requests_never_overdraw(self, ledger, sell) -> None:
        settlement = sell(price="100.00")
        ledger.complete_settlement(settlement.listing_id)
        workers = 10
        barrier = threading.Barrier(workers)
        accepted, rejected = [], []
        lock = threading.Lock()

        def request():
            barrier.wait()
            try:
                payout = ledger.request_payout(SELLER, "50.00")
            except ValidationError:
                with lock:
                    rejected.append(1)
            else:
                with lock:
                    accepted.append(payout.id)

        threads = [threading.Thread(target=request) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(accepted) == 2
        assert len(rejected) == workers - 2
        assert ledger.available_balance(SELLER) == Decimal("0.00")

    def test_random_operations_never_go_negative(self, ledger, sell) -> None:
        rng = random.Random(7)
        for _ in range(5):
            settlement = sell(price=str(rng.randint(60, 150)))
            ledger.complete_settlement(settlement.listing_id, fees=str(rng.randint(0, 10)))

        for _ in range(200):
            pending = [p for p in ledger.list_payouts(SELLER) if p.status is PayoutStatus.PENDING]
            action = rng.choice(["request", "request", "complete", "reject"])
            if action == "request":
                try:
                    ledger.request_payout(SELLER, str(rng.randint(40, 200)))
                except ValidationError:
                    pass
            elif pending:
                payout = rng.choice(pending)
                if action == "complete":
                    ledger.complete_payout(payout.id)
                else:
                    ledger.reject_payout(payout.id)

            assert ledger.available_balance(SELLER) >= Decimal("0.00")


class TestSharedDatabase:
    """Separate workers, each with its own connection to one database file."""

    @pytest.fixture
    def workers(self, tmp_path, clock):
        url = f"sqlite:///{tmp_path / 'snaplist.db'}"
        stores = [Database(url), Database(url)]

        listing = stores[0].create_listing(
            Listing.new(SELLER, "Wool Blanket", "100.00", now=clock(), image_urls=["https://img.example.com/b.jpg"])
        )
        stores[0].record_sale(SettlementRecord(listing.id, SELLER, listing.price, "ebay"), clock())
        stores[0].complete_settlement(listing.id, Decimal("10.00"), Decimal("5.00"), clock())

        yield [SettlementLedger(store, config=LedgerConfig(), clock=clock) for store in stores]
        for store in stores:
            store.close()

    def test_workers_cannot_spend_the_same_funds(self, workers) -> None:
        requests_per_worker = 4
        barrier = threading.Barrier(len(workers) * requests_per_worker)
        accepted = []
        lock = threading.Lock()

        def request(worker):
            barrier.wait()
            try:
                payout = worker.request_payout(SELLER, "50.00")
            except ValidationError:
                return
            with lock:
                accepted.append(payout.id)

        threads = [
            threading.Thread(target=request, args=(worker,))
            for worker in workers
            for _ in range(requests_per_worker)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(accepted) == 1
        for worker in workers:
            assert worker.available_balance(SELLER) == Decimal("35.00")

    def test_second_worker_sees_the_first_reservation(self, workers) -> None:
        first, second = workers
        first.request_payout(SELLER, "50.00")

        with pytest.raises(ValidationError, match=r"Available: \$35\.00"):
            second.request_payout(SELLER, "50.00")


class TestPayoutLifecycle:
    def test_reject_releases_funds(self, ledger, funded, store) -> None:
        payout = ledger.request_payout(SELLER, "80.00")
        assert ledger.available_balance(SELLER) == Decimal("5.00")

        rejected = ledger.reject_payout(payout.id, notes="Bank details invalid")

        assert rejected.status is PayoutStatus.REJECTED
        assert rejected.notes == "Bank details invalid"
        assert ledger.available_balance(SELLER) == Decimal("85.00")
        assert any("Bank details invalid" in n.message for n in store.list_notifications(SELLER))

    def test_complete_keeps_funds_reserved(self, ledger, funded, clock) -> None:
        payout = ledger.request_payout(SELLER, "60.00")
        clock.advance(hours=2)

        completed = ledger.complete_payout(payout.id)

        assert completed.status is PayoutStatus.COMPLETED
        assert completed.completed_at == clock()
        assert ledger.available_balance(SELLER) == Decimal("25.00")
        assert ledger.paid_out_total(SELLER) == Decimal("60.00")

    def test_closed_payouts_cannot_be_reopened(self, ledger, funded) -> None:
        completed = ledger.request_payout(SELLER, "50.00")
        ledger.complete_payout(completed.id)

        with pytest.raises(InvalidTransitionError):
            ledger.reject_payout(completed.id)
        with pytest.raises(InvalidTransitionError):
            ledger.complete_payout(completed.id)

    def test_rejected_payout_cannot_be_completed(self, ledger, funded) -> None:
        payout = ledger.request_payout(SELLER, "50.00")
        ledger.reject_payout(payout.id)

        with pytest.raises(InvalidTransitionError, match="already rejected"):
            ledger.complete_payout(payout.id)

    def test_update_by_status_name(self, ledger, funded) -> None:
        payout = ledger.request_payout(SELLER, "50.00")
        assert ledger.update_payout_status(payout.id, "completed").status is PayoutStatus.COMPLETED

    def test_update_with_unknown_status(self, ledger, funded) -> None:
        payout = ledger.request_payout(SELLER, "50.00")
        with pytest.raises(ValidationError, match="completed or rejected"):
            ledger.update_payout_status(payout.id, "pending")

    def test_unknown_payout(self, ledger) -> None:
        with pytest.raises(PayoutNotFoundError):
            ledger.complete_payout("missing")


class TestSettlements:
    def test_complete_records_fees_and_shipping(self, ledger, sell, clock) -> None:
        settlement = sell(price="120.00")

        completed = ledger.complete_settlement(settlement.listing_id, fees="15.60", shipping_cost="8.25")

        assert completed.status is SettlementStatus.COMPLETED
        assert completed.fees == Decimal("15.60")
        assert completed.shipping_cost == Decimal("8.25")
        assert completed.net_amount == Decimal("96.15")
        assert completed.completed_at == clock()

    def test_complete_twice(self, ledger, sell) -> None:
        settlement = sell()
        ledger.complete_settlement(settlement.listing_id)
        with pytest.raises(InvalidTransitionError):
            ledger.complete_settlement(settlement.listing_id)

    def test_negative_fees(self, ledger, sell) -> None:
        settlement = sell()
        with pytest.raises(ValidationError, match="cannot be negative"):
            ledger.complete_settlement(settlement.listing_id, fees="-1")

    def test_fees_cannot_exceed_sale(self, ledger, sell) -> None:
        settlement = sell(price="100.00")

        with pytest.raises(ValidationError, match="cannot exceed the sale amount"):
            ledger.complete_settlement(settlement.listing_id, fees="90.00", shipping_cost="10.01")

        assert ledger.get_settlement(settlement.listing_id).status is SettlementStatus.PENDING
        assert ledger.available_balance(SELLER) == Decimal("0.00")

    def test_fees_may_consume_the_whole_sale(self, ledger, sell) -> None:
        settlement = sell(price="100.00")

        completed = ledger.complete_settlement(settlement.listing_id, fees="100.00")

        assert completed.net_amount == Decimal("0.00")

    def test_get_settlement(self, ledger, sell) -> None:
        settlement = sell(price="72.90", marketplace="facebook")

        assert ledger.get_settlement(settlement.listing_id).gross_amount == Decimal("72.90")
        with pytest.raises(SettlementNotFoundError):
            ledger.get_settlement("missing")

    def test_unknown_settlement(self, ledger) -> None:
        with pytest.raises(SettlementNotFoundError):
            ledger.complete_settlement("missing")

    def test_list_by_status(self, ledger, sell) -> None:
        first = sell()
        sell()
        ledger.complete_settlement(first.listing_id)

        completed = ledger.list_settlements(SELLER, status=SettlementStatus.COMPLETED)
        assert [s.listing_id for s in completed] == [first.listing_id]
        assert len(ledger.list_settlements(SELLER)) == 2


class TestProfitSummary:
    def test_totals_by_marketplace_and_month(self, ledger, sell) -> None:
        ebay_sale = sell(price="100.00", marketplace="ebay")
        sell(price="60.00", marketplace="facebook")
        ledger.complete_settlement(ebay_sale.listing_id, fees="10.00")

        summary = ledger.profit_summary(SELLER)

        assert summary["total_count"] == 2
        assert summary["total_gross"] == "160.00"
        assert summary["total_fees"] == "10.00"
        assert summary["total_net"] == "150.00"
        assert summary["pending_net"] == "60.00"
        assert summary["completed_net"] == "90.00"
        assert summary["by_marketplace"] == {
            "ebay": {"count": 1, "gross": "100.00", "net": "90.00"},
            "facebook": {"count": 1, "gross": "60.00", "net": "60.00"},
        }
        assert summary["by_month"] == [
            {"month": "2024-03", "count": 2, "gross": "160.00", "net": "150.00"}
        ]

    def test_empty(self, ledger) -> None:
        summary = ledger.profit_summary(SELLER)
        assert summary["total_count"] == 0
        assert summary["total_net"] == "0.00"
        assert summary["by_month"] == []
