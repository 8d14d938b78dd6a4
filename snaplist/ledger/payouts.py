"""
Settlement Ledger
=================
Profit records and payout requests for sellers.

Balances are always recomputed from the stored settlements and payouts:

    available = sum(net of completed settlements)
                - sum(pending and completed payout requests)

A rejected payout therefore releases its amount on the next computation
without any explicit mutation.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from ..config import LedgerConfig
from ..database.store import ListingStore
from ..errors import (
    InvalidTransitionError,
    PayoutNotFoundError,
    SettlementNotFoundError,
    ValidationError,
)
from ..events import EventChannel
from ..schema.listing import (
    NotificationType,
    PayoutRequest,
    PayoutStatus,
    SettlementRecord,
    SettlementStatus,
    to_money,
    utcnow,
)


ZERO = Decimal("0.00")
RESERVING_STATUSES = (PayoutStatus.PENDING, PayoutStatus.COMPLETED)


@dataclass
class BalanceSummary:
    seller_id: str
    available: Decimal
    pending_settlements: Decimal
    completed_settlements: Decimal
    pending_payouts: Decimal
    paid_out: Decimal
    minimum_payout: Decimal

    @property
    def can_request_payout(self) -> bool:
        return self.available >= self.minimum_payout

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seller_id": self.seller_id,
            "available": str(self.available),
            "pending_settlements": str(self.pending_settlements),
            "completed_settlements": str(self.completed_settlements),
            "pending_payouts": str(self.pending_payouts),
            "paid_out": str(self.paid_out),
            "minimum_payout": str(self.minimum_payout),
            "can_request_payout": self.can_request_payout,
        }


def _total(amounts) -> Decimal:
    return sum(amounts, ZERO)


class SettlementLedger:
    """
    Payout validation and settlement promotion.

    The balance check for a payout request runs inside the store, in the
    same transaction as the insert, so concurrent workers sharing one
    database cannot both spend the same funds.
    """

    def __init__(
        self,
        store: ListingStore,
        events: Optional[EventChannel] = None,
        notifier=None,
        config: Optional[LedgerConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.events = events or EventChannel()
        self.notifier = notifier
        self.config = config or LedgerConfig()
        self.clock = clock

    @property
    def minimum_payout(self) -> Decimal:
        return to_money(self.config.minimum_payout)

    # ========================================================================
    # BALANCES
    # ========================================================================

    def available_balance(self, seller_id: str) -> Decimal:
        completed = self.store.list_settlements(seller_id, status=SettlementStatus.COMPLETED)
        reserved = self.store.list_payouts(seller_id, statuses=RESERVING_STATUSES)
        return _total(s.net_amount for s in completed) - _total(p.amount for p in reserved)

    def pending_balance(self, seller_id: str) -> Decimal:
        """Net proceeds of sales whose marketplace payment is not yet confirmed"""
        pending = self.store.list_settlements(seller_id, status=SettlementStatus.PENDING)
        return _total(s.net_amount for s in pending)

    def paid_out_total(self, seller_id: str) -> Decimal:
        completed = self.store.list_payouts(seller_id, statuses=[PayoutStatus.COMPLETED])
        return _total(p.amount for p in completed)

    def balance_summary(self, seller_id: str) -> BalanceSummary:
        settlements = self.store.list_settlements(seller_id)
        payouts = self.store.list_payouts(seller_id)

        completed_net = _total(
            s.net_amount for s in settlements if s.status is SettlementStatus.COMPLETED
        )
        pending_net = _total(
            s.net_amount for s in settlements if s.status is SettlementStatus.PENDING
        )
        pending_payouts = _total(p.amount for p in payouts if p.status is PayoutStatus.PENDING)
        paid_out = _total(p.amount for p in payouts if p.status is PayoutStatus.COMPLETED)

        return BalanceSummary(
            seller_id=seller_id,
            available=completed_net - pending_payouts - paid_out,
            pending_settlements=pending_net,
            completed_settlements=completed_net,
            pending_payouts=pending_payouts,
            paid_out=paid_out,
            minimum_payout=self.minimum_payout,
        )

    # ========================================================================
    # PAYOUTS
    # ========================================================================

    def request_payout(self, seller_id: str, amount: Any, phone: Optional[str] = None) -> PayoutRequest:
        """
        Validate and create a PENDING payout request.

        Raises:
            ValidationError: Below the minimum payout or above the available balance
        """
        if not seller_id:
            raise ValidationError("Seller ID is required")

        requested = to_money(amount)
        if requested <= 0 or requested < self.minimum_payout:
            raise ValidationError(f"Minimum payout amount is ${self.minimum_payout}")

        now = self.clock()
        payout = PayoutRequest(
            seller_id=seller_id,
            amount=requested,
            phone=phone,
            created_at=now,
            updated_at=now,
        )
        created, available = self.store.create_payout_if_covered(payout)
        if not created:
            raise ValidationError(
                f"Requested amount exceeds available balance. Available: ${available}"
            )

        self.events.emit(
            "payout_requested",
            seller_id=seller_id,
            payout_id=payout.id,
            amount=str(requested),
            available_before=str(available),
        )
        self._notify(payout, NotificationType.PAYOUT_REQUESTED)
        return payout

    def complete_payout(self, payout_id: str, notes: str = "") -> PayoutRequest:
        return self._close_payout(payout_id, PayoutStatus.COMPLETED, notes)

    def reject_payout(self, payout_id: str, notes: str = "") -> PayoutRequest:
        return self._close_payout(payout_id, PayoutStatus.REJECTED, notes)

    def update_payout_status(self, payout_id: str, status: str, notes: str = "") -> PayoutRequest:
        """
        Close a payout by status name (completed or rejected).

        Raises:
            ValidationError: Unknown or non-terminal status
        """
        if status == PayoutStatus.COMPLETED.value:
            return self.complete_payout(payout_id, notes)
        if status == PayoutStatus.REJECTED.value:
            return self.reject_payout(payout_id, notes)
        raise ValidationError("Valid status is required (completed or rejected)")

    def _close_payout(self, payout_id: str, new_status: PayoutStatus, notes: str) -> PayoutRequest:
        payout = self.store.get_payout(payout_id)
        if payout is None:
            raise PayoutNotFoundError(payout_id)
        if payout.status is not PayoutStatus.PENDING:
            raise InvalidTransitionError(f"Payout request is already {payout.status.value}")

        if not self.store.transition_payout(payout_id, new_status, self.clock(), notes or ""):
            latest = self.store.get_payout(payout_id)
            raise InvalidTransitionError(
                f"Payout request is already {latest.status.value if latest else 'closed'}"
            )

        payout = self.store.get_payout(payout_id)
        self.events.emit(
            f"payout_{new_status.value}",
            seller_id=payout.seller_id,
            payout_id=payout_id,
            amount=str(payout.amount),
        )
        self._notify(
            payout,
            NotificationType.PAYOUT_COMPLETED
            if new_status is PayoutStatus.COMPLETED
            else NotificationType.PAYOUT_REJECTED,
        )
        return payout

    def list_payouts(self, seller_id: str) -> List[PayoutRequest]:
        return self.store.list_payouts(seller_id)

    def _notify(self, payout: PayoutRequest, notification_type: NotificationType) -> None:
        if self.notifier is None:
            return
        self.notifier.notify(
            payout.seller_id,
            notification_type,
            {"amount": payout.amount, "notes": payout.notes},
        )

    # ========================================================================
    # SETTLEMENTS
    # ========================================================================

    def complete_settlement(
        self,
        listing_id: str,
        fees: Any = None,
        shipping_cost: Any = None,
    ) -> SettlementRecord:
        """
        Operator confirmation that the marketplace paid out a sale.

        Fees and shipping default to whatever the settlement already carries.

        Raises:
            SettlementNotFoundError: No sale recorded for the listing
            InvalidTransitionError: Settlement is already completed
            ValidationError: Negative fees or shipping, or more than the sale amount
        """
        settlement = self.store.get_settlement(listing_id)
        if settlement is None:
            raise SettlementNotFoundError(listing_id)
        if settlement.status is not SettlementStatus.PENDING:
            raise InvalidTransitionError("Settlement is already completed")

        fee_amount = to_money(fees) if fees is not None else settlement.fees
        shipping_amount = to_money(shipping_cost) if shipping_cost is not None else settlement.shipping_cost
        if fee_amount < 0 or shipping_amount < 0:
            raise ValidationError("Fees and shipping cost cannot be negative")
        if fee_amount + shipping_amount > settlement.gross_amount:
            raise ValidationError("Fees and shipping cost cannot exceed the sale amount")

        if not self.store.complete_settlement(listing_id, fee_amount, shipping_amount, self.clock()):
            raise InvalidTransitionError("Settlement is already completed")

        completed = self.store.get_settlement(listing_id)
        self.events.emit(
            "settlement_completed",
            listing_id=listing_id,
            seller_id=completed.seller_id,
            net_amount=str(completed.net_amount),
        )
        return completed

    def get_settlement(self, listing_id: str) -> SettlementRecord:
        settlement = self.store.get_settlement(listing_id)
        if settlement is None:
            raise SettlementNotFoundError(listing_id)
        return settlement

    def list_settlements(
        self, seller_id: str, status: Optional[SettlementStatus] = None
    ) -> List[SettlementRecord]:
        return self.store.list_settlements(seller_id, status=status)

    def profit_summary(self, seller_id: str) -> Dict[str, Any]:
        """Totals per status, per marketplace and per month of sale"""
        settlements = self.store.list_settlements(seller_id)

        by_marketplace: Dict[str, Dict[str, Decimal]] = defaultdict(
            lambda: {"count": 0, "gross": ZERO, "net": ZERO}
        )
        by_month: Dict[str, Dict[str, Decimal]] = defaultdict(
            lambda: {"count": 0, "gross": ZERO, "net": ZERO}
        )
        for settlement in settlements:
            month = settlement.created_at.strftime("%Y-%m")
            for bucket in (by_marketplace[settlement.marketplace], by_month[month]):
                bucket["count"] += 1
                bucket["gross"] += settlement.gross_amount
                bucket["net"] += settlement.net_amount

        def _render(bucket):
            return {"count": bucket["count"], "gross": str(bucket["gross"]), "net": str(bucket["net"])}

        return {
            "seller_id": seller_id,
            "total_count": len(settlements),
            "total_gross": str(_total(s.gross_amount for s in settlements)),
            "total_fees": str(_total(s.fees for s in settlements)),
            "total_shipping": str(_total(s.shipping_cost for s in settlements)),
            "total_net": str(_total(s.net_amount for s in settlements)),
            "pending_net": str(_total(
                s.net_amount for s in settlements if s.status is SettlementStatus.PENDING
            )),
            "completed_net": str(_total(
                s.net_amount for s in settlements if s.status is SettlementStatus.COMPLETED
            )),
            "by_marketplace": {
                name: _render(bucket) for name, bucket in sorted(by_marketplace.items())
            },
            "by_month": [
                {"month": month, **_render(bucket)} for month, bucket in sorted(by_month.items())
            ],
        }
