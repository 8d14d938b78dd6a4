"""
Price Decay Engine
==================
Lowers the price of stale active listings on a schedule.

A listing is due once a full decay period has passed since its last price
update. Each reduction multiplies the price by the decay factor, rounds to
cents and clamps at the listing's minimum price. At the minimum the listing
stays active and simply stops decaying.

Order of work for one listing:
1. Push the new price to every marketplace it is published on (fan-out)
2. Atomically write the price and its history entry, conditional on the
   listing still being active at the price we read
3. Notify the seller
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..adapters.base_adapter import MarketplaceAdapter
from ..adapters.fanout import FanOutOutcome, fan_out
from ..config import PricingConfig
from ..database.store import ListingStore
from ..errors import InvalidTransitionError, ListingNotFoundError, ValidationError
from ..events import EventChannel
from ..schema.listing import (
    Listing,
    ListingStatus,
    NotificationType,
    PriceChangeReason,
    PriceHistoryEntry,
    ensure_utc,
    to_money,
    utcnow,
)


def compute_decayed_price(price: Decimal, minimum: Decimal, factor: Decimal) -> Decimal:
    """
    One decay step: round(price * factor, 2), never below minimum.

    >>> compute_decayed_price(Decimal("81.00"), Decimal("50.00"), Decimal("0.9"))
    Decimal('72.90')
    >>> compute_decayed_price(Decimal("52.00"), Decimal("50.00"), Decimal("0.9"))
    Decimal('50.00')
    """
    return max(to_money(price * factor), minimum)


@dataclass
class PriceChangeResult:
    """Outcome of one automatic or manual price change attempt"""

    listing_id: str
    applied: bool
    previous_price: Optional[Decimal] = None
    new_price: Optional[Decimal] = None
    reason: Optional[PriceChangeReason] = None
    skipped_reason: Optional[str] = None   # not_active, not_due, at_minimum, no_change, conflict
    outcome: Optional[FanOutOutcome] = None

    @property
    def conflicted(self) -> bool:
        return self.skipped_reason == "conflict"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "applied": self.applied,
            "previous_price": str(self.previous_price) if self.previous_price is not None else None,
            "new_price": str(self.new_price) if self.new_price is not None else None,
            "reason": self.reason.value if self.reason else None,
            "skipped_reason": self.skipped_reason,
            "marketplaces": self.outcome.to_dict() if self.outcome else None,
        }


@dataclass
class CycleReport:
    """Summary of one decay cycle"""

    started_at: datetime
    examined: int = 0
    reduced: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)
    partial_failures: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    deferred: List[str] = field(default_factory=list)

    @property
    def budget_exhausted(self) -> bool:
        return bool(self.deferred)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "examined": self.examined,
            "reduced": list(self.reduced),
            "skipped": list(self.skipped),
            "conflicts": list(self.conflicts),
            "partial_failures": list(self.partial_failures),
            "errors": list(self.errors),
            "deferred": list(self.deferred),
        }


class PriceDecayEngine:
    """
    Scheduled and manual price changes.

    Args:
        store: Listing Store
        adapters: Configured marketplace adapters by name
        events: Event channel for partial failures and state changes
        notifier: Anything with notify(seller_id, type, payload, listing_id=None)
        config: Decay factor, decay period and default minimum ratio
        max_workers: Upper bound on concurrent marketplace calls per listing
        clock: Returns the current UTC time
        monotonic: Monotonic clock used for run deadlines
    """

    def __init__(
        self,
        store: ListingStore,
        adapters: Mapping[str, MarketplaceAdapter],
        events: Optional[EventChannel] = None,
        notifier=None,
        config: Optional[PricingConfig] = None,
        max_workers: int = 4,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.adapters = adapters
        self.events = events or EventChannel()
        self.notifier = notifier
        self.config = config or PricingConfig()
        self.max_workers = max_workers
        self.clock = clock
        self.monotonic = monotonic

    @property
    def decay_period(self) -> timedelta:
        return timedelta(days=self.config.decay_after_days)

    def is_due(self, listing: Listing, now: datetime) -> bool:
        return ensure_utc(now) - listing.last_price_update >= self.decay_period

    def run_decay_cycle(
        self, now: Optional[datetime] = None, deadline: Optional[float] = None
    ) -> CycleReport:
        """
        Reduce every due active listing once.

        Args:
            now: Evaluation time (defaults to the clock)
            deadline: monotonic() value after which remaining listings are
                deferred to the next run

        Returns:
            CycleReport
        """
        now = ensure_utc(now) if now else self.clock()
        report = CycleReport(started_at=now)

        candidates = self.store.query_listings(
            status=ListingStatus.ACTIVE,
            price_updated_before=now - self.decay_period,
        )
        self.events.emit("decay_cycle_started", candidates=len(candidates))

        for index, listing in enumerate(candidates):
            if deadline is not None and self.monotonic() >= deadline:
                report.deferred = [pending.id for pending in candidates[index:]]
                self.events.emit(
                    "run_budget_exhausted",
                    level="warning",
                    run="decay",
                    processed=report.examined,
                    deferred=len(report.deferred),
                )
                break

            report.examined += 1
            try:
                result = self.reduce_listing_price(listing, now)
            except Exception as e:
                # one bad listing must not stop the cycle
                report.errors.append(listing.id)
                self.events.emit(
                    "listing_processing_failed",
                    level="error",
                    run="decay",
                    listing_id=listing.id,
                    error=str(e),
                )
                continue

            if result.applied:
                report.reduced.append(listing.id)
                if result.outcome and not result.outcome.all_succeeded:
                    report.partial_failures.append(listing.id)
            elif result.conflicted:
                report.conflicts.append(listing.id)
            else:
                report.skipped.append(listing.id)

        self.events.emit(
            "decay_cycle_finished",
            examined=report.examined,
            reduced=len(report.reduced),
            skipped=len(report.skipped),
            conflicts=len(report.conflicts),
            errors=len(report.errors),
            deferred=len(report.deferred),
        )
        return report

    def reduce_listing_price(
        self,
        listing: Listing,
        now: Optional[datetime] = None,
        ignore_schedule: bool = False,
    ) -> PriceChangeResult:
        """
        Apply one automatic decay step to a listing if it is due.

        ignore_schedule skips the decay-period check for on-demand
        reductions; the factor and the minimum price still apply.
        """
        now = ensure_utc(now) if now else self.clock()

        if not listing.is_active:
            return PriceChangeResult(listing.id, applied=False, skipped_reason="not_active")
        if not ignore_schedule and not self.is_due(listing, now):
            return PriceChangeResult(listing.id, applied=False, skipped_reason="not_due")
        if listing.at_minimum_price:
            return PriceChangeResult(
                listing.id, applied=False, previous_price=listing.price, skipped_reason="at_minimum"
            )

        new_price = compute_decayed_price(listing.price, listing.min_price, self.config.decay_factor)
        if new_price >= listing.price:
            return PriceChangeResult(
                listing.id, applied=False, previous_price=listing.price, skipped_reason="no_change"
            )

        return self._apply_price(listing, new_price, PriceChangeReason.AUTOMATIC, now)

    def update_listing_price(self, listing_id: str, new_price: Any) -> PriceChangeResult:
        """
        Seller-initiated price change.

        Bypasses the decay period and factor but must stay within
        [min_price, original_price].

        Raises:
            ListingNotFoundError: Unknown listing
            InvalidTransitionError: Listing is not active
            ValidationError: Price is invalid or out of range
        """
        listing = self.store.get_listing(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        if not listing.is_active:
            raise InvalidTransitionError(
                f"Cannot change the price of a {listing.status.value} listing"
            )

        price = to_money(new_price)
        if price <= 0:
            raise ValidationError("Price must be greater than zero")
        if price < listing.min_price:
            raise ValidationError(
                f"Price ${price} is below the minimum price ${listing.min_price}"
            )
        if price > listing.original_price:
            raise ValidationError(
                f"Price ${price} cannot exceed the original price ${listing.original_price}"
            )
        if price == listing.price:
            return PriceChangeResult(
                listing.id,
                applied=False,
                previous_price=listing.price,
                new_price=price,
                skipped_reason="no_change",
            )

        return self._apply_price(listing, price, PriceChangeReason.MANUAL, self.clock())

    def _apply_price(
        self,
        listing: Listing,
        new_price: Decimal,
        reason: PriceChangeReason,
        now: datetime,
    ) -> PriceChangeResult:
        outcome = fan_out(
            listing.id,
            "update_price",
            {name: pub.external_id for name, pub in listing.publications.items()},
            self.adapters,
            lambda adapter, external_id: adapter.update_price(external_id, new_price),
            max_workers=self.max_workers,
        )
        for marketplace in outcome.failed:
            self.events.emit(
                "adapter_call_failed",
                level="warning",
                operation="update_price",
                listing_id=listing.id,
                marketplace=marketplace,
                reason=outcome.results[marketplace].reason,
            )

        entry = PriceHistoryEntry(
            listing_id=listing.id,
            previous_price=listing.price,
            new_price=new_price,
            reason=reason,
            created_at=now,
        )
        if not self.store.apply_price_change(entry, now):
            self.events.emit(
                "price_update_conflict",
                level="warning",
                listing_id=listing.id,
                expected_price=str(listing.price),
                new_price=str(new_price),
            )
            return PriceChangeResult(
                listing.id,
                applied=False,
                previous_price=listing.price,
                new_price=new_price,
                reason=reason,
                skipped_reason="conflict",
                outcome=outcome,
            )

        self.events.emit(
            "price_decayed" if reason is PriceChangeReason.AUTOMATIC else "price_updated",
            listing_id=listing.id,
            seller_id=listing.seller_id,
            previous_price=str(listing.price),
            new_price=str(new_price),
            marketplaces_failed=outcome.failed,
        )

        if reason is PriceChangeReason.AUTOMATIC and self.notifier is not None:
            self.notifier.notify(
                listing.seller_id,
                NotificationType.PRICE_REDUCTION,
                {
                    "title": listing.title,
                    "previous_price": listing.price,
                    "new_price": new_price,
                },
                listing_id=listing.id,
            )

        return PriceChangeResult(
            listing.id,
            applied=True,
            previous_price=listing.price,
            new_price=new_price,
            reason=reason,
            outcome=outcome,
        )
