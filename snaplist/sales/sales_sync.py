"""
Sold Reconciliation Engine
==========================
Polls marketplaces for sale status, marks listings sold exactly once and
opens their settlement record.

Marketplaces are asked in a configurable priority order and the first one
reporting sold wins the attribution. An adapter error is "no signal" for
that pass; a listing is never marked sold on an ambiguous answer.

The settlement is protected by the store's one-settlement-per-listing
constraint, so concurrent or repeated passes over the same listing are safe.
After a sale every other publication is ended best-effort.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..adapters.base_adapter import AdapterResult, MarketplaceAdapter
from ..adapters.fanout import FanOutOutcome, fan_out
from ..config import DEFAULT_MARKETPLACE_PRIORITY
from ..database.store import ListingStore
from ..errors import DuplicateSettlementError, ListingNotFoundError
from ..events import EventChannel
from ..schema.listing import (
    Listing,
    ListingStatus,
    MarketplacePublication,
    NotificationType,
    SettlementRecord,
    ensure_utc,
    utcnow,
)


def ordered_publications(
    publications: Mapping[str, MarketplacePublication], priority: Sequence[str]
) -> List[MarketplacePublication]:
    """Publications in priority order; unlisted marketplaces last, by name"""
    rank = {name: index for index, name in enumerate(priority)}
    return sorted(
        publications.values(),
        key=lambda pub: (rank.get(pub.marketplace, len(rank)), pub.marketplace),
    )


@dataclass
class ReconciliationResult:
    """What happened to one listing during a reconciliation check"""

    listing_id: str
    status: str = "not_sold"   # sold, already_settled, not_sold, not_active, not_recorded
    marketplace: Optional[str] = None
    settlement: Optional[SettlementRecord] = None
    checked: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    delisted: Optional[FanOutOutcome] = None

    @property
    def sold(self) -> bool:
        return self.status in ("sold", "already_settled")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "status": self.status,
            "sold": self.sold,
            "marketplace": self.marketplace,
            "settlement": self.settlement.to_dict() if self.settlement else None,
            "checked": list(self.checked),
            "errors": dict(self.errors),
            "delisted": self.delisted.to_dict() if self.delisted else None,
        }


@dataclass
class ReconciliationReport:
    """Summary of one reconciliation pass"""

    started_at: datetime
    examined: int = 0
    sold: List[str] = field(default_factory=list)
    already_settled: List[str] = field(default_factory=list)
    unsold: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    deferred: List[str] = field(default_factory=list)

    @property
    def budget_exhausted(self) -> bool:
        return bool(self.deferred)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "examined": self.examined,
            "sold": list(self.sold),
            "already_settled": list(self.already_settled),
            "unsold": list(self.unsold),
            "errors": list(self.errors),
            "deferred": list(self.deferred),
        }


class SoldReconciliationEngine:
    """
    Detects sales across marketplaces.

    Args:
        store: Listing Store
        adapters: Configured marketplace adapters by name
        events: Event channel for partial failures and state changes
        notifier: Anything with notify(seller_id, type, payload, listing_id=None)
        priority: Marketplace names, highest priority first
        end_other_publications: End the remaining publications after a sale
        max_workers: Upper bound on concurrent end calls
    """

    def __init__(
        self,
        store: ListingStore,
        adapters: Mapping[str, MarketplaceAdapter],
        events: Optional[EventChannel] = None,
        notifier=None,
        priority: Optional[Sequence[str]] = None,
        end_other_publications: bool = True,
        max_workers: int = 4,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.adapters = adapters
        self.events = events or EventChannel()
        self.notifier = notifier
        self.priority = list(priority or DEFAULT_MARKETPLACE_PRIORITY)
        self.end_other_publications = end_other_publications
        self.max_workers = max_workers
        self.clock = clock
        self.monotonic = monotonic

    def run_reconciliation(
        self, now: Optional[datetime] = None, deadline: Optional[float] = None
    ) -> ReconciliationReport:
        """
        Check every active, published listing once.

        Args:
            now: Evaluation time (defaults to the clock)
            deadline: monotonic() value after which remaining listings are
                deferred to the next run
        """
        now = ensure_utc(now) if now else self.clock()
        report = ReconciliationReport(started_at=now)

        candidates = [
            listing
            for listing in self.store.query_listings(status=ListingStatus.ACTIVE)
            if listing.is_published
        ]
        self.events.emit("reconciliation_started", candidates=len(candidates))

        for index, listing in enumerate(candidates):
            if deadline is not None and self.monotonic() >= deadline:
                report.deferred = [pending.id for pending in candidates[index:]]
                self.events.emit(
                    "run_budget_exhausted",
                    level="warning",
                    run="reconciliation",
                    processed=report.examined,
                    deferred=len(report.deferred),
                )
                break

            report.examined += 1
            try:
                result = self.reconcile_listing(listing, now)
            except Exception as e:
                report.errors.append(listing.id)
                self.events.emit(
                    "listing_processing_failed",
                    level="error",
                    run="reconciliation",
                    listing_id=listing.id,
                    error=str(e),
                )
                continue

            if result.status == "sold":
                report.sold.append(listing.id)
            elif result.status == "already_settled":
                report.already_settled.append(listing.id)
            else:
                report.unsold.append(listing.id)

        self.events.emit(
            "reconciliation_finished",
            examined=report.examined,
            sold=len(report.sold),
            already_settled=len(report.already_settled),
            errors=len(report.errors),
            deferred=len(report.deferred),
        )
        return report

    def check_listing(self, listing_id: str, now: Optional[datetime] = None) -> ReconciliationResult:
        """
        On-demand sold check for one listing.

        Raises:
            ListingNotFoundError: Unknown listing
        """
        listing = self.store.get_listing(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        return self.reconcile_listing(listing, ensure_utc(now) if now else self.clock())

    def reconcile_listing(self, listing: Listing, now: datetime) -> ReconciliationResult:
        result = ReconciliationResult(listing_id=listing.id)

        if not listing.is_active:
            settlement = self.store.get_settlement(listing.id)
            if settlement is not None:
                result.status = "already_settled"
                result.marketplace = settlement.marketplace
                result.settlement = settlement
            else:
                result.status = "not_active"
            return result

        winner = None
        for publication in ordered_publications(listing.publications, self.priority):
            answer = self._check(publication)
            result.checked.append(publication.marketplace)

            if not answer.success:
                result.errors[publication.marketplace] = answer.reason or "unknown error"
                self.events.emit(
                    "adapter_call_failed",
                    level="warning",
                    operation="check_sold",
                    listing_id=listing.id,
                    marketplace=publication.marketplace,
                    reason=answer.reason,
                )
                continue

            if answer.raw_status and answer.raw_status != publication.external_status:
                self.store.update_publication_status(
                    listing.id, publication.marketplace, answer.raw_status, now
                )

            if answer.sold:
                winner = publication.marketplace
                break

        if winner is None:
            return result

        result.marketplace = winner
        settlement = SettlementRecord(
            listing_id=listing.id,
            seller_id=listing.seller_id,
            gross_amount=listing.price,
            marketplace=winner,
            created_at=now,
        )

        try:
            recorded = self.store.record_sale(settlement, now)
        except DuplicateSettlementError:
            result.status = "already_settled"
            result.settlement = self.store.get_settlement(listing.id)
            self.events.emit("settlement_already_recorded", listing_id=listing.id, marketplace=winner)
            return result

        if recorded is None:
            result.status = "not_recorded"
            self.events.emit(
                "sale_not_recorded",
                level="warning",
                listing_id=listing.id,
                marketplace=winner,
                reason="listing is no longer active",
            )
            return result

        result.status = "sold"
        result.settlement = recorded
        self.events.emit(
            "listing_sold",
            listing_id=listing.id,
            seller_id=listing.seller_id,
            marketplace=winner,
            gross_amount=str(recorded.gross_amount),
        )

        if self.notifier is not None:
            self.notifier.notify(
                listing.seller_id,
                NotificationType.ITEM_SOLD,
                {"title": listing.title, "marketplace": winner, "price": recorded.gross_amount},
                listing_id=listing.id,
            )

        if self.end_other_publications:
            result.delisted = self._end_others(listing, winner, now)

        return result

    def _check(self, publication: MarketplacePublication) -> AdapterResult:
        adapter = self.adapters.get(publication.marketplace)
        if adapter is None:
            return AdapterResult.failure(
                publication.marketplace, f"No adapter configured for {publication.marketplace}"
            )
        return adapter.check_sold(publication.external_id)

    def _end_others(self, listing: Listing, winner: str, now: datetime) -> FanOutOutcome:
        outcome = fan_out(
            listing.id,
            "end",
            {
                name: pub.external_id
                for name, pub in listing.publications.items()
                if name != winner
            },
            self.adapters,
            lambda adapter, external_id: adapter.end(external_id),
            max_workers=self.max_workers,
        )

        for marketplace, answer in outcome.results.items():
            if answer.success:
                self.store.update_publication_status(
                    listing.id, marketplace, answer.raw_status or "ended", now
                )
            else:
                self.events.emit(
                    "adapter_call_failed",
                    level="warning",
                    operation="end",
                    listing_id=listing.id,
                    marketplace=marketplace,
                    reason=answer.reason,
                )
        return outcome
