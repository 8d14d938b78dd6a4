"""In-process Listing Store guarded by a single lock"""

import copy
import threading
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from .store import ListingStore
from ..errors import DuplicateSettlementError, ListingNotFoundError
from ..schema.listing import (
    Listing,
    ListingStatus,
    MarketplacePublication,
    Notification,
    PayoutRequest,
    PayoutStatus,
    PriceHistoryEntry,
    SettlementRecord,
    SettlementStatus,
    ensure_utc,
)


class MemoryListingStore(ListingStore):
    """
    Dictionary-backed store.

    Every read returns a copy, so callers never mutate stored state
    outside of the conditional write methods.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._listings: Dict[str, Listing] = {}
        self._history: Dict[str, List[PriceHistoryEntry]] = {}
        self._settlements: Dict[str, SettlementRecord] = {}  # keyed by listing id
        self._payouts: Dict[str, PayoutRequest] = {}
        self._notifications: Dict[str, Notification] = {}

    def create_listing(self, listing: Listing) -> Listing:
        with self._lock:
            self._listings[listing.id] = copy.deepcopy(listing)
            self._history.setdefault(listing.id, [])
            return copy.deepcopy(listing)

    def get_listing(self, listing_id: str) -> Optional[Listing]:
        with self._lock:
            listing = self._listings.get(listing_id)
            return copy.deepcopy(listing) if listing else None

    def query_listings(
        self,
        status: Optional[ListingStatus] = None,
        seller_id: Optional[str] = None,
        price_updated_before: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Listing]:
        cutoff = ensure_utc(price_updated_before) if price_updated_before else None
        with self._lock:
            matches = [
                listing
                for listing in self._listings.values()
                if (status is None or listing.status is status)
                and (seller_id is None or listing.seller_id == seller_id)
                and (cutoff is None or listing.last_price_update <= cutoff)
            ]
            matches.sort(key=lambda listing: listing.created_at)
            end = offset + limit if limit is not None else None
            return [copy.deepcopy(listing) for listing in matches[offset:end]]

    def _require(self, listing_id: str) -> Listing:
        listing = self._listings.get(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        return listing

    def set_publication(self, listing_id: str, publication: MarketplacePublication) -> None:
        with self._lock:
            listing = self._require(listing_id)
            listing.publications[publication.marketplace] = copy.deepcopy(publication)

    def update_publication_status(
        self, listing_id: str, marketplace: str, external_status: str, now: datetime
    ) -> None:
        with self._lock:
            publication = self._require(listing_id).publications.get(marketplace)
            if publication is not None:
                publication.external_status = external_status
                publication.updated_at = ensure_utc(now)

    def apply_price_change(self, entry: PriceHistoryEntry, now: datetime) -> bool:
        with self._lock:
            listing = self._listings.get(entry.listing_id)
            if listing is None or not listing.is_active or listing.price != entry.previous_price:
                return False
            now = ensure_utc(now)
            listing.price = entry.new_price
            listing.last_price_update = now
            listing.updated_at = now
            self._history.setdefault(listing.id, []).append(copy.deepcopy(entry))
            return True

    def transition_status(self, listing_id: str, new_status: ListingStatus, now: datetime) -> bool:
        with self._lock:
            listing = self._listings.get(listing_id)
            if listing is None or not listing.is_active:
                return False
            listing.status = new_status
            listing.updated_at = ensure_utc(now)
            return True

    def list_price_history(self, listing_id: str) -> List[PriceHistoryEntry]:
        with self._lock:
            return copy.deepcopy(self._history.get(listing_id, []))

    def record_sale(self, settlement: SettlementRecord, now: datetime) -> Optional[SettlementRecord]:
        with self._lock:
            if settlement.listing_id in self._settlements:
                raise DuplicateSettlementError(settlement.listing_id)
            listing = self._listings.get(settlement.listing_id)
            if listing is None or not listing.is_active:
                return None

            now = ensure_utc(now)
            stored = copy.deepcopy(settlement)
            stored.gross_amount = listing.price
            stored.created_at = now
            listing.status = ListingStatus.SOLD
            listing.updated_at = now
            self._settlements[listing.id] = stored
            return copy.deepcopy(stored)

    def get_settlement(self, listing_id: str) -> Optional[SettlementRecord]:
        with self._lock:
            settlement = self._settlements.get(listing_id)
            return copy.deepcopy(settlement) if settlement else None

    def list_settlements(
        self, seller_id: str, status: Optional[SettlementStatus] = None
    ) -> List[SettlementRecord]:
        with self._lock:
            matches = [
                s for s in self._settlements.values()
                if s.seller_id == seller_id and (status is None or s.status is status)
            ]
            matches.sort(key=lambda s: s.created_at, reverse=True)
            return copy.deepcopy(matches)

    def complete_settlement(
        self, listing_id: str, fees: Decimal, shipping_cost: Decimal, now: datetime
    ) -> bool:
        with self._lock:
            settlement = self._settlements.get(listing_id)
            if settlement is None or settlement.status is not SettlementStatus.PENDING:
                return False
            settlement.fees = fees
            settlement.shipping_cost = shipping_cost
            settlement.status = SettlementStatus.COMPLETED
            settlement.completed_at = ensure_utc(now)
            return True

    def create_payout(self, payout: PayoutRequest) -> PayoutRequest:
        with self._lock:
            self._payouts[payout.id] = copy.deepcopy(payout)
            return copy.deepcopy(payout)

    def create_payout_if_covered(self, payout: PayoutRequest) -> Tuple[bool, Decimal]:
        with self._lock:
            earned = sum(
                (s.net_amount for s in self._settlements.values()
                 if s.seller_id == payout.seller_id and s.status is SettlementStatus.COMPLETED),
                Decimal("0.00"),
            )
            reserved = sum(
                (p.amount for p in self._payouts.values()
                 if p.seller_id == payout.seller_id and p.reserves_funds),
                Decimal("0.00"),
            )
            available = earned - reserved
            if payout.amount > available:
                return False, available
            self._payouts[payout.id] = copy.deepcopy(payout)
            return True, available

    def get_payout(self, payout_id: str) -> Optional[PayoutRequest]:
        with self._lock:
            payout = self._payouts.get(payout_id)
            return copy.deepcopy(payout) if payout else None

    def list_payouts(
        self, seller_id: str, statuses: Optional[Sequence[PayoutStatus]] = None
    ) -> List[PayoutRequest]:
        with self._lock:
            matches = [
                p for p in self._payouts.values()
                if p.seller_id == seller_id and (statuses is None or p.status in statuses)
            ]
            matches.sort(key=lambda p: p.created_at, reverse=True)
            return copy.deepcopy(matches)

    def transition_payout(
        self, payout_id: str, new_status: PayoutStatus, now: datetime, notes: str = ""
    ) -> bool:
        with self._lock:
            payout = self._payouts.get(payout_id)
            if payout is None or payout.status is not PayoutStatus.PENDING:
                return False
            now = ensure_utc(now)
            payout.status = new_status
            payout.notes = notes
            payout.updated_at = now
            if new_status is PayoutStatus.COMPLETED:
                payout.completed_at = now
            return True

    def create_notification(self, notification: Notification) -> Notification:
        with self._lock:
            self._notifications[notification.id] = copy.deepcopy(notification)
            return copy.deepcopy(notification)

    def list_notifications(self, seller_id: str, status: Optional[str] = None) -> List[Notification]:
        with self._lock:
            matches = [
                n for n in self._notifications.values()
                if n.seller_id == seller_id and (status is None or n.status == status)
            ]
            matches.sort(key=lambda n: n.created_at, reverse=True)
            return copy.deepcopy(matches)

    def mark_notification_read(self, notification_id: str, now: datetime) -> bool:
        with self._lock:
            notification = self._notifications.get(notification_id)
            if notification is None or notification.status == "read":
                return False
            notification.status = "read"
            notification.read_at = ensure_utc(now)
            return True
