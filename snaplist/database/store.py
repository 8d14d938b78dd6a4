"""
Listing Store contract.

The engines only rely on plain reads, conditional writes that report
whether they applied, and a uniqueness constraint on settlements per
listing. Any storage engine that offers those can back the system.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

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
)


class ListingStore(ABC):
    """Persistence collaborator for listings, settlements and payouts"""

    # Listings

    @abstractmethod
    def create_listing(self, listing: Listing) -> Listing:
        pass

    @abstractmethod
    def get_listing(self, listing_id: str) -> Optional[Listing]:
        pass

    @abstractmethod
    def query_listings(
        self,
        status: Optional[ListingStatus] = None,
        seller_id: Optional[str] = None,
        price_updated_before: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Listing]:
        """Listings matching every given filter, oldest first"""
        pass

    @abstractmethod
    def set_publication(self, listing_id: str, publication: MarketplacePublication) -> None:
        """Insert or replace the publication for (listing, marketplace)"""
        pass

    @abstractmethod
    def update_publication_status(
        self, listing_id: str, marketplace: str, external_status: str, now: datetime
    ) -> None:
        pass

    @abstractmethod
    def apply_price_change(self, entry: PriceHistoryEntry, now: datetime) -> bool:
        """
        Atomically set the new price and append the history entry.

        Applies only while the listing is ACTIVE and its price still equals
        entry.previous_price. Returns False (and writes nothing) otherwise.
        """
        pass

    @abstractmethod
    def transition_status(self, listing_id: str, new_status: ListingStatus, now: datetime) -> bool:
        """Move an ACTIVE listing to new_status; False if it was not ACTIVE"""
        pass

    @abstractmethod
    def list_price_history(self, listing_id: str) -> List[PriceHistoryEntry]:
        pass

    # Settlements

    @abstractmethod
    def record_sale(self, settlement: SettlementRecord, now: datetime) -> Optional[SettlementRecord]:
        """
        Atomically mark the listing SOLD and insert its settlement.

        The stored gross amount is the listing price at the moment of the
        write. Returns None if the listing is missing or no longer ACTIVE.

        Raises:
            DuplicateSettlementError: A settlement already exists for the listing
        """
        pass

    @abstractmethod
    def get_settlement(self, listing_id: str) -> Optional[SettlementRecord]:
        pass

    @abstractmethod
    def list_settlements(
        self, seller_id: str, status: Optional[SettlementStatus] = None
    ) -> List[SettlementRecord]:
        pass

    @abstractmethod
    def complete_settlement(
        self, listing_id: str, fees: Decimal, shipping_cost: Decimal, now: datetime
    ) -> bool:
        """Promote a PENDING settlement to COMPLETED; False if not PENDING"""
        pass

    # Payouts

    @abstractmethod
    def create_payout(self, payout: PayoutRequest) -> PayoutRequest:
        pass

    @abstractmethod
    def create_payout_if_covered(self, payout: PayoutRequest) -> Tuple[bool, Decimal]:
        """
        Insert a PENDING payout only if the seller's available balance covers it.

        The balance re-sum and the insert form one atomic step, serialized
        per seller across every connection to the same store. Returns
        (created, available balance before the request).
        """
        pass

    @abstractmethod
    def get_payout(self, payout_id: str) -> Optional[PayoutRequest]:
        pass

    @abstractmethod
    def list_payouts(
        self, seller_id: str, statuses: Optional[Sequence[PayoutStatus]] = None
    ) -> List[PayoutRequest]:
        """Payout requests for a seller, newest first"""
        pass

    @abstractmethod
    def transition_payout(
        self, payout_id: str, new_status: PayoutStatus, now: datetime, notes: str = ""
    ) -> bool:
        """Close a PENDING payout; False if it was not PENDING"""
        pass

    # Notifications

    @abstractmethod
    def create_notification(self, notification: Notification) -> Notification:
        pass

    @abstractmethod
    def list_notifications(self, seller_id: str, status: Optional[str] = None) -> List[Notification]:
        pass

    @abstractmethod
    def mark_notification_read(self, notification_id: str, now: datetime) -> bool:
        pass

    def close(self) -> None:
        pass
