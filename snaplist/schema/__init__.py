"""Listing, settlement and payout records"""

from .listing import (
    CENT,
    DEFAULT_MIN_PRICE_RATIO,
    Listing,
    ListingStatus,
    MarketplacePublication,
    Notification,
    NotificationType,
    PayoutRequest,
    PayoutStatus,
    PriceChangeReason,
    PriceHistoryEntry,
    SettlementRecord,
    SettlementStatus,
    ensure_utc,
    to_money,
    utcnow,
)

__all__ = [
    "CENT",
    "DEFAULT_MIN_PRICE_RATIO",
    "Listing",
    "ListingStatus",
    "MarketplacePublication",
    "Notification",
    "NotificationType",
    "PayoutRequest",
    "PayoutStatus",
    "PriceChangeReason",
    "PriceHistoryEntry",
    "SettlementRecord",
    "SettlementStatus",
    "ensure_utc",
    "to_money",
    "utcnow",
]
