"""
Errors
======
Error taxonomy for the listing lifecycle and settlement engine.

Only ValidationError (and its subclasses) is meant to reach a seller.
Adapter errors and persistence conflicts are logged and picked up again
on the next scheduled pass.
"""

from typing import List, Optional


class SnapListError(Exception):
    """Base class for all SnapList errors"""


class ValidationError(SnapListError):
    """Request rejected synchronously; never retried automatically"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class InvalidTransitionError(ValidationError):
    """Attempted to move a listing or payout out of a terminal state"""


class ListingNotFoundError(SnapListError):
    def __init__(self, listing_id: str):
        super().__init__(f"Listing not found: {listing_id}")
        self.listing_id = listing_id


class PayoutNotFoundError(SnapListError):
    def __init__(self, payout_id: str):
        super().__init__(f"Payout request not found: {payout_id}")
        self.payout_id = payout_id


class SettlementNotFoundError(SnapListError):
    def __init__(self, listing_id: str):
        super().__init__(f"No settlement recorded for listing: {listing_id}")
        self.listing_id = listing_id


class DuplicateSettlementError(SnapListError):
    """
    Raised by a store when a second settlement is inserted for a listing.

    Reconciliation treats this as "already settled", not as a failure.
    """

    def __init__(self, listing_id: str):
        super().__init__(f"Settlement already recorded for listing: {listing_id}")
        self.listing_id = listing_id


class AdapterError(SnapListError):
    """Marketplace call failed (timeout, auth failure, malformed response)"""

    def __init__(self, message: str, marketplace: Optional[str] = None):
        super().__init__(message)
        self.marketplace = marketplace


class ConfigurationError(SnapListError):
    """Required configuration is missing; raised once at startup"""

    def __init__(self, missing: List[str]):
        super().__init__(
            "Missing required configuration: " + ", ".join(missing)
        )
        self.missing = missing
