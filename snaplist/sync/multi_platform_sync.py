"""
Listing Lifecycle Manager
=========================
Creates listings on several marketplaces at once and takes them down again.

Key Features:
- Publish to all requested marketplaces in parallel
- Record a publication for every marketplace that accepted the listing
- End or remove a listing best-effort across marketplaces
- Listing detail with its full price history and settlement
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..adapters.base_adapter import MarketplaceAdapter
from ..adapters.fanout import FanOutOutcome, fan_out
from ..config import PricingConfig
from ..database.store import ListingStore
from ..errors import InvalidTransitionError, ListingNotFoundError, ValidationError
from ..events import EventChannel
from ..schema.listing import (
    Listing,
    ListingStatus,
    MarketplacePublication,
    utcnow,
)


@dataclass
class LifecycleResult:
    """A listing after a lifecycle operation plus the per-marketplace outcome"""

    listing: Listing
    outcome: FanOutOutcome

    def to_dict(self) -> Dict[str, Any]:
        return {
            "listing": self.listing.to_dict(),
            "marketplaces": self.outcome.to_dict(),
        }


class ListingLifecycleManager:
    """
    Manages a listing from creation to removal.

    Args:
        store: Listing Store
        adapters: Configured marketplace adapters by name
        events: Event channel for partial failures and state changes
        pricing: Supplies the default minimum price ratio
        max_workers: Upper bound on concurrent marketplace calls
    """

    def __init__(
        self,
        store: ListingStore,
        adapters: Mapping[str, MarketplaceAdapter],
        events: Optional[EventChannel] = None,
        pricing: Optional[PricingConfig] = None,
        max_workers: int = 4,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.adapters = adapters
        self.events = events or EventChannel()
        self.pricing = pricing or PricingConfig()
        self.max_workers = max_workers
        self.clock = clock

    def create_listing(
        self,
        seller_id: str,
        title: str,
        price: Any,
        min_price: Any = None,
        image_urls: Optional[Sequence[str]] = None,
        marketplaces: Optional[Sequence[str]] = None,
        **content,
    ) -> LifecycleResult:
        """
        Persist a new ACTIVE listing and publish it.

        Args:
            seller_id: Owning seller
            title: Listing title
            price: Asking price, also the original price
            min_price: Decay floor (defaults to the configured ratio of price)
            image_urls: Hosted image URLs, at least one
            marketplaces: Where to publish (defaults to every configured adapter)
            **content: description, condition, category, brand, size, color

        Returns:
            LifecycleResult with one publish result per marketplace

        Raises:
            ValidationError: Missing fields or inconsistent prices
        """
        if isinstance(image_urls, str) or isinstance(marketplaces, str):
            raise ValidationError("image_urls and marketplaces must be lists")
        if not image_urls:
            raise ValidationError("At least one image is required")
        if not all(isinstance(url, str) and url for url in image_urls):
            raise ValidationError("image_urls must contain URL strings")

        targets = list(marketplaces) if marketplaces is not None else list(self.adapters)
        if not targets:
            raise ValidationError("At least one marketplace is required")

        now = self.clock()
        listing = Listing.new(
            seller_id,
            title,
            price,
            min_price=min_price,
            min_price_ratio=self.pricing.min_price_ratio,
            now=now,
            image_urls=list(image_urls),
            **content,
        )
        self.store.create_listing(listing)
        self.events.emit(
            "listing_created",
            listing_id=listing.id,
            seller_id=seller_id,
            price=str(listing.price),
            min_price=str(listing.min_price),
            marketplaces=targets,
        )

        outcome = fan_out(
            listing.id,
            "publish",
            {marketplace: listing for marketplace in targets},
            self.adapters,
            lambda adapter, item: adapter.publish(item, item.image_urls),
            max_workers=self.max_workers,
        )

        for marketplace, result in outcome.results.items():
            if result.success and result.external_id:
                self.store.set_publication(
                    listing.id,
                    MarketplacePublication(
                        marketplace=marketplace,
                        external_id=result.external_id,
                        external_status=result.raw_status or "active",
                        listing_url=result.listing_url,
                        updated_at=now,
                    ),
                )
            else:
                self._report_failure(listing.id, "publish", marketplace, result.reason)

        return LifecycleResult(self.get_listing(listing.id), outcome)

    def remove_listing(self, listing_id: str) -> LifecycleResult:
        """Seller-initiated delete: end everywhere, then ACTIVE -> REMOVED"""
        return self._take_down(listing_id, ListingStatus.REMOVED)

    def end_listing(self, listing_id: str) -> LifecycleResult:
        """Close a listing without deleting it: end everywhere, then ACTIVE -> ENDED"""
        return self._take_down(listing_id, ListingStatus.ENDED)

    def _take_down(self, listing_id: str, new_status: ListingStatus) -> LifecycleResult:
        listing = self.get_listing(listing_id)
        if not listing.is_active:
            raise InvalidTransitionError(f"Listing is already {listing.status.value}")

        now = self.clock()
        outcome = fan_out(
            listing.id,
            "end",
            {name: pub.external_id for name, pub in listing.publications.items()},
            self.adapters,
            lambda adapter, external_id: adapter.end(external_id),
            max_workers=self.max_workers,
        )
        for marketplace, result in outcome.results.items():
            if result.success:
                self.store.update_publication_status(
                    listing.id, marketplace, result.raw_status or "ended", now
                )
            else:
                self._report_failure(listing.id, "end", marketplace, result.reason)

        if not self.store.transition_status(listing.id, new_status, now):
            latest = self.get_listing(listing.id)
            raise InvalidTransitionError(f"Listing is already {latest.status.value}")

        self.events.emit(
            f"listing_{new_status.value}",
            listing_id=listing.id,
            seller_id=listing.seller_id,
            marketplaces_failed=outcome.failed,
        )
        return LifecycleResult(self.get_listing(listing.id), outcome)

    def _report_failure(self, listing_id: str, operation: str, marketplace: str, reason: Optional[str]):
        self.events.emit(
            "adapter_call_failed",
            level="warning",
            operation=operation,
            listing_id=listing_id,
            marketplace=marketplace,
            reason=reason,
        )

    def get_listing(self, listing_id: str) -> Listing:
        listing = self.store.get_listing(listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        return listing

    def get_listing_with_history(self, listing_id: str) -> Dict[str, Any]:
        """Listing detail with its price trajectory and settlement, if sold"""
        listing = self.get_listing(listing_id)
        settlement = self.store.get_settlement(listing_id)
        return {
            "listing": listing.to_dict(),
            "price_history": [entry.to_dict() for entry in self.store.list_price_history(listing_id)],
            "settlement": settlement.to_dict() if settlement else None,
        }

    def list_listings(
        self,
        seller_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Listing]:
        try:
            listing_status = ListingStatus(status) if status else None
        except ValueError:
            raise ValidationError(f"Unknown listing status: {status}")
        return self.store.query_listings(
            status=listing_status, seller_id=seller_id, limit=limit, offset=offset
        )
