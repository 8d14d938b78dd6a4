"""
SnapList: shared pytest fixtures

- Scriptable fake marketplace adapters
- In-memory Listing Store
- Controllable wall clock and monotonic clock
- Recorded event channel
- Engines wired the same way build_services does
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Tuple

import pytest
import requests

from snaplist.adapters.base_adapter import AdapterResult, MarketplaceAdapter
from snaplist.config import AppConfig, LedgerConfig, PricingConfig, SchedulerConfig
from snaplist.database import MemoryListingStore
from snaplist.errors import AdapterError
from snaplist.events import EventChannel
from snaplist.ledger import SettlementLedger
from snaplist.notifications import NotificationManager
from snaplist.pricing import PriceDecayEngine
from snaplist.sales import SoldReconciliationEngine
from snaplist.schema.listing import Listing, MarketplacePublication, SettlementRecord
from snaplist.services import build_services
from snaplist.sync import ListingLifecycleManager


T0 = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)
SELLER = "seller-1"


# ---------------------------------------------------------------------------
# Clocks & events
# ---------------------------------------------------------------------------


class FakeClock:
    """Wall clock that only moves when told to"""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeMonotonic:
    """Monotonic clock; each read moves it forward by step"""

    def __init__(self, start: float = 1000.0, step: float = 0.0):
        self.value = start
        self.step = step

    def __call__(self) -> float:
        current = self.value
        self.value += self.step
        return current

    def advance(self, seconds: float) -> None:
        self.value += seconds


class EventRecorder:
    def __init__(self):
        self.events: List[Tuple[str, Dict]] = []
        self._lock = threading.Lock()

    def __call__(self, event: str, fields: Dict) -> None:
        with self._lock:
            self.events.append((event, fields))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> List[Dict]:
        return [fields for event, fields in self.events if event == name]


# ---------------------------------------------------------------------------
# Fake marketplace
# ---------------------------------------------------------------------------


class FakeAdapter(MarketplaceAdapter):
    """
    In-memory marketplace.

    failing: operations that raise AdapterError
    timing_out: operations that raise requests.Timeout
    sold: what check_sold reports
    """

    def __init__(self, name: str):
        super().__init__(config=None, session=requests.Session())
        self.name = name
        self.sold = False
        self.failing = set()
        self.timing_out = set()
        self.calls: List[Tuple[str, tuple]] = []
        self._lock = threading.Lock()

    def get_platform_name(self) -> str:
        return self.name.title()

    def _record(self, operation: str, *args) -> None:
        with self._lock:
            self.calls.append((operation, args))
        if operation in self.timing_out:
            raise requests.Timeout(f"{self.name} did not answer")
        if operation in self.failing:
            raise AdapterError(f"{self.name} refused {operation}", marketplace=self.name)

    def calls_to(self, operation: str) -> List[tuple]:
        with self._lock:
            return [args for op, args in self.calls if op == operation]

    def _publish(self, listing, image_urls):
        self._record("publish", listing.id, tuple(image_urls))
        external_id = f"{self.name}-{listing.id[:8]}"
        return AdapterResult(
            marketplace=self.name,
            success=True,
            external_id=external_id,
            listing_url=f"https://{self.name}.example.com/{external_id}",
            raw_status="active",
        )

    def _update_price(self, external_id, new_price):
        self._record("update_price", external_id, new_price)
        return AdapterResult(marketplace=self.name, success=True, external_id=external_id)

    def _end(self, external_id):
        self._record("end", external_id)
        return AdapterResult(
            marketplace=self.name, success=True, external_id=external_id, raw_status="ended"
        )

    def _check_sold(self, external_id):
        self._record("check_sold", external_id)
        return AdapterResult(
            marketplace=self.name,
            success=True,
            external_id=external_id,
            sold=self.sold,
            raw_status="sold" if self.sold else "active",
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def events(recorder) -> EventChannel:
    channel = EventChannel()
    channel.subscribe(recorder)
    return channel


@pytest.fixture
def store() -> MemoryListingStore:
    return MemoryListingStore()


@pytest.fixture
def ebay() -> FakeAdapter:
    return FakeAdapter("ebay")


@pytest.fixture
def facebook() -> FakeAdapter:
    return FakeAdapter("facebook")


@pytest.fixture
def adapters(ebay, facebook) -> Dict[str, FakeAdapter]:
    return {"ebay": ebay, "facebook": facebook}


@pytest.fixture
def notifier(store, clock) -> NotificationManager:
    manager = NotificationManager(store, clock=clock)
    yield manager
    manager.shutdown()


@pytest.fixture
def decay_engine(store, adapters, events, notifier, clock, monotonic) -> PriceDecayEngine:
    return PriceDecayEngine(
        store,
        adapters,
        events=events,
        notifier=notifier,
        config=PricingConfig(),
        clock=clock,
        monotonic=monotonic,
    )


@pytest.fixture
def sales_engine(store, adapters, events, notifier, clock, monotonic) -> SoldReconciliationEngine:
    return SoldReconciliationEngine(
        store,
        adapters,
        events=events,
        notifier=notifier,
        priority=["ebay", "facebook"],
        clock=clock,
        monotonic=monotonic,
    )


@pytest.fixture
def ledger(store, events, notifier, clock) -> SettlementLedger:
    return SettlementLedger(
        store, events=events, notifier=notifier, config=LedgerConfig(), clock=clock
    )


@pytest.fixture
def lifecycle(store, adapters, events, clock) -> ListingLifecycleManager:
    return ListingLifecycleManager(store, adapters, events=events, clock=clock)


@pytest.fixture
def make_listing(store, clock):
    """Persist an ACTIVE listing already published on the given marketplaces"""

    def _make(
        price="100.00",
        min_price=None,
        marketplaces=("ebay", "facebook"),
        seller_id=SELLER,
        title="Vintage Denim Jacket",
    ) -> Listing:
        listing = Listing.new(
            seller_id,
            title,
            price,
            min_price=min_price,
            now=clock(),
            image_urls=["https://img.example.com/jacket-1.jpg"],
        )
        for marketplace in marketplaces:
            listing.publications[marketplace] = MarketplacePublication(
                marketplace=marketplace,
                external_id=f"{marketplace}-{listing.id[:8]}",
                updated_at=clock(),
            )
        return store.create_listing(listing)

    return _make


@pytest.fixture
def sell(store, clock, make_listing):
    """Record a sale for a fresh listing and return its settlement"""

    def _sell(price="100.00", marketplace="ebay", seller_id=SELLER) -> SettlementRecord:
        listing = make_listing(price=price, seller_id=seller_id)
        return store.record_sale(
            SettlementRecord(
                listing_id=listing.id,
                seller_id=seller_id,
                gross_amount=listing.price,
                marketplace=marketplace,
            ),
            clock(),
        )

    return _sell


@pytest.fixture
def services(store, adapters, events, clock, monotonic):
    config = AppConfig(
        database_url="memory://",
        scheduler=SchedulerConfig(poll_interval_seconds=0),
    )
    built = build_services(
        config=config,
        store=store,
        adapters=adapters,
        events=events,
        clock=clock,
        monotonic=monotonic,
    )
    yield built
    built.close()


@pytest.fixture
def client(services):
    from snaplist.web_app import create_app

    app = create_app(services)
    app.config["TESTING"] = True
    return app.test_client()
