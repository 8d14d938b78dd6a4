"""Wires the store, adapters and engines together from one AppConfig"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from .adapters import MarketplaceAdapter, build_adapters
from .config import AppConfig
from .database import ListingStore, open_store
from .events import EventChannel
from .ledger import SettlementLedger
from .notifications import NotificationManager
from .pricing import PriceDecayEngine
from .sales import SoldReconciliationEngine
from .schema.listing import utcnow
from .sync import LifecycleScheduler, ListingLifecycleManager


@dataclass
class Services:
    config: AppConfig
    store: ListingStore
    adapters: Dict[str, MarketplaceAdapter]
    events: EventChannel
    notifier: NotificationManager
    lifecycle: ListingLifecycleManager
    pricing: PriceDecayEngine
    sales: SoldReconciliationEngine
    ledger: SettlementLedger
    scheduler: LifecycleScheduler

    def close(self) -> None:
        self.notifier.shutdown()
        self.store.close()


def build_services(
    config: Optional[AppConfig] = None,
    store: Optional[ListingStore] = None,
    adapters: Optional[Dict[str, MarketplaceAdapter]] = None,
    events: Optional[EventChannel] = None,
    clock: Callable[[], datetime] = utcnow,
    monotonic: Callable[[], float] = time.monotonic,
) -> Services:
    """
    Build every component.

    store, adapters and events default to what the config describes;
    tests pass their own.
    """
    config = config or AppConfig.from_env()
    store = store if store is not None else open_store(config.database_url)
    adapters = adapters if adapters is not None else build_adapters(config)
    events = events or EventChannel()
    workers = config.scheduler.max_workers

    notifier = NotificationManager(store, smtp=config.smtp, clock=clock)
    lifecycle = ListingLifecycleManager(
        store, adapters, events=events, pricing=config.pricing, max_workers=workers, clock=clock
    )
    pricing = PriceDecayEngine(
        store,
        adapters,
        events=events,
        notifier=notifier,
        config=config.pricing,
        max_workers=workers,
        clock=clock,
        monotonic=monotonic,
    )
    sales = SoldReconciliationEngine(
        store,
        adapters,
        events=events,
        notifier=notifier,
        priority=config.marketplace_priority,
        max_workers=workers,
        clock=clock,
        monotonic=monotonic,
    )
    ledger = SettlementLedger(
        store, events=events, notifier=notifier, config=config.ledger, clock=clock
    )
    scheduler = LifecycleScheduler(
        pricing, sales, config=config.scheduler, events=events, clock=clock, monotonic=monotonic
    )

    return Services(
        config=config,
        store=store,
        adapters=adapters,
        events=events,
        notifier=notifier,
        lifecycle=lifecycle,
        pricing=pricing,
        sales=sales,
        ledger=ledger,
        scheduler=scheduler,
    )
