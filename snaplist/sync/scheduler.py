"""
Lifecycle Scheduler
===================
Recurring timer that drives the Price Decay Engine and the Sold
Reconciliation Engine. No task queue: each engine re-derives its candidate
set from the store on every run.

Every run gets a hard wall-clock budget. Listings not reached before the
budget expires stay eligible and are picked up on the next run.

Run this in the background:
    python -m snaplist.sync.scheduler
"""

import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..config import SchedulerConfig
from ..events import EventChannel
from ..pricing.price_decay import CycleReport, PriceDecayEngine
from ..sales.sales_sync import ReconciliationReport, SoldReconciliationEngine
from ..schema.listing import ensure_utc, utcnow


@dataclass
class SchedulerRun:
    """Reports of whatever ran during one scheduler tick"""

    decay: Optional[CycleReport] = None
    reconciliation: Optional[ReconciliationReport] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decay": self.decay.to_dict() if self.decay else None,
            "reconciliation": self.reconciliation.to_dict() if self.reconciliation else None,
        }


class LifecycleScheduler:
    """Triggers decay and reconciliation on independent intervals"""

    def __init__(
        self,
        decay_engine: PriceDecayEngine,
        reconciliation_engine: SoldReconciliationEngine,
        config: Optional[SchedulerConfig] = None,
        events: Optional[EventChannel] = None,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.decay_engine = decay_engine
        self.reconciliation_engine = reconciliation_engine
        self.config = config or SchedulerConfig()
        self.events = events or EventChannel()
        self.clock = clock
        self.monotonic = monotonic
        self._last_decay: Optional[float] = None
        self._last_reconciliation: Optional[float] = None
        self._stop = threading.Event()

    @staticmethod
    def _due(last_run: Optional[float], interval: float, tick: float) -> bool:
        return last_run is None or tick - last_run >= interval

    def decay_due(self) -> bool:
        return self._due(self._last_decay, self.config.decay_interval_seconds, self.monotonic())

    def reconciliation_due(self) -> bool:
        return self._due(
            self._last_reconciliation,
            self.config.reconciliation_interval_seconds,
            self.monotonic(),
        )

    def run_once(self, now: Optional[datetime] = None) -> SchedulerRun:
        """
        Run whichever engines are due.

        Returns:
            SchedulerRun with a report per engine that ran
        """
        run = SchedulerRun()

        if self.decay_due():
            started = self.monotonic()
            self._last_decay = started
            run.decay = self.decay_engine.run_decay_cycle(
                now=self._now(now),
                deadline=started + self.config.run_budget_seconds,
            )

        if self.reconciliation_due():
            started = self.monotonic()
            self._last_reconciliation = started
            run.reconciliation = self.reconciliation_engine.run_reconciliation(
                now=self._now(now),
                deadline=started + self.config.run_budget_seconds,
            )

        return run

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now else self.clock()

    def run_forever(self) -> None:
        """Tick every poll interval until stop() is called"""
        self._stop.clear()
        self.events.emit(
            "scheduler_started",
            decay_interval_seconds=self.config.decay_interval_seconds,
            reconciliation_interval_seconds=self.config.reconciliation_interval_seconds,
            run_budget_seconds=self.config.run_budget_seconds,
        )

        try:
            while not self._stop.is_set():
                try:
                    self.run_once()
                except Exception as e:
                    # the store may be briefly unavailable; next tick retries
                    self.events.emit("scheduler_run_failed", level="error", error=str(e))
                self._stop.wait(self.config.poll_interval_seconds)
        except KeyboardInterrupt:
            pass

        self.events.emit("scheduler_stopped")

    def stop(self) -> None:
        self._stop.set()


def main():
    """Main entry point for the lifecycle scheduler"""
    from ..config import AppConfig
    from ..events import configure_logging
    from ..services import build_services

    config = AppConfig.from_env()
    configure_logging(config.log_level, config.json_logs)
    config.validate()

    services = build_services(config)
    try:
        services.scheduler.run_forever()
    finally:
        services.close()


if __name__ == "__main__":
    main()
