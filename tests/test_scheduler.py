"""Tests for the Lifecycle Scheduler's intervals, run budget and loop."""

from __future__ import annotations

from decimal import Decimal
from unittest import mock

import pytest

from snaplist.config import SchedulerConfig
from snaplist.sync import LifecycleScheduler


@pytest.fixture
def engines():
    decay = mock.Mock()
    decay.run_decay_cycle.return_value = None
    reconciliation = mock.Mock()
    reconciliation.run_reconciliation.return_value = None
    return decay, reconciliation


@pytest.fixture
def scheduler(engines, events, clock, monotonic) -> LifecycleScheduler:
    decay, reconciliation = engines
    config = SchedulerConfig(
        decay_interval_seconds=86400,
        reconciliation_interval_seconds=900,
        run_budget_seconds=600,
        poll_interval_seconds=0,
    )
    return LifecycleScheduler(decay, reconciliation, config=config, events=events, clock=clock, monotonic=monotonic)


class TestIntervals:
    def test_first_tick_runs_both(self, scheduler, engines, clock, monotonic) -> None:
        decay, reconciliation = engines

        scheduler.run_once()

        decay.run_decay_cycle.assert_called_once_with(now=clock(), deadline=monotonic.value + 600)
        reconciliation.run_reconciliation.assert_called_once_with(
            now=clock(), deadline=monotonic.value + 600
        )

    def test_nothing_runs_before_interval(self, scheduler, engines, monotonic) -> None:
        decay, reconciliation = engines
        scheduler.run_once()
        monotonic.advance(899)

        scheduler.run_once()

        assert decay.run_decay_cycle.call_count == 1
        assert reconciliation.run_reconciliation.call_count == 1

    def test_intervals_are_independent(self, scheduler, engines, monotonic) -> None:
        decay, reconciliation = engines
        scheduler.run_once()

        monotonic.advance(900)
        scheduler.run_once()
        assert decay.run_decay_cycle.call_count == 1
        assert reconciliation.run_reconciliation.call_count == 2

        monotonic.advance(86400)
        scheduler.run_once()
        assert decay.run_decay_cycle.call_count == 2
        assert reconciliation.run_reconciliation.call_count == 3

    def test_explicit_evaluation_time(self, scheduler, engines, clock) -> None:
        decay, _ = engines
        when = clock.advance(days=3)

        scheduler.run_once(now=when)

        assert decay.run_decay_cycle.call_args[1]["now"] == when


class TestLoop:
    def test_stop_ends_the_loop(self, scheduler, recorder) -> None:
        with mock.patch.object(scheduler, "run_once", side_effect=lambda: scheduler.stop()) as run_once:
            scheduler.run_forever()

        run_once.assert_called_once()
        assert recorder.names() == ["scheduler_started", "scheduler_stopped"]

    def test_failed_tick_is_reported_and_retried(self, scheduler, recorder) -> None:
        ticks = []

        def tick():
            ticks.append(1)
            if len(ticks) == 1:
                raise ConnectionError("database unavailable")
            scheduler.stop()

        with mock.patch.object(scheduler, "run_once", side_effect=tick):
            scheduler.run_forever()

        assert len(ticks) == 2
        assert recorder.of("scheduler_run_failed")[0]["error"] == "database unavailable"


class TestEndToEnd:
    def test_services_tick_decays_and_reconciles(self, services, store, clock, make_listing, ebay) -> None:
        decaying = make_listing()
        selling = make_listing(price="60.00")
        clock.advance(days=7)
        ebay.sold = True

        run = services.scheduler.run_once()

        assert run.decay.reduced == [decaying.id, selling.id]
        assert sorted(run.reconciliation.sold) == sorted([decaying.id, selling.id])
        assert store.get_settlement(selling.id).gross_amount == Decimal("54.00")
