"""
Marketplace fan-out.

Runs one call per marketplace a listing is published on, in parallel, and
collects the independent results into a per-listing outcome summary.
A failure on one marketplace never stops the others.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping

from .base_adapter import AdapterResult, MarketplaceAdapter


@dataclass
class FanOutOutcome:
    """Per-listing summary of one fan-out"""

    listing_id: str
    operation: str
    results: Dict[str, AdapterResult] = field(default_factory=dict)

    @property
    def succeeded(self) -> List[str]:
        return sorted(name for name, result in self.results.items() if result.success)

    @property
    def failed(self) -> List[str]:
        return sorted(name for name, result in self.results.items() if not result.success)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "operation": self.operation,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": {name: result.to_dict() for name, result in self.results.items()},
        }


def fan_out(
    listing_id: str,
    operation: str,
    targets: Mapping[str, Any],
    adapters: Mapping[str, MarketplaceAdapter],
    call: Callable[[MarketplaceAdapter, Any], AdapterResult],
    max_workers: int = 4,
) -> FanOutOutcome:
    """
    Call every target marketplace in parallel.

    Args:
        listing_id: Listing the calls belong to
        operation: Name for the outcome (publish, update_price, end)
        targets: marketplace -> argument handed to call (e.g. external id)
        adapters: Configured adapters by marketplace
        call: Function invoking the adapter for one target
        max_workers: Upper bound on concurrent marketplace calls

    Returns:
        FanOutOutcome with one AdapterResult per target
    """
    outcome = FanOutOutcome(listing_id=listing_id, operation=operation)
    runnable: Dict[str, Any] = {}

    for marketplace, argument in targets.items():
        if marketplace not in adapters:
            outcome.results[marketplace] = AdapterResult.failure(
                marketplace, f"No adapter configured for {marketplace}"
            )
        else:
            runnable[marketplace] = argument

    if not runnable:
        return outcome

    workers = max(1, min(max_workers, len(runnable)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            marketplace: executor.submit(call, adapters[marketplace], argument)
            for marketplace, argument in runnable.items()
        }
        for marketplace, future in futures.items():
            try:
                outcome.results[marketplace] = future.result()
            except Exception as e:
                outcome.results[marketplace] = AdapterResult.failure(marketplace, str(e))

    return outcome
