from .multi_platform_sync import LifecycleResult, ListingLifecycleManager
from .scheduler import LifecycleScheduler, SchedulerRun

__all__ = [
    "LifecycleResult",
    "LifecycleScheduler",
    "ListingLifecycleManager",
    "SchedulerRun",
]
