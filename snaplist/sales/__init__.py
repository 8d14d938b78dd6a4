from .sales_sync import (
    ReconciliationReport,
    ReconciliationResult,
    SoldReconciliationEngine,
    ordered_publications,
)

__all__ = [
    "ReconciliationReport",
    "ReconciliationResult",
    "SoldReconciliationEngine",
    "ordered_publications",
]
