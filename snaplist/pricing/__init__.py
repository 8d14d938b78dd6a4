from .price_decay import (
    CycleReport,
    PriceChangeResult,
    PriceDecayEngine,
    compute_decayed_price,
)

__all__ = ["CycleReport", "PriceChangeResult", "PriceDecayEngine", "compute_decayed_price"]
