"""Marketplace adapters and the registry that builds them from config"""

from typing import Dict, Optional

import requests

from .base_adapter import AdapterResult, MarketplaceAdapter
from .ebay_adapter import EbayAdapter
from .facebook_adapter import FacebookAdapter
from .fanout import FanOutOutcome, fan_out


ADAPTER_CLASSES = {
    EbayAdapter.name: EbayAdapter,
    FacebookAdapter.name: FacebookAdapter,
}


def get_adapter(marketplace: str, config, session: Optional[requests.Session] = None) -> MarketplaceAdapter:
    """
    Build one adapter from its config struct.

    Raises:
        ValueError: If the marketplace is unknown
    """
    try:
        adapter_class = ADAPTER_CLASSES[marketplace]
    except KeyError:
        raise ValueError(f"Unknown marketplace: {marketplace}")
    return adapter_class(config, session=session)


def build_adapters(app_config, session: Optional[requests.Session] = None) -> Dict[str, MarketplaceAdapter]:
    """Adapters for every enabled marketplace, sharing one HTTP session"""
    session = session or requests.Session()
    return {
        marketplace: get_adapter(marketplace, app_config.marketplace_config(marketplace), session)
        for marketplace in app_config.marketplaces
    }


__all__ = [
    "ADAPTER_CLASSES",
    "AdapterResult",
    "EbayAdapter",
    "FacebookAdapter",
    "FanOutOutcome",
    "MarketplaceAdapter",
    "build_adapters",
    "fan_out",
    "get_adapter",
]
