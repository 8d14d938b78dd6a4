"""
Facebook Marketplace Adapter
============================
Graph API adapter for Marketplace commerce listings.

- publish: POST /me/commerce_listings
- update_price: POST /{listing_id}
- end: DELETE /{listing_id}
- check_sold: GET /{listing_id}?fields=state  (state == "SOLD")
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

import requests

from .base_adapter import AdapterResult, MarketplaceAdapter
from ..config import FacebookConfig
from ..errors import AdapterError
from ..schema.listing import Listing


MAX_IMAGES = 10


class FacebookAdapter(MarketplaceAdapter):
    """Facebook Marketplace via the Graph API"""

    name = "facebook"

    def __init__(self, config: FacebookConfig, session: Optional[requests.Session] = None):
        super().__init__(config, session)

    @classmethod
    def from_env(cls) -> "FacebookAdapter":
        return cls(FacebookConfig.from_env())

    def get_platform_name(self) -> str:
        return "Facebook Marketplace"

    def _get_api_endpoint(self, endpoint: str) -> str:
        return f"{self.config.graph_url}/{endpoint.lstrip('/')}"

    def _params(self, **extra: str) -> Dict[str, str]:
        params = {"access_token": self.config.access_token or ""}
        params.update(extra)
        return params

    def _json(self, response: requests.Response) -> Dict[str, Any]:
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise AdapterError("Unexpected Graph API payload", marketplace=self.name)
        if "error" in data:
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise AdapterError(message or "Graph API error", marketplace=self.name)
        return data

    def convert_to_platform_format(self, listing: Listing, image_urls: List[str]) -> Dict[str, Any]:
        return {
            "name": listing.title,
            "description": listing.description or listing.title,
            "price": float(listing.price),
            "currency": "USD",
            "availability": "in stock",
            "condition": "new" if (listing.condition or "").lower().startswith("new") else "used",
            "shipping_options": [{"name": "Standard Shipping", "price": 10.00}],
            "images": [{"url": url} for url in image_urls[:MAX_IMAGES]],
            "brand": listing.brand or "SnapList",
            "category": listing.category or "CLOTHING_ACCESSORIES",
        }

    def _publish(self, listing: Listing, image_urls: List[str]) -> AdapterResult:
        response = self.session.post(
            self._get_api_endpoint("me/commerce_listings"),
            params=self._params(),
            json=self.convert_to_platform_format(listing, image_urls),
            timeout=self.timeout,
        )
        data = self._json(response)
        listing_id = data.get("id")
        if not listing_id:
            raise AdapterError("Graph API response has no listing id", marketplace=self.name)
        return AdapterResult(
            marketplace=self.name,
            success=True,
            external_id=str(listing_id),
            listing_url=f"https://www.facebook.com/marketplace/item/{listing_id}",
            raw_status="ACTIVE",
        )

    def _update_price(self, external_id: str, new_price: Decimal) -> AdapterResult:
        response = self.session.post(
            self._get_api_endpoint(external_id),
            params=self._params(),
            json={"price": float(new_price)},
            timeout=self.timeout,
        )
        data = self._json(response)
        if data.get("success") is not True:
            return AdapterResult.failure(self.name, "Graph API did not confirm the price update")
        return AdapterResult(marketplace=self.name, success=True, external_id=external_id)

    def _end(self, external_id: str) -> AdapterResult:
        response = self.session.delete(
            self._get_api_endpoint(external_id),
            params=self._params(),
            timeout=self.timeout,
        )
        data = self._json(response)
        if data.get("success") is not True:
            return AdapterResult.failure(self.name, "Graph API did not confirm the delete")
        return AdapterResult(
            marketplace=self.name,
            success=True,
            external_id=external_id,
            raw_status="DELETED",
        )

    def _check_sold(self, external_id: str) -> AdapterResult:
        response = self.session.get(
            self._get_api_endpoint(external_id),
            params=self._params(fields="state"),
            timeout=self.timeout,
        )
        data = self._json(response)
        state = data.get("state")
        if not state:
            raise AdapterError("Graph API response has no listing state", marketplace=self.name)
        return AdapterResult(
            marketplace=self.name,
            success=True,
            external_id=external_id,
            sold=state == "SOLD",
            raw_status=state,
        )
