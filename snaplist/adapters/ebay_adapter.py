"""
eBay Adapter
============
Trading API adapter (AddItem, ReviseItem, EndItem, GetItem).

Requests are XML documents posted to api.dll with the call name in the
X-EBAY-API-CALL-NAME header. Credentials come from an EbayConfig injected
at construction.

Documentation: https://developer.ebay.com/devzone/xml/docs/reference/ebay/
"""

import xml.etree.ElementTree as ET
from decimal import Decimal
from typing import Any, Dict, List, Optional

import requests

from .base_adapter import AdapterResult, MarketplaceAdapter
from ..config import EbayConfig
from ..errors import AdapterError
from ..schema.listing import Listing


EBAY_NAMESPACE = "urn:ebay:apis:eBLBaseComponents"
MAX_PICTURES = 12
DEFAULT_CATEGORY_ID = "11450"  # Clothing, Shoes & Accessories

# Condition IDs: https://developer.ebay.com/devzone/finding/callref/Enums/conditionIdList.html
CONDITION_NEW = 1000
CONDITION_USED = 3000


def _append_fields(parent: ET.Element, data: Dict[str, Any]) -> None:
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, list):
            for item in value:
                _append_fields(parent, {key: item})
        elif isinstance(value, dict):
            _append_fields(ET.SubElement(parent, key), value)
        else:
            ET.SubElement(parent, key).text = str(value)


def build_request(call_name: str, fields: Dict[str, Any]) -> bytes:
    """Build a Trading API request document"""
    root = ET.Element(f"{call_name}Request", xmlns=EBAY_NAMESPACE)
    _append_fields(root, fields)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def parse_response(content: bytes) -> ET.Element:
    """
    Parse a Trading API response and check its Ack.

    Raises:
        AdapterError: If the response is not XML or Ack is Failure
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise AdapterError(f"Malformed eBay response: {e}", marketplace="ebay")

    for element in root.iter():
        if isinstance(element.tag, str) and "}" in element.tag:
            element.tag = element.tag.split("}", 1)[1]

    ack = root.findtext("Ack")
    if ack not in ("Success", "Warning"):
        message = (
            root.findtext("Errors/LongMessage")
            or root.findtext("Errors/ShortMessage")
            or f"Ack={ack}"
        )
        raise AdapterError(message, marketplace="ebay")
    return root


class EbayAdapter(MarketplaceAdapter):
    """
    eBay Trading API adapter.

    Sold detection: GetItem reports ListingStatus "Completed" once the
    fixed-price item has ended; a QuantitySold of 0 means it ended unsold.
    """

    name = "ebay"

    def __init__(self, config: EbayConfig, session: Optional[requests.Session] = None):
        super().__init__(config, session)

    @classmethod
    def from_env(cls) -> "EbayAdapter":
        return cls(EbayConfig.from_env())

    def get_platform_name(self) -> str:
        return "eBay"

    def _get_headers(self, call_name: str) -> Dict[str, str]:
        return {
            "X-EBAY-API-SITEID": self.config.site_id,
            "X-EBAY-API-COMPATIBILITY-LEVEL": self.config.compatibility_level,
            "X-EBAY-API-CALL-NAME": call_name,
            "X-EBAY-API-APP-NAME": self.config.app_id or "",
            "X-EBAY-API-DEV-NAME": self.config.dev_id or "",
            "X-EBAY-API-CERT-NAME": self.config.cert_id or "",
            "X-EBAY-API-IAF-TOKEN": self.config.auth_token or "",
            "Content-Type": "text/xml",
        }

    def _execute(self, call_name: str, fields: Dict[str, Any]) -> ET.Element:
        response = self.session.post(
            self.config.api_url,
            data=build_request(call_name, fields),
            headers=self._get_headers(call_name),
            timeout=self.timeout,
        )
        response.raise_for_status()
        return parse_response(response.content)

    def _item_url(self, item_id: str) -> str:
        return f"{self.config.item_url_base}{item_id}"

    def convert_to_platform_format(self, listing: Listing, image_urls: List[str]) -> Dict[str, Any]:
        condition_id = (
            CONDITION_NEW if (listing.condition or "").lower().startswith("new") else CONDITION_USED
        )
        return {
            "Item": {
                "Title": listing.title[:80],
                "Description": listing.description or listing.title,
                "PrimaryCategory": {"CategoryID": listing.category or DEFAULT_CATEGORY_ID},
                "StartPrice": str(listing.price),
                "ConditionID": condition_id,
                "Country": "US",
                "Currency": "USD",
                "DispatchTimeMax": 3,
                "ListingDuration": "GTC",
                "ListingType": "FixedPriceItem",
                "Quantity": 1,
                "PictureDetails": {"PictureURL": list(image_urls[:MAX_PICTURES])},
                "ReturnPolicy": {
                    "ReturnsAcceptedOption": "ReturnsAccepted",
                    "RefundOption": "MoneyBack",
                    "ReturnsWithinOption": "Days_30",
                    "ShippingCostPaidByOption": "Buyer",
                },
                "ShippingDetails": {
                    "ShippingType": "Flat",
                    "ShippingServiceOptions": {
                        "ShippingServicePriority": 1,
                        "ShippingService": "USPSPriority",
                        "ShippingServiceCost": "10.00",
                    },
                },
                "Site": "US",
            }
        }

    def _publish(self, listing: Listing, image_urls: List[str]) -> AdapterResult:
        root = self._execute("AddItem", self.convert_to_platform_format(listing, image_urls))
        item_id = root.findtext("ItemID")
        if not item_id:
            raise AdapterError("AddItem response has no ItemID", marketplace=self.name)
        return AdapterResult(
            marketplace=self.name,
            success=True,
            external_id=item_id,
            listing_url=self._item_url(item_id),
            raw_status="Active",
        )

    def _update_price(self, external_id: str, new_price: Decimal) -> AdapterResult:
        self._execute("ReviseItem", {"Item": {"ItemID": external_id, "StartPrice": str(new_price)}})
        return AdapterResult(marketplace=self.name, success=True, external_id=external_id)

    def _end(self, external_id: str) -> AdapterResult:
        self._execute("EndItem", {"ItemID": external_id, "EndingReason": "NotAvailable"})
        return AdapterResult(
            marketplace=self.name,
            success=True,
            external_id=external_id,
            raw_status="Ended",
        )

    def _check_sold(self, external_id: str) -> AdapterResult:
        root = self._execute("GetItem", {"ItemID": external_id})
        status = root.findtext("Item/SellingStatus/ListingStatus")
        if not status:
            raise AdapterError("GetItem response has no ListingStatus", marketplace=self.name)

        quantity_sold = root.findtext("Item/SellingStatus/QuantitySold")
        sold = status == "Completed" and quantity_sold != "0"
        return AdapterResult(
            marketplace=self.name,
            success=True,
            external_id=external_id,
            sold=sold,
            raw_status=status,
            metadata={"quantity_sold": quantity_sold},
        )
