"""
Base Marketplace Adapter
========================
Abstract base class for every external marketplace.

Each adapter offers the same four capabilities:
- publish(listing, image_urls)
- update_price(external_id, new_price)
- end(external_id)
- check_sold(external_id)

Calls are at-least-once and non-transactional. A failed call comes back as
an AdapterResult with success=False and a reason; callers treat that as
"unknown, retry later", never as a negative answer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from xml.etree.ElementTree import ParseError

import requests
import structlog

from ..errors import AdapterError
from ..schema.listing import Listing


logger = structlog.get_logger(__name__)


@dataclass
class AdapterResult:
    """Outcome of a single marketplace call"""

    marketplace: str
    success: bool
    external_id: Optional[str] = None
    listing_url: Optional[str] = None
    sold: bool = False
    raw_status: Optional[str] = None
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, marketplace: str, reason: str) -> "AdapterResult":
        return cls(marketplace=marketplace, success=False, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "marketplace": self.marketplace,
            "success": self.success,
            "external_id": self.external_id,
            "listing_url": self.listing_url,
            "sold": self.sold,
            "raw_status": self.raw_status,
            "reason": self.reason,
        }


class MarketplaceAdapter(ABC):
    """
    Abstract base class for marketplace adapters.

    Subclasses implement the underscore methods and may raise freely;
    the public methods turn transport and parsing errors into failed
    AdapterResults so one marketplace can never abort work on another.
    """

    #: Key used in publications, config and the priority list
    name: str = ""

    def __init__(self, config: Any = None, session: Optional[requests.Session] = None):
        """
        Initialize adapter.

        Args:
            config: Marketplace config struct, validated at startup
            session: Shared requests session (one is created if omitted)
        """
        self.config = config
        self.session = session or requests.Session()
        self.timeout = getattr(config, "timeout", 15.0)

    @abstractmethod
    def get_platform_name(self) -> str:
        """Human-readable marketplace name (e.g. "eBay")"""
        pass

    @abstractmethod
    def _publish(self, listing: Listing, image_urls: List[str]) -> AdapterResult:
        pass

    @abstractmethod
    def _update_price(self, external_id: str, new_price: Decimal) -> AdapterResult:
        pass

    @abstractmethod
    def _end(self, external_id: str) -> AdapterResult:
        pass

    @abstractmethod
    def _check_sold(self, external_id: str) -> AdapterResult:
        pass

    def validate_credentials(self) -> tuple[bool, Optional[str]]:
        """
        Validate the injected config.

        Returns:
            Tuple of (is_valid, error_message)
        """
        validate = getattr(self.config, "validate", None)
        if validate is None:
            return (True, None)
        missing = validate()
        if missing:
            return (False, "Missing " + ", ".join(missing))
        return (True, None)

    def publish(self, listing: Listing, image_urls: Optional[List[str]] = None) -> AdapterResult:
        """
        Create the listing on the marketplace.

        Returns:
            AdapterResult with external_id (and listing_url) on success
        """
        urls = image_urls if image_urls is not None else listing.image_urls
        return self._call("publish", self._publish, listing, urls)

    def update_price(self, external_id: str, new_price: Decimal) -> AdapterResult:
        return self._call("update_price", self._update_price, external_id, new_price)

    def end(self, external_id: str) -> AdapterResult:
        return self._call("end", self._end, external_id)

    def check_sold(self, external_id: str) -> AdapterResult:
        """
        Ask the marketplace whether the item sold.

        Returns:
            AdapterResult with sold and raw_status when success is True
        """
        return self._call("check_sold", self._check_sold, external_id)

    def _call(self, operation: str, func: Callable[..., AdapterResult], *args) -> AdapterResult:
        try:
            return func(*args)
        except requests.Timeout as e:
            reason = f"{self.get_platform_name()} {operation} timed out: {e}"
        except requests.RequestException as e:
            reason = f"{self.get_platform_name()} {operation} failed: {e}"
        except (AdapterError, ParseError, ValueError, KeyError) as e:
            reason = f"{self.get_platform_name()} {operation} returned an unusable response: {e}"

        logger.debug("adapter_call_error", marketplace=self.name, operation=operation, reason=reason)
        return AdapterResult.failure(self.name, reason)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(marketplace={self.name})"
