"""
Listing Schema
==============
Records shared by every part of the lifecycle engine: listings, their
per-marketplace publications, price history, settlements, payout requests
and in-app notifications.

Money is always a Decimal quantized to cents.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import ValidationError


CENT = Decimal("0.01")
# Largest value a NUMERIC(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")
DEFAULT_MIN_PRICE_RATIO = Decimal("0.5")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_money(value: Any) -> Decimal:
    """
    Convert a number (or numeric string) to a cent-precision Decimal.

    Floats go through str() so 72.9 stays 72.90 instead of 72.8999...

    Raises:
        ValidationError: If the value is not a finite number or does not fit
            a NUMERIC(12, 2) column
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    try:
        amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"Amount is too large: {value!r}")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"Amount is too large: {value!r}")
    return amount


def _new_id() -> str:
    return str(uuid.uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ListingStatus(Enum):
    """Listing states; everything except ACTIVE is terminal"""
    ACTIVE = "active"
    SOLD = "sold"
    ENDED = "ended"
    REMOVED = "removed"

    @property
    def is_terminal(self) -> bool:
        return self is not ListingStatus.ACTIVE


class PriceChangeReason(Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class SettlementStatus(Enum):
    PENDING = "pending"        # sale detected, funds not yet collectible
    COMPLETED = "completed"    # marketplace payment confirmed


class PayoutStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"


class NotificationType(Enum):
    PRICE_REDUCTION = "price_reduction"
    ITEM_SOLD = "item_sold"
    PAYOUT_REQUESTED = "payout_requested"
    PAYOUT_COMPLETED = "payout_completed"
    PAYOUT_REJECTED = "payout_rejected"


@dataclass
class MarketplacePublication:
    """Where a listing lives on one external marketplace"""
    marketplace: str
    external_id: str
    external_status: str = "active"
    listing_url: Optional[str] = None
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "marketplace": self.marketplace,
            "external_id": self.external_id,
            "external_status": self.external_status,
            "listing_url": self.listing_url,
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class Listing:
    """
    A single item listed on one or more marketplaces.

    Invariant while ACTIVE: min_price <= price <= original_price.
    original_price and min_price never change after creation.
    """
    seller_id: str
    title: str
    price: Decimal
    original_price: Decimal
    min_price: Decimal
    id: str = field(default_factory=_new_id)
    description: str = ""
    image_urls: List[str] = field(default_factory=list)
    condition: str = "Used - Good"
    category: Optional[str] = None
    brand: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    status: ListingStatus = ListingStatus.ACTIVE
    publications: Dict[str, MarketplacePublication] = field(default_factory=dict)
    last_price_update: datetime = field(default_factory=utcnow)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def new(
        cls,
        seller_id: str,
        title: str,
        price: Any,
        min_price: Any = None,
        min_price_ratio: Decimal = DEFAULT_MIN_PRICE_RATIO,
        now: Optional[datetime] = None,
        **content,
    ) -> "Listing":
        """
        Build a fresh ACTIVE listing.

        Price starts at the original price and the decay baseline is the
        creation time. min_price defaults to min_price_ratio of the price.

        Raises:
            ValidationError: If prices are missing, non-positive or inconsistent
        """
        if not seller_id:
            raise ValidationError("Seller ID is required")
        if not title:
            raise ValidationError("Title is required")

        original = to_money(price)
        if original <= 0:
            raise ValidationError("Price must be greater than zero")

        if min_price is None:
            floor = to_money(original * min_price_ratio)
        else:
            floor = to_money(min_price)
        if floor <= 0:
            raise ValidationError("Minimum price must be greater than zero")
        if floor > original:
            raise ValidationError(
                f"Minimum price {floor} cannot exceed the listing price {original}"
            )

        created = ensure_utc(now) if now else utcnow()
        return cls(
            seller_id=seller_id,
            title=title,
            price=original,
            original_price=original,
            min_price=floor,
            status=ListingStatus.ACTIVE,
            last_price_update=created,
            created_at=created,
            updated_at=created,
            **content,
        )

    @property
    def is_active(self) -> bool:
        return self.status is ListingStatus.ACTIVE

    @property
    def is_published(self) -> bool:
        return bool(self.publications)

    @property
    def at_minimum_price(self) -> bool:
        return self.price <= self.min_price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "title": self.title,
            "description": self.description,
            "image_urls": list(self.image_urls),
            "condition": self.condition,
            "category": self.category,
            "brand": self.brand,
            "size": self.size,
            "color": self.color,
            "price": str(self.price),
            "original_price": str(self.original_price),
            "min_price": str(self.min_price),
            "status": self.status.value,
            "publications": {
                name: pub.to_dict() for name, pub in self.publications.items()
            },
            "last_price_update": _iso(self.last_price_update),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class PriceHistoryEntry:
    """Append-only audit row for every applied price change"""
    listing_id: str
    previous_price: Decimal
    new_price: Decimal
    reason: PriceChangeReason
    created_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=_new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "listing_id": self.listing_id,
            "previous_price": str(self.previous_price),
            "new_price": str(self.new_price),
            "reason": self.reason.value,
            "created_at": _iso(self.created_at),
        }


@dataclass
class SettlementRecord:
    """Profit record for a sold listing; at most one per listing"""
    listing_id: str
    seller_id: str
    gross_amount: Decimal
    marketplace: str
    fees: Decimal = Decimal("0.00")
    shipping_cost: Decimal = Decimal("0.00")
    status: SettlementStatus = SettlementStatus.PENDING
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def net_amount(self) -> Decimal:
        return self.gross_amount - self.fees - self.shipping_cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "listing_id": self.listing_id,
            "seller_id": self.seller_id,
            "gross_amount": str(self.gross_amount),
            "fees": str(self.fees),
            "shipping_cost": str(self.shipping_cost),
            "net_amount": str(self.net_amount),
            "marketplace": self.marketplace,
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "completed_at": _iso(self.completed_at),
        }


@dataclass
class PayoutRequest:
    """Seller withdrawal; PENDING until completed or rejected, never re-opened"""
    seller_id: str
    amount: Decimal
    status: PayoutStatus = PayoutStatus.PENDING
    phone: Optional[str] = None
    notes: str = ""
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def reserves_funds(self) -> bool:
        """Pending and completed payouts count against the available balance"""
        return self.status is not PayoutStatus.REJECTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "amount": str(self.amount),
            "status": self.status.value,
            "phone": self.phone,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "completed_at": _iso(self.completed_at),
        }


@dataclass
class Notification:
    """In-app notification shown to a seller"""
    seller_id: str
    type: NotificationType
    message: str
    listing_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    status: str = "unread"
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=utcnow)
    read_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "listing_id": self.listing_id,
            "type": self.type.value,
            "message": self.message,
            "payload": dict(self.payload),
            "status": self.status,
            "created_at": _iso(self.created_at),
            "read_at": _iso(self.read_at),
        }
