"""
routes.py
HTTP routes: listings, payouts, profits, notifications
"""

from decimal import Decimal

from flask import Blueprint, current_app, jsonify, request

from .errors import ValidationError
from .schema.listing import SettlementStatus


listings_bp = Blueprint("listings", __name__, url_prefix="/api/listings")
payouts_bp = Blueprint("payouts", __name__, url_prefix="/api/payouts")
profits_bp = Blueprint("profits", __name__, url_prefix="/api/profits")
notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")

BLUEPRINTS = (listings_bp, payouts_bp, profits_bp, notifications_bp)

LISTING_CONTENT_FIELDS = ("description", "condition", "category", "brand", "size", "color")
PROFIT_LISTING_FIELDS = (
    "title", "description", "image_urls", "price", "original_price", "status", "publications",
)


def _services():
    return current_app.config["SERVICES"]


def _body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _require(data, name):
    value = data.get(name)
    if value in (None, ""):
        raise ValidationError(f"{name} is required")
    return value


def _list_field(data, name):
    value = data.get(name)
    if value is not None and not isinstance(value, list):
        raise ValidationError(f"{name} must be a list")
    return value


# ============================================================================
# LISTINGS
# ============================================================================

@listings_bp.route("", methods=["POST"])
def create_listing():
    """Create a listing and publish it to the requested marketplaces."""
    data = _body()
    content = {name: data[name] for name in LISTING_CONTENT_FIELDS if data.get(name) is not None}

    result = _services().lifecycle.create_listing(
        seller_id=_require(data, "seller_id"),
        title=_require(data, "title"),
        price=_require(data, "price"),
        min_price=data.get("min_price"),
        image_urls=_list_field(data, "image_urls") or [],
        marketplaces=_list_field(data, "marketplaces"),
        **content,
    )
    return jsonify({"success": True, **result.to_dict()}), 201


@listings_bp.route("", methods=["GET"])
def list_listings():
    listings = _services().lifecycle.list_listings(
        seller_id=request.args.get("seller_id"),
        status=request.args.get("status"),
        limit=request.args.get("limit", 20, type=int),
        offset=request.args.get("offset", 0, type=int),
    )
    return jsonify({
        "success": True,
        "listings": [listing.to_dict() for listing in listings],
        "count": len(listings),
    })


@listings_bp.route("/<listing_id>", methods=["GET"])
def get_listing(listing_id):
    detail = _services().lifecycle.get_listing_with_history(listing_id)
    return jsonify({"success": True, **detail})


@listings_bp.route("/<listing_id>/price", methods=["PUT"])
def update_price(listing_id):
    """Manual price change; bypasses decay but not the minimum price."""
    data = _body()
    result = _services().pricing.update_listing_price(listing_id, _require(data, "price"))

    if result.conflicted:
        return jsonify({
            "success": False,
            "message": "Listing changed while updating the price; please retry",
            "result": result.to_dict(),
        }), 409
    return jsonify({"success": True, "result": result.to_dict()})


@listings_bp.route("/<listing_id>/reduce-price", methods=["POST"])
def reduce_price(listing_id):
    """Apply one automatic reduction now, without waiting for the decay period."""
    services = _services()
    listing = services.lifecycle.get_listing(listing_id)
    result = services.pricing.reduce_listing_price(listing, ignore_schedule=True)

    if result.conflicted:
        return jsonify({
            "success": False,
            "message": "Listing changed while reducing the price; please retry",
            "result": result.to_dict(),
        }), 409
    return jsonify({"success": True, "result": result.to_dict()})


@listings_bp.route("/<listing_id>", methods=["DELETE"])
def remove_listing(listing_id):
    result = _services().lifecycle.remove_listing(listing_id)
    return jsonify({"success": True, **result.to_dict()})


@listings_bp.route("/<listing_id>/end", methods=["POST"])
def end_listing(listing_id):
    result = _services().lifecycle.end_listing(listing_id)
    return jsonify({"success": True, **result.to_dict()})


@listings_bp.route("/<listing_id>/check-sold", methods=["GET"])
def check_sold(listing_id):
    result = _services().sales.check_listing(listing_id)
    return jsonify({"success": True, "result": result.to_dict()})


# ============================================================================
# PAYOUTS
# ============================================================================

@payouts_bp.route("/available/<seller_id>", methods=["GET"])
def available_balance(seller_id):
    summary = _services().ledger.balance_summary(seller_id)
    return jsonify({"success": True, "amount": str(summary.available), "balance": summary.to_dict()})


@payouts_bp.route("", methods=["POST"])
def request_payout():
    data = _body()
    payout = _services().ledger.request_payout(
        _require(data, "seller_id"),
        _require(data, "amount"),
        phone=data.get("phone"),
    )
    return jsonify({"success": True, "payout": payout.to_dict()}), 201


@payouts_bp.route("/user/<seller_id>", methods=["GET"])
def list_payouts(seller_id):
    payouts = _services().ledger.list_payouts(seller_id)
    return jsonify({"success": True, "payouts": [payout.to_dict() for payout in payouts]})


@payouts_bp.route("/<payout_id>", methods=["PUT"])
def update_payout(payout_id):
    data = _body()
    payout = _services().ledger.update_payout_status(
        payout_id, _require(data, "status"), notes=data.get("notes") or ""
    )
    return jsonify({"success": True, "payout": payout.to_dict()})


# ============================================================================
# PROFITS
# ============================================================================

@profits_bp.route("", methods=["GET"])
def list_profits():
    seller_id = request.args.get("seller_id")
    if not seller_id:
        raise ValidationError("seller_id is required")

    status = request.args.get("status")
    try:
        settlement_status = SettlementStatus(status) if status else None
    except ValueError:
        raise ValidationError("Valid status is required (pending or completed)")

    settlements = _services().ledger.list_settlements(seller_id, status=settlement_status)
    return jsonify({
        "success": True,
        "profits": [settlement.to_dict() for settlement in settlements],
        "total": str(sum((s.net_amount for s in settlements), Decimal("0.00"))),
        "count": len(settlements),
    })


@profits_bp.route("/summary", methods=["GET"])
def profit_summary():
    seller_id = request.args.get("seller_id")
    if not seller_id:
        raise ValidationError("seller_id is required")
    return jsonify({"success": True, "summary": _services().ledger.profit_summary(seller_id)})


@profits_bp.route("/<listing_id>", methods=["GET"])
def get_profit(listing_id):
    """A single settlement with a summary of the listing it came from."""
    services = _services()
    settlement = services.ledger.get_settlement(listing_id)
    listing = services.lifecycle.get_listing(listing_id).to_dict()
    summary = {name: listing[name] for name in PROFIT_LISTING_FIELDS}
    return jsonify({"success": True, "profit": {**settlement.to_dict(), "listing": summary}})


@profits_bp.route("/<listing_id>", methods=["PUT"])
def complete_settlement(listing_id):
    """Operator confirms marketplace payment for a sale."""
    data = _body()
    if data.get("status", "completed") != SettlementStatus.COMPLETED.value:
        raise ValidationError("Settlements can only be moved to completed")

    settlement = _services().ledger.complete_settlement(
        listing_id,
        fees=data.get("fees"),
        shipping_cost=data.get("shipping_cost"),
    )
    return jsonify({"success": True, "profit": settlement.to_dict()})


# ============================================================================
# NOTIFICATIONS
# ============================================================================

@notifications_bp.route("/<seller_id>", methods=["GET"])
def list_notifications(seller_id):
    unread_only = request.args.get("unread", "").lower() in ("1", "true", "yes")
    notifications = _services().notifier.list_notifications(seller_id, unread_only=unread_only)
    return jsonify({
        "success": True,
        "notifications": [notification.to_dict() for notification in notifications],
    })


@notifications_bp.route("/<notification_id>/read", methods=["PUT"])
def mark_notification_read(notification_id):
    updated = _services().notifier.mark_read(notification_id)
    return jsonify({"success": updated})
