"""Tests for listing creation, publication and take-down."""

from __future__ import annotations

from decimal import Decimal

import pytest

from snaplist.errors import InvalidTransitionError, ListingNotFoundError, ValidationError
from snaplist.schema.listing import ListingStatus

IMAGES = ["https://img.example.com/boots-1.jpg", "https://img.example.com/boots-2.jpg"]


class TestCreateListing:
    def test_publishes_to_every_configured_marketplace(self, lifecycle, store, ebay, facebook) -> None:
        result = lifecycle.create_listing("seller-1", "Leather Boots", "80.00", image_urls=IMAGES)

        listing = result.listing
        assert listing.status is ListingStatus.ACTIVE
        assert listing.price == listing.original_price == Decimal("80.00")
        assert listing.min_price == Decimal("40.00")
        assert sorted(listing.publications) == ["ebay", "facebook"]
        assert listing.publications["ebay"].external_id == f"ebay-{listing.id[:8]}"
        assert result.outcome.all_succeeded

        assert ebay.calls_to("publish") == [(listing.id, tuple(IMAGES))]
        assert store.get_listing(listing.id).publications["facebook"].listing_url.startswith("https://facebook")

    def test_explicit_minimum_and_content(self, lifecycle) -> None:
        result = lifecycle.create_listing(
            "seller-1",
            "Leather Boots",
            "80",
            min_price="60",
            image_urls=IMAGES,
            marketplaces=["ebay"],
            brand="Frye",
            size="10",
        )

        assert result.listing.min_price == Decimal("60.00")
        assert result.listing.brand == "Frye"
        assert list(result.listing.publications) == ["ebay"]

    def test_failed_marketplace_is_not_recorded(self, lifecycle, facebook, recorder) -> None:
        facebook.failing.add("publish")

        result = lifecycle.create_listing("seller-1", "Leather Boots", "80.00", image_urls=IMAGES)

        assert list(result.listing.publications) == ["ebay"]
        assert result.outcome.failed == ["facebook"]
        assert result.listing.status is ListingStatus.ACTIVE
        assert recorder.of("adapter_call_failed")[0]["operation"] == "publish"

    def test_unknown_marketplace_fails_only_itself(self, lifecycle) -> None:
        result = lifecycle.create_listing(
            "seller-1", "Leather Boots", "80.00", image_urls=IMAGES, marketplaces=["ebay", "mercari"]
        )

        assert result.outcome.succeeded == ["ebay"]
        assert "No adapter configured" in result.outcome.results["mercari"].reason

    def test_requires_images(self, lifecycle, store) -> None:
        with pytest.raises(ValidationError, match="image"):
            lifecycle.create_listing("seller-1", "Leather Boots", "80.00", image_urls=[])
        assert store.query_listings() == []

    @pytest.mark.parametrize(
        "overrides",
        [
            {"image_urls": "https://img.example.com/boots-1.jpg"},
            {"image_urls": IMAGES, "marketplaces": "ebay"},
            {"image_urls": [IMAGES[0], 42]},
        ],
    )
    def test_rejects_malformed_lists(self, lifecycle, store, ebay, overrides) -> None:
        with pytest.raises(ValidationError):
            lifecycle.create_listing("seller-1", "Leather Boots", "80.00", **overrides)

        assert store.query_listings() == []
        assert ebay.calls_to("publish") == []

    def test_requires_a_marketplace(self, lifecycle) -> None:
        with pytest.raises(ValidationError, match="marketplace"):
            lifecycle.create_listing("seller-1", "Leather Boots", "80.00", image_urls=IMAGES, marketplaces=[])

    def test_minimum_above_price(self, lifecycle) -> None:
        with pytest.raises(ValidationError, match="cannot exceed"):
            lifecycle.create_listing("seller-1", "Leather Boots", "80.00", min_price="90.00", image_urls=IMAGES)


class TestTakeDown:
    def test_remove_ends_everywhere(self, lifecycle, store, make_listing, ebay, facebook, recorder) -> None:
        listing = make_listing()

        result = lifecycle.remove_listing(listing.id)

        assert result.listing.status is ListingStatus.REMOVED
        assert len(ebay.calls_to("end")) == 1
        assert len(facebook.calls_to("end")) == 1
        assert result.listing.publications["ebay"].external_status == "ended"
        assert recorder.of("listing_removed")[0]["listing_id"] == listing.id

    def test_end_listing(self, lifecycle, make_listing) -> None:
        listing = make_listing()
        assert lifecycle.end_listing(listing.id).listing.status is ListingStatus.ENDED

    def test_marketplace_failure_still_removes(self, lifecycle, make_listing, ebay) -> None:
        listing = make_listing()
        ebay.failing.add("end")

        result = lifecycle.remove_listing(listing.id)

        assert result.listing.status is ListingStatus.REMOVED
        assert result.outcome.failed == ["ebay"]
        assert result.listing.publications["ebay"].external_status == "active"

    def test_terminal_listing_cannot_be_removed(self, lifecycle, make_listing, ebay) -> None:
        listing = make_listing()
        lifecycle.remove_listing(listing.id)

        with pytest.raises(InvalidTransitionError, match="already removed"):
            lifecycle.remove_listing(listing.id)
        assert len(ebay.calls_to("end")) == 1

    def test_sold_listing_cannot_be_ended(self, lifecycle, store, clock, make_listing) -> None:
        listing = make_listing()
        store.transition_status(listing.id, ListingStatus.SOLD, clock())

        with pytest.raises(InvalidTransitionError):
            lifecycle.end_listing(listing.id)

    def test_unknown_listing(self, lifecycle) -> None:
        with pytest.raises(ListingNotFoundError):
            lifecycle.remove_listing("missing")


class TestQueries:
    def test_detail_includes_history(self, lifecycle, decay_engine, clock, make_listing) -> None:
        listing = make_listing()
        clock.advance(days=7)
        decay_engine.run_decay_cycle()

        detail = lifecycle.get_listing_with_history(listing.id)

        assert detail["listing"]["price"] == "90.00"
        assert [entry["new_price"] for entry in detail["price_history"]] == ["90.00"]
        assert detail["settlement"] is None

    def test_list_filters(self, lifecycle, store, clock, make_listing) -> None:
        first = make_listing()
        clock.advance(minutes=1)
        second = make_listing(seller_id="seller-2")
        store.transition_status(second.id, ListingStatus.ENDED, clock())

        assert [l.id for l in lifecycle.list_listings(status="active")] == [first.id]
        assert [l.id for l in lifecycle.list_listings(seller_id="seller-2")] == [second.id]
        assert len(lifecycle.list_listings(limit=1)) == 1

    def test_list_rejects_unknown_status(self, lifecycle) -> None:
        with pytest.raises(ValidationError, match="Unknown listing status"):
            lifecycle.list_listings(status="archived")
