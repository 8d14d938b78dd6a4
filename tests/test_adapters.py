"""Tests for the eBay and Facebook adapters, the registry and the fan-out helper."""

from __future__ import annotations

from decimal import Decimal
from unittest import mock

import pytest
import requests

from snaplist.adapters import (
    AdapterResult,
    EbayAdapter,
    FacebookAdapter,
    build_adapters,
    fan_out,
    get_adapter,
)
from snaplist.adapters.ebay_adapter import build_request, parse_response
from snaplist.config import AppConfig, EbayConfig, FacebookConfig
from snaplist.errors import AdapterError
from snaplist.schema.listing import Listing

NS = 'xmlns="urn:ebay:apis:eBLBaseComponents"'


def _xml_response(body: str) -> mock.Mock:
    response = mock.Mock(spec=requests.Response)
    response.content = f'<?xml version="1.0" encoding="utf-8"?>{body}'.encode("utf-8")
    response.raise_for_status.return_value = None
    return response


def _json_response(payload) -> mock.Mock:
    response = mock.Mock(spec=requests.Response)
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _get_item(status: str, quantity_sold: str) -> str:
    return (
        f"<GetItemResponse {NS}><Ack>Success</Ack><Item><ItemID>1234</ItemID>"
        f"<SellingStatus><ListingStatus>{status}</ListingStatus>"
        f"<QuantitySold>{quantity_sold}</QuantitySold></SellingStatus></Item></GetItemResponse>"
    )


@pytest.fixture
def session() -> mock.Mock:
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def ebay_adapter(session) -> EbayAdapter:
    config = EbayConfig(app_id="app", cert_id="cert", dev_id="dev", auth_token="token")
    return EbayAdapter(config, session=session)


@pytest.fixture
def facebook_adapter(session) -> FacebookAdapter:
    config = FacebookConfig(app_id="app", app_secret="secret", access_token="token")
    return FacebookAdapter(config, session=session)


@pytest.fixture
def listing() -> Listing:
    return Listing.new(
        "seller-1",
        "Wool Peacoat",
        "120.00",
        image_urls=[f"https://img.example.com/{i}.jpg" for i in range(15)],
        condition="New with tags",
    )


class TestEbayXml:
    def test_build_request(self) -> None:
        body = build_request("ReviseItem", {"Item": {"ItemID": "1234", "StartPrice": "90.00"}}).decode()
        assert "<ReviseItemRequest" in body
        assert NS in body
        assert "<ItemID>1234</ItemID>" in body
        assert "<StartPrice>90.00</StartPrice>" in body

    def test_lists_repeat_the_element(self) -> None:
        body = build_request("AddItem", {"PictureURL": ["a", "b"]}).decode()
        assert body.count("<PictureURL>") == 2

    def test_failure_ack_raises(self) -> None:
        content = (
            f"<AddItemResponse {NS}><Ack>Failure</Ack><Errors>"
            "<ShortMessage>Auth</ShortMessage><LongMessage>Invalid token</LongMessage>"
            "</Errors></AddItemResponse>"
        ).encode()
        with pytest.raises(AdapterError, match="Invalid token"):
            parse_response(content)

    def test_malformed_raises(self) -> None:
        with pytest.raises(AdapterError, match="Malformed"):
            parse_response(b"<not xml")

    def test_namespace_is_stripped(self) -> None:
        root = parse_response(_get_item("Active", "0").encode())
        assert root.findtext("Item/ItemID") == "1234"


class TestEbayAdapter:
    def test_publish(self, ebay_adapter, session, listing) -> None:
        session.post.return_value = _xml_response(
            f"<AddItemResponse {NS}><Ack>Success</Ack><ItemID>110011</ItemID></AddItemResponse>"
        )

        result = ebay_adapter.publish(listing)

        assert result.success
        assert result.external_id == "110011"
        assert result.listing_url == "https://www.ebay.com/itm/110011"

        _, kwargs = session.post.call_args
        assert kwargs["headers"]["X-EBAY-API-CALL-NAME"] == "AddItem"
        assert kwargs["headers"]["X-EBAY-API-IAF-TOKEN"] == "token"
        body = kwargs["data"].decode()
        assert body.count("<PictureURL>") == 12
        assert "<StartPrice>120.00</StartPrice>" in body
        assert "<ConditionID>1000</ConditionID>" in body

    def test_update_price(self, ebay_adapter, session) -> None:
        session.post.return_value = _xml_response(f"<ReviseItemResponse {NS}><Ack>Warning</Ack></ReviseItemResponse>")

        result = ebay_adapter.update_price("110011", Decimal("90.00"))

        assert result.success
        assert "<StartPrice>90.00</StartPrice>" in session.post.call_args[1]["data"].decode()

    @pytest.mark.parametrize(
        "status,quantity,sold",
        [("Completed", "1", True), ("Completed", "0", False), ("Active", "0", False)],
    )
    def test_check_sold(self, ebay_adapter, session, status, quantity, sold) -> None:
        session.post.return_value = _xml_response(_get_item(status, quantity))

        result = ebay_adapter.check_sold("1234")

        assert result.success
        assert result.sold is sold
        assert result.raw_status == status

    def test_check_sold_without_status_is_a_failure(self, ebay_adapter, session) -> None:
        session.post.return_value = _xml_response(f"<GetItemResponse {NS}><Ack>Success</Ack></GetItemResponse>")

        result = ebay_adapter.check_sold("1234")

        assert not result.success
        assert not result.sold

    def test_timeout_becomes_failed_result(self, ebay_adapter, session) -> None:
        session.post.side_effect = requests.Timeout("read timed out")

        result = ebay_adapter.end("1234")

        assert not result.success
        assert result.marketplace == "ebay"
        assert "timed out" in result.reason

    def test_http_error_becomes_failed_result(self, ebay_adapter, session) -> None:
        response = _xml_response("")
        response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
        session.post.return_value = response

        result = ebay_adapter.check_sold("1234")

        assert not result.success
        assert "503" in result.reason

    def test_sandbox_urls(self) -> None:
        config = EbayConfig(cert_id="SBX-abc")
        assert config.sandbox
        assert config.api_url == "https://api.sandbox.ebay.com/ws/api.dll"


class TestFacebookAdapter:
    def test_publish(self, facebook_adapter, session, listing) -> None:
        session.post.return_value = _json_response({"id": "987"})

        result = facebook_adapter.publish(listing)

        assert result.success
        assert result.external_id == "987"
        assert result.listing_url == "https://www.facebook.com/marketplace/item/987"

        args, kwargs = session.post.call_args
        assert args[0] == "https://graph.facebook.com/v18.0/me/commerce_listings"
        assert kwargs["params"] == {"access_token": "token"}
        assert kwargs["json"]["price"] == 120.0
        assert kwargs["json"]["condition"] == "new"
        assert len(kwargs["json"]["images"]) == 10

    def test_check_sold(self, facebook_adapter, session) -> None:
        session.get.return_value = _json_response({"id": "987", "state": "SOLD"})

        result = facebook_adapter.check_sold("987")

        assert result.sold
        assert result.raw_status == "SOLD"
        assert session.get.call_args[1]["params"]["fields"] == "state"

    def test_graph_error_is_a_failure(self, facebook_adapter, session) -> None:
        session.get.return_value = _json_response({"error": {"message": "Session expired"}})

        result = facebook_adapter.check_sold("987")

        assert not result.success
        assert "Session expired" in result.reason

    def test_unconfirmed_delete(self, facebook_adapter, session) -> None:
        session.delete.return_value = _json_response({"success": False})

        result = facebook_adapter.end("987")

        assert not result.success

    def test_update_price(self, facebook_adapter, session) -> None:
        session.post.return_value = _json_response({"success": True})

        result = facebook_adapter.update_price("987", Decimal("72.90"))

        assert result.success
        assert session.post.call_args[1]["json"] == {"price": 72.9}


class TestRegistry:
    def test_validate_credentials(self, session) -> None:
        adapter = EbayAdapter(EbayConfig(app_id="app"), session=session)
        valid, message = adapter.validate_credentials()
        assert not valid
        assert "EBAY_AUTH_TOKEN" in message

    def test_unknown_marketplace(self) -> None:
        with pytest.raises(ValueError, match="Unknown marketplace"):
            get_adapter("poshmark", None)

    def test_build_adapters_shares_session(self, session) -> None:
        adapters = build_adapters(AppConfig(), session=session)

        assert sorted(adapters) == ["ebay", "facebook"]
        assert adapters["ebay"].session is adapters["facebook"].session is session


class TestFanOut:
    def test_collects_independent_results(self) -> None:
        ok = mock.Mock()
        ok.end.return_value = AdapterResult("ebay", True)
        broken = mock.Mock()
        broken.end.side_effect = RuntimeError("boom")

        outcome = fan_out(
            "listing-1",
            "end",
            {"ebay": "1", "facebook": "2", "mercari": "3"},
            {"ebay": ok, "facebook": broken},
            lambda adapter, external_id: adapter.end(external_id),
        )

        assert outcome.succeeded == ["ebay"]
        assert outcome.failed == ["facebook", "mercari"]
        assert outcome.results["facebook"].reason == "boom"
        assert not outcome.all_succeeded
        ok.end.assert_called_once_with("1")

    def test_no_targets(self) -> None:
        outcome = fan_out("listing-1", "end", {}, {}, lambda adapter, arg: None)
        assert outcome.results == {}
        assert outcome.all_succeeded
