"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from checkout.api import create_app
from checkout.domain import ProductStatus
from tests.support import BUYER, product

TOKYO_JSON = {"postalCode": "100-0001", "region": "東京都", "city": "千代田区", "street": "千代田1-1"}
HOKKAIDO_JSON = {"postalCode": "060-0001", "region": "北海道", "city": "札幌市", "street": "北1条西1-1"}


@pytest.fixture
def client(service):
    with TestClient(create_app(service)) as client:
        yield client


def intent_body(items=("A", "B"), address=TOKYO_JSON, **extra) -> dict:
    body = {"buyerId": BUYER, "items": [{"productId": pid, "quantity": 1} for pid in items], **extra}
    if address is not None:
        body["address"] = address
    return body


def open_intent(client: TestClient, **kwargs) -> dict:
    response = client.post("/payment-intent", json=intent_body(**kwargs))
    assert response.status_code == 200, response.text
    return response.json()


def pay(client: TestClient, processor, intent: dict) -> dict:
    processor.confirm(intent["authorizationId"])
    response = client.post(f"/payment-intent/{intent['authorizationId']}/confirm")
    assert response.status_code == 200
    return response.json()


def order_body(intent: dict, **overrides) -> dict:
    return {
        "authorizationId": intent["authorizationId"],
        "buyerId": BUYER,
        "clientSecret": intent["clientSecret"],
        **overrides,
    }


def assert_error(response, status: int, code: str) -> dict:
    assert response.status_code == status, response.text
    error = response.json()["error"]
    assert error["code"] == code
    assert set(error) == {"code", "message", "retryable", "details"}
    return error


class TestPaymentIntent:
    def test_tokyo_total(self, client):
        intent = open_intent(client)

        assert intent["status"] == "pending"
        assert (intent["subtotal"], intent["shippingFee"], intent["total"]) == (8000, 700, 8700)
        assert intent["amount"] == 8700
        assert intent["currency"] == "jpy"
        assert intent["clientSecret"].startswith(intent["authorizationId"])
        assert intent["missing"] == []
        assert intent["totalMismatch"] is False

    def test_deleted_item_is_reported(self, client, catalog):
        catalog.delete("A")

        intent = open_intent(client)

        assert (intent["subtotal"], intent["shippingFee"], intent["total"]) == (5000, 0, 5000)
        assert intent["missing"] == ["A"]

    def test_client_total_is_ignored(self, client):
        first = open_intent(client)
        intent = open_intent(client, proposedTotal=8000)

        assert intent["amount"] == 8700
        assert intent["totalMismatch"] is True
        assert intent["authorizationId"] != first["authorizationId"]

    def test_snake_case_body_is_accepted(self, client):
        body = {"buyer_id": BUYER, "items": [{"product_id": "B"}], "address": TOKYO_JSON}

        response = client.post("/payment-intent", json=body)

        assert response.status_code == 200
        assert response.json()["total"] == 5000

    def test_stored_cart_is_used_without_items(self, client):
        open_intent(client)

        response = client.post("/payment-intent", json={"buyerId": BUYER, "address": TOKYO_JSON})

        assert response.json()["total"] == 8700

    def test_empty_cart(self, client):
        assert_error(client.post("/payment-intent", json=intent_body(items=())), 400, "EMPTY_CART")

    def test_zero_quantity(self, client):
        body = intent_body()
        body["items"][0]["quantity"] = 0

        error = assert_error(client.post("/payment-intent", json=body), 400, "INVALID_REQUEST")
        assert error["details"]["errors"]

    def test_missing_buyer(self, client):
        assert_error(client.post("/payment-intent", json={"items": []}), 400, "INVALID_REQUEST")

    def test_incomplete_address(self, client):
        address = {**TOKYO_JSON, "street": ""}

        error = assert_error(client.post("/payment-intent", json=intent_body(address=address)), 400, "ADDRESS_INCOMPLETE")
        assert error["details"] == {"missing": ["street"]}

    def test_no_address(self, client):
        assert_error(client.post("/payment-intent", json=intent_body(address=None)), 400, "ADDRESS_INCOMPLETE")

    def test_everything_deleted(self, client, catalog):
        catalog.delete("A")
        catalog.delete("B")

        assert_error(client.post("/payment-intent", json=intent_body()), 404, "PRODUCT_NOT_FOUND")

    def test_everything_sold(self, client, catalog):
        catalog.put(product("B", 5000, status=ProductStatus.SOLD))

        assert_error(client.post("/payment-intent", json=intent_body(items=("B",))), 409, "ITEM_UNAVAILABLE")

    def test_processor_outage(self, client, processor, settings):
        processor.fail_next(settings.processor_retry_times)

        error = assert_error(client.post("/payment-intent", json=intent_body()), 502, "PROCESSOR_UNAVAILABLE")
        assert error["retryable"] is True

    def test_amount_below_minimum(self, client, catalog):
        catalog.put(product("cheap", 10))

        assert_error(client.post("/payment-intent", json=intent_body(items=("cheap",))), 502, "AMOUNT_BELOW_MINIMUM")

    def test_region_edit_replaces_secret(self, client):
        first = open_intent(client)
        second = open_intent(client, address=HOKKAIDO_JSON)

        assert second["authorizationId"] != first["authorizationId"]
        assert second["clientSecret"] != first["clientSecret"]
        assert second["total"] == 9200


class TestConfirmAndEvents:
    def test_confirm(self, client, processor):
        authorization = pay(client, processor, open_intent(client))

        assert authorization["status"] == "authorized"
        assert authorization["amount"] == 8700

    def test_confirm_unknown(self, client):
        assert_error(client.post("/payment-intent/pi_nope/confirm"), 404, "AUTHORIZATION_NOT_FOUND")

    def test_succeeded_event(self, client, processor):
        intent = open_intent(client)
        processor.confirm(intent["authorizationId"])

        response = client.post(
            "/payment-events",
            json={"type": "payment_intent.succeeded", "intentId": intent["authorizationId"]},
        )

        assert response.status_code == 200
        assert response.json()["authorization"]["status"] == "authorized"

    def test_unconfirmed_success_event_cannot_place_an_order(self, client):
        intent = open_intent(client)

        response = client.post(
            "/payment-events",
            json={"type": "payment_intent.succeeded", "intentId": intent["authorizationId"]},
        )

        assert response.json()["authorization"]["status"] == "pending"
        assert_error(client.post("/orders", json=order_body(intent)), 409, "AUTHORIZATION_NOT_CONFIRMED")

    def test_unrelated_event(self, client):
        response = client.post("/payment-events", json={"type": "customer.created", "intentId": "cus_1"})

        assert response.json() == {"received": True, "authorization": None}


class TestOrders:
    def test_place_order(self, client, processor):
        intent = open_intent(client)
        pay(client, processor, intent)

        response = client.post("/orders", json=order_body(intent))

        assert response.status_code == 200
        body = response.json()
        assert body["orderId"].startswith("ord_")
        assert body["totalAmount"] == 8700
        assert body["orderStatus"] == "placed"
        assert body["replayed"] is False

    def test_double_submit(self, client, processor):
        intent = open_intent(client)
        pay(client, processor, intent)

        first = client.post("/orders", json=order_body(intent)).json()
        second = client.post("/orders", json=order_body(intent)).json()

        assert second["orderId"] == first["orderId"]
        assert second["replayed"] is True
        assert len(client.get("/orders", params={"buyerId": BUYER}).json()) == 1

    def test_stale_secret(self, client, processor):
        old = open_intent(client)
        open_intent(client, address=HOKKAIDO_JSON)
        processor.confirm(old["authorizationId"])

        assert_error(client.post("/orders", json=order_body(old)), 409, "AUTHORIZATION_STALE")

    def test_unpaid(self, client):
        intent = open_intent(client)

        assert_error(client.post("/orders", json=order_body(intent)), 409, "AUTHORIZATION_NOT_CONFIRMED")

    def test_other_buyer(self, client, processor):
        intent = open_intent(client)
        pay(client, processor, intent)

        assert_error(client.post("/orders", json=order_body(intent, buyerId="buyer-2")), 403, "BUYER_MISMATCH")

    def test_unknown_authorization(self, client):
        body = {"authorizationId": "pi_nope", "buyerId": BUYER}

        assert_error(client.post("/orders", json=body), 404, "AUTHORIZATION_NOT_FOUND")

    def test_item_sold_meanwhile(self, client, processor, catalog):
        intent = open_intent(client)
        pay(client, processor, intent)
        catalog.put(product("A", 3000, status=ProductStatus.SOLD))

        assert_error(client.post("/orders", json=order_body(intent)), 409, "ITEM_UNAVAILABLE")

    def test_order_views(self, client, processor):
        intent = open_intent(client)
        pay(client, processor, intent)
        order_id = client.post("/orders", json=order_body(intent)).json()["orderId"]

        order = client.get(f"/orders/{order_id}").json()

        assert order["orderId"] == order_id
        assert order["buyerId"] == BUYER
        assert [item["productId"] for item in order["items"]] == ["A", "B"]
        assert order["items"][0]["shippingPayer"] == "buyer"
        assert order["shippingAddress"]["postalCode"] == "100-0001"
        assert order["paymentStatus"] == "paid"
        assert client.get("/orders", params={"buyerId": BUYER}).json()[0]["orderId"] == order_id

    def test_unknown_order(self, client):
        assert_error(client.get("/orders/ord_nope"), 404, "ORDER_NOT_FOUND")

    def test_list_requires_buyer(self, client):
        assert_error(client.get("/orders"), 400, "INVALID_REQUEST")

    def test_status_transitions(self, client, processor):
        intent = open_intent(client)
        pay(client, processor, intent)
        order_id = client.post("/orders", json=order_body(intent)).json()["orderId"]

        shipped = client.post(f"/orders/{order_id}/status", json={"status": "shipped"})
        assert shipped.status_code == 200
        assert shipped.json()["orderStatus"] == "shipped"
        assert shipped.json()["shippedAt"] is not None

        assert_error(client.post(f"/orders/{order_id}/status", json={"status": "placed"}), 409, "INVALID_TRANSITION")

    def test_unknown_status_value(self, client):
        assert_error(client.post("/orders/ord_x/status", json={"status": "lost"}), 400, "INVALID_REQUEST")


class TestMisc:
    @pytest.mark.parametrize(
        ("params", "fee"),
        [
            ({"region": "東京都"}, 700),
            ({"region": "Hokkaido"}, 1200),
            ({"region": "沖縄県", "buyerPays": "false"}, 0),
            ({}, 0),
        ],
    )
    def test_shipping_fee(self, client, params, fee):
        response = client.get("/shipping-fee", params=params)

        assert response.status_code == 200
        assert response.json()["fee"] == fee

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
