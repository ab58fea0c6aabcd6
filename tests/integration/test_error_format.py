"""Integration tests for the standardized error envelope."""

from uuid import uuid4

import pytest

pytestmark = pytest.mark.integration

ORDERS_URL = "/api/v1/orders/"


def _assert_envelope(data):
    assert set(data) == {"type", "errors"}
    assert isinstance(data["errors"], list)
    assert data["errors"]
    for error in data["errors"]:
        assert {"code", "detail", "attr"} <= set(error)


class TestStandardizedErrors:
    def test_auth_error_has_standard_format(self, api_client):
        response = api_client.get(ORDERS_URL)
        assert response.status_code == 401
        data = response.json()
        _assert_envelope(data)
        assert data["type"] == "client_error"
        assert data["errors"][0]["code"] == "not_authenticated"

    def test_malformed_body_has_standard_format(self, auth_client):
        response = auth_client.post(ORDERS_URL, data="{", content_type="application/json")
        assert response.status_code == 400
        data = response.json()
        _assert_envelope(data)
        assert data["errors"][0]["code"] == "parse_error"

    def test_validation_error_names_the_field(self, auth_client, item):
        response = auth_client.post(
            ORDERS_URL,
            {"item_id": str(item.id), "quantity": 0, "merchant_reference": "100000000001"},
            format="json",
        )
        assert response.status_code == 400
        data = response.json()
        _assert_envelope(data)
        assert data["type"] == "validation_error"
        assert "quantity" in {error["attr"] for error in data["errors"]}


class TestDomainErrors:
    def test_unknown_target_is_404(self, auth_client, default_address):
        response = auth_client.post(
            ORDERS_URL,
            {"item_id": str(uuid4()), "merchant_reference": "100000000001"},
            format="json",
        )
        assert response.status_code == 404
        data = response.json()
        _assert_envelope(data)
        assert data["errors"][0]["code"] == "ITEM-NOT-FOUND"

    def test_insufficient_stock_is_409_and_names_the_option(
        self, auth_client, item, large, default_address
    ):
        response = auth_client.post(
            ORDERS_URL,
            {
                "item_id": str(item.id),
                "option_item_ids": [str(large.id)],
                "quantity": 2,
                "merchant_reference": "100000000001",
            },
            format="json",
        )
        assert response.status_code == 409
        data = response.json()
        _assert_envelope(data)
        assert data["type"] == "client_error"
        assert data["errors"][0]["code"] == "INSUFFICIENT-STOCK"
        assert "'L'" in data["errors"][0]["detail"]

    def test_unknown_order_is_404(self, auth_client):
        response = auth_client.get(f"{ORDERS_URL}{uuid4()}/")
        assert response.status_code == 404
        assert response.json()["errors"][0]["code"] == "ORDER-NOT-FOUND"
