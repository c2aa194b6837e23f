"""Product API tests."""

from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from storefront.main import app
from storefront.models.promotion_event import RuleTargetType
from storefront.schemas.promotion_event import EventRuleCreate
from tests.conftest import OPEN_END, OPEN_START


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


class TestProductsAPI:
    def test_create_product(self, client: TestClient):
        category_id = str(uuid4())
        response = client.post(
            "/v1/products/",
            json={
                "name": "Pashmina Shawl",
                "market_price": "4500",
                "discount_price": "4000",
                "category_id": category_id,
                "stock_quantity": 12,
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Pashmina Shawl"
        assert Decimal(data["market_price"]) == Decimal("4500")
        assert Decimal(data["discount_price"]) == Decimal("4000")
        assert data["category_id"] == category_id
        assert data["stock_quantity"] == 12
        assert data["reserved_stock"] == 0

    def test_create_product_negative_price(self, client: TestClient):
        response = client.post("/v1/products/", json={"name": "Bad", "market_price": "-1"})
        assert response.status_code == 422

    def test_get_product(self, client: TestClient, make_product):
        product = make_product(name="Singing Bowl")
        response = client.get(f"/v1/products/{product.id}")
        assert response.status_code == 200
        assert response.json()["name"] == "Singing Bowl"

    def test_get_product_not_found(self, client: TestClient):
        response = client.get(f"/v1/products/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["detail"] == "Product not found"


class TestProductPriceAPI:
    def test_price_without_promotions(self, client: TestClient, make_product):
        product = make_product(market_price="1000", discount_price="900")
        response = client.get(f"/v1/products/{product.id}/price", params={"quantity": 2})
        assert response.status_code == 200
        data = response.json()
        assert data["quantity"] == 2
        assert Decimal(data["original_price"]) == Decimal("2000")
        assert Decimal(data["regular_discount"]) == Decimal("200")
        assert Decimal(data["base_price"]) == Decimal("1800")
        assert Decimal(data["event_discount"]) == Decimal("0")
        assert Decimal(data["final_price"]) == Decimal("1800")
        assert data["applied_event_id"] is None
        assert data["warnings"] == []

    def test_price_with_category_event(self, client: TestClient, make_product, make_event):
        category_id = uuid4()
        product = make_product(market_price="1000", discount_price="900", category_id=category_id)
        event = make_event(
            discount_value="10",
            start=OPEN_START,
            end=OPEN_END,
            name="Tihar Offer",
            rules=[
                EventRuleCreate(target_type=RuleTargetType.CATEGORY, target_value=str(category_id))
            ],
        )

        response = client.get(f"/v1/products/{product.id}/price")

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["event_discount"]) == Decimal("90")
        assert Decimal(data["final_price"]) == Decimal("810")
        assert data["applied_event_id"] == str(event.id)
        assert data["applied_event_name"] == "Tihar Offer"

    def test_event_outside_category_is_ignored(
        self, client: TestClient, make_product, make_event
    ):
        product = make_product(market_price="1000", category_id=uuid4())
        make_event(
            start=OPEN_START,
            end=OPEN_END,
            rules=[
                EventRuleCreate(target_type=RuleTargetType.CATEGORY, target_value=str(uuid4()))
            ],
        )
        response = client.get(f"/v1/products/{product.id}/price")
        assert Decimal(response.json()["final_price"]) == Decimal("1000")

    def test_event_store_down_returns_base_price(
        self, client: TestClient, make_product, make_event
    ):
        product = make_product(market_price="1000")
        make_event(start=OPEN_START, end=OPEN_END)

        with patch(
            "storefront.repositories.promotion_event_repository."
            "PromotionEventRepository.get_activated",
            side_effect=OperationalError("SELECT", {}, Exception("down")),
        ):
            response = client.get(f"/v1/products/{product.id}/price")

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["final_price"]) == Decimal("1000")
        assert data["warnings"]

    def test_price_not_found(self, client: TestClient):
        response = client.get(f"/v1/products/{uuid4()}/price")
        assert response.status_code == 404

    def test_quantity_bounds(self, client: TestClient, make_product):
        product = make_product()
        response = client.get(f"/v1/products/{product.id}/price", params={"quantity": 0})
        assert response.status_code == 422
