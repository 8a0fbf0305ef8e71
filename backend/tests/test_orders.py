"""
Order placement tests.

Verifies:
- Line, subtotal, VAT and total are computed from catalog prices
- Client-submitted amounts that disagree are rejected with details
- Order and items are created together, or not at all
- Only participants and admins can read an order
"""

import re

import pytest

from delivereth.models import Order, OrderItem, OrderStatusEvent, SecurityEvent
from delivereth.services import order_service
from delivereth.services.order_service import OrderError
from delivereth.validation import MAX_AMOUNT_CENTS, ValidationError

from conftest import place_order


class TestCreateOrderService:

    def test_two_heineken_crates(self, db_session, business_user, heineken):
        order = order_service.create_order(
            customer_id=business_user.id,
            delivery_address="Bole Road",
            items=[{"beverage_id": heineken.id, "quantity": 2}],
        )
        assert order.status == "placed"
        assert order.subtotal_cents == 53000
        assert order.vat_amount_cents == 7950
        assert order.delivery_fee_cents == 0
        assert order.total_cents == 60950

        items = order_service.get_order_items(order.id)
        assert len(items) == 1
        assert items[0].unit_price_cents == 26500
        assert items[0].subtotal_cents == 53000

    def test_delivery_fee_added_to_total(self, db_session, business_user, heineken):
        order = order_service.create_order(
            customer_id=business_user.id,
            delivery_address="Bole Road",
            items=[{"beverage_id": heineken.id, "quantity": 2}],
            delivery_fee_cents=5000,
        )
        assert order.total_cents == 53000 + 7950 + 5000

    def test_order_number_format(self, db_session, business_user, heineken):
        order = order_service.create_order(
            customer_id=business_user.id,
            delivery_address="Bole Road",
            items=[{"beverage_id": heineken.id, "quantity": 1}],
        )
        assert re.fullmatch(r"ET[A-Z0-9]{6}", order.order_number)
        assert order_service.get_order_by_number(order.order_number).id == order.id

    def test_customer_tin_defaults_to_account(self, db_session, business_user, heineken):
        order = order_service.create_order(
            customer_id=business_user.id,
            delivery_address="Bole Road",
            items=[{"beverage_id": heineken.id, "quantity": 1}],
        )
        assert order.customer_tin == "0012345678"

    def test_first_history_event(self, db_session, business_user, heineken):
        order = order_service.create_order(
            customer_id=business_user.id,
            delivery_address="Bole Road",
            items=[{"beverage_id": heineken.id, "quantity": 1}],
        )
        history = order_service.get_order_history(order.id)
        assert [(e.from_status, e.to_status) for e in history] == [(None, "placed")]

    def test_mismatched_total_rejected(self, db_session, business_user, heineken):
        with pytest.raises(OrderError) as exc:
            order_service.create_order(
                customer_id=business_user.id,
                delivery_address="Bole Road",
                items=[{"beverage_id": heineken.id, "quantity": 2}],
                total_cents=100,
            )
        mismatch = exc.value.details["mismatches"][0]
        assert mismatch == {"field": "total_cents", "submitted": 100, "computed": 60950}
        assert db_session.query(Order).count() == 0

    def test_unknown_beverage_leaves_nothing_behind(self, db_session, business_user, heineken):
        with pytest.raises(OrderError):
            order_service.create_order(
                customer_id=business_user.id,
                delivery_address="Bole Road",
                items=[
                    {"beverage_id": heineken.id, "quantity": 1},
                    {"beverage_id": 999999, "quantity": 1},
                ],
            )
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0
        assert db_session.query(OrderStatusEvent).count() == 0

    def test_computed_total_above_cap_rejected(self, db_session, business_user, catalog):
        coke = next(b for b in catalog if b.name == "Coca-Cola Crate")
        with pytest.raises(OrderError) as exc:
            order_service.create_order(
                customer_id=business_user.id,
                delivery_address="Bole Road",
                items=[{"beverage_id": coke.id, "quantity": 100_000}],
            )
        assert exc.value.details["max_amount_cents"] == MAX_AMOUNT_CENTS
        assert exc.value.details["computed"]["total_cents"] == 4_025_000_000
        assert db_session.query(Order).count() == 0

    def test_total_just_under_cap_accepted(self, db_session, business_user, heineken):
        order = order_service.create_order(
            customer_id=business_user.id,
            delivery_address="Bole Road",
            items=[{"beverage_id": heineken.id, "quantity": 32_813}],
        )
        assert order.total_cents == 999_976_175

        with pytest.raises(OrderError):
            order_service.create_order(
                customer_id=business_user.id,
                delivery_address="Bole Road",
                items=[{"beverage_id": heineken.id, "quantity": 32_814}],
            )

    def test_zero_quantity_rejected(self, db_session, business_user, heineken):
        with pytest.raises(ValidationError) as exc:
            order_service.create_order(
                customer_id=business_user.id,
                delivery_address="Bole Road",
                items=[{"beverage_id": heineken.id, "quantity": 0}],
            )
        assert str(exc.value).startswith("items[0]:")
        assert isinstance(exc.value.__cause__, ValidationError)

    def test_empty_order_rejected(self, db_session, business_user):
        with pytest.raises(OrderError):
            order_service.create_order(customer_id=business_user.id, delivery_address="Bole Road", items=[])

    def test_create_order_item_prices_from_catalog(self, db_session, business_user, catalog):
        order = order_service.create_order(
            customer_id=business_user.id,
            delivery_address="Bole Road",
            items=[{"beverage_id": catalog[0].id, "quantity": 1}],
        )
        sprite = next(b for b in catalog if b.name == "Sprite Crate")
        item = order_service.create_order_item(order, sprite, 3)
        db_session.commit()
        assert item.unit_price_cents == 35000
        assert item.subtotal_cents == 105000


class TestCreateOrderRoute:

    def test_created_with_items(self, client, business_headers, heineken):
        resp = client.post(
            "/api/orders",
            json={
                "delivery_address": "Bole Road",
                "delivery_fee_cents": 5000,
                "items": [{"beverage_id": heineken.id, "quantity": 2}],
            },
            headers=business_headers,
        )
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["order"]["subtotal_cents"] == 53000
        assert data["order"]["vat_amount_cents"] == 7950
        assert data["order"]["total_cents"] == 65950
        assert data["items"][0]["beverage"]["name"] == "Heineken Beer"

    def test_matching_client_amounts_accepted(self, client, business_headers, heineken):
        order = place_order(
            client, business_headers,
            [{"beverage_id": heineken.id, "quantity": 2, "unit_price_cents": 26500, "subtotal_cents": 53000}],
            subtotal_cents=53000, vat_amount_cents=7950, total_cents=60950,
        )
        assert order["total_cents"] == 60950

    def test_tampered_line_price_rejected(self, client, business_headers, heineken):
        resp = client.post(
            "/api/orders",
            json={
                "delivery_address": "Bole Road",
                "items": [{"beverage_id": heineken.id, "quantity": 2, "unit_price_cents": 100}],
            },
            headers=business_headers,
        )
        assert resp.status_code == 400
        data = resp.get_json()
        fields = [m["field"] for m in data["details"]["mismatches"]]
        assert fields == ["items[0].unit_price_cents"]
        assert data["details"]["computed"]["subtotal_cents"] == 53000

    def test_tampered_vat_rejected(self, client, business_headers, heineken):
        resp = client.post(
            "/api/orders",
            json={
                "delivery_address": "Bole Road",
                "items": [{"beverage_id": heineken.id, "quantity": 2}],
                "vat_amount_cents": 0,
            },
            headers=business_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.parametrize("claimed_total", [None, 4_025_000_000])
    def test_order_above_amount_cap_400(self, client, db_session, business_headers, catalog, claimed_total):
        coke = next(b for b in catalog if b.name == "Coca-Cola Crate")
        body = {
            "delivery_address": "Bole Road",
            "items": [{"beverage_id": coke.id, "quantity": 100_000}],
        }
        if claimed_total is not None:
            body["total_cents"] = claimed_total

        resp = client.post("/api/orders", json=body, headers=business_headers)
        assert resp.status_code == 400
        assert db_session.query(Order).count() == 0

    @pytest.mark.parametrize(
        "body",
        [
            {"items": [{"beverage_id": 1, "quantity": 1}]},
            {"delivery_address": "Bole Road"},
            {"delivery_address": "Bole Road", "items": []},
            {"delivery_address": "Bole Road", "items": ["x"]},
            {"delivery_address": "Bole Road", "items": [{"quantity": 1}]},
            {"delivery_address": "Bole Road", "items": [{"beverage_id": 1, "quantity": -2}]},
            {"delivery_address": "Bole Road", "items": [{"beverage_id": 1, "quantity": 1}], "delivery_fee_cents": -1},
            {"delivery_address": "Bole Road", "items": [{"beverage_id": 1, "quantity": 1}], "status": "completed"},
        ],
    )
    def test_invalid_payloads(self, client, business_headers, catalog, body):
        resp = client.post("/api/orders", json=body, headers=business_headers)
        assert resp.status_code == 400

    def test_any_account_type_can_order(self, client, stockist_headers, heineken):
        order = place_order(client, stockist_headers, [{"beverage_id": heineken.id, "quantity": 1}])
        assert order["status"] == "placed"


class TestOrderReads:

    def test_customer_orders_newest_first(self, client, business_headers, heineken):
        first = place_order(client, business_headers, [{"beverage_id": heineken.id, "quantity": 1}])
        second = place_order(client, business_headers, [{"beverage_id": heineken.id, "quantity": 2}])

        resp = client.get("/api/orders/customer", headers=business_headers)
        ids = [o["id"] for o in resp.get_json()["orders"]]
        assert ids == [second["id"], first["id"]]

    def test_customer_orders_scoped_to_caller(self, client, business_headers, other_business_headers, heineken):
        place_order(client, business_headers, [{"beverage_id": heineken.id, "quantity": 1}])
        resp = client.get("/api/orders/customer", headers=other_business_headers)
        assert resp.get_json()["orders"] == []

    def test_customer_reads_own_order(self, client, business_headers, heineken):
        order = place_order(client, business_headers, [{"beverage_id": heineken.id, "quantity": 1}])
        resp = client.get(f"/api/orders/{order['id']}", headers=business_headers)
        assert resp.status_code == 200
        assert resp.get_json()["order"]["order_number"] == order["order_number"]
        assert len(resp.get_json()["items"]) == 1

    def test_non_participant_forbidden(self, client, db_session, business_headers, other_business, other_business_headers, heineken):
        order = place_order(client, business_headers, [{"beverage_id": heineken.id, "quantity": 1}])
        resp = client.get(f"/api/orders/{order['id']}", headers=other_business_headers)
        assert resp.status_code == 403

        event = db_session.query(SecurityEvent).filter_by(event_type="NOT_ORDER_PARTICIPANT").one()
        assert event.user_id == other_business.id

    def test_unmatched_stockist_forbidden(self, client, business_headers, stockist_headers, heineken):
        order = place_order(client, business_headers, [{"beverage_id": heineken.id, "quantity": 1}])
        resp = client.get(f"/api/orders/{order['id']}", headers=stockist_headers)
        assert resp.status_code == 403

    def test_admin_reads_any_order(self, client, business_headers, admin_headers, heineken):
        order = place_order(client, business_headers, [{"beverage_id": heineken.id, "quantity": 1}])
        resp = client.get(f"/api/orders/{order['id']}", headers=admin_headers)
        assert resp.status_code == 200

    def test_unknown_order_404(self, client, business_headers):
        resp = client.get("/api/orders/999999", headers=business_headers)
        assert resp.status_code == 404
