"""
VAT receipt tests.

Verifies:
- Receipting a delivered order issues the receipt and completes the order
- One receipt per order (second attempt is 409)
- Orders that are not delivered, or lack TINs, cannot be receipted
- Receipt reads are limited to participants, van sales agents and admins
"""

import re

import pytest
from sqlalchemy.exc import IntegrityError

from delivereth.models import Order, SecurityEvent, VatReceipt
from delivereth.services import order_service, receipt_service
from delivereth.services.receipt_service import (
    DuplicateReceiptError,
    ReceiptError,
    ReceiptNotFoundError,
)

from conftest import deliver_order, place_order


@pytest.fixture
def delivered_order(client, business_headers, stockist_user, heineken):
    order = place_order(
        client, business_headers,
        [{"beverage_id": heineken.id, "quantity": 2}],
        delivery_fee_cents=5000,
    )
    deliver_order(client, business_headers, order["id"], stockist_user.id)
    return order


class TestReceiptService:

    def test_issue_completes_order(self, db_session, delivered_order, business_user):
        receipt = receipt_service.create_vat_receipt(delivered_order["id"], issued_by_user_id=business_user.id)

        assert re.fullmatch(r"VAT-[A-Z0-9]{8}", receipt.receipt_number)
        assert receipt.seller_name == "Kazanchis Depot"
        assert receipt.seller_tin == "0098765432"
        assert receipt.buyer_name == "Bole Cafe"
        assert receipt.buyer_tin == "0012345678"
        assert receipt.subtotal_cents == 53000
        assert receipt.vat_amount_cents == 7950
        assert receipt.delivery_fee_cents == 5000
        assert receipt.total_cents == 65950
        assert receipt.receipt_data["items"][0]["name"] == "Heineken Beer"

        db_session.expire_all()
        order = db_session.get(Order, delivered_order["id"])
        assert order.status == "completed"
        assert order.completed_at is not None
        assert order_service.get_order_history(order.id)[-1].to_status == "completed"

    def test_second_receipt_rejected(self, db_session, delivered_order):
        first = receipt_service.create_vat_receipt(delivered_order["id"])
        with pytest.raises(DuplicateReceiptError) as exc:
            receipt_service.create_vat_receipt(delivered_order["id"])
        assert exc.value.details["receipt_number"] == first.receipt_number
        assert db_session.query(VatReceipt).count() == 1

    def test_concurrent_insert_rejected_as_duplicate(self, db_session, delivered_order, monkeypatch):
        """A receipt committed by another request after the duplicate check still maps to a duplicate."""
        first = receipt_service.create_vat_receipt(delivered_order["id"])

        order = db_session.get(Order, delivered_order["id"])
        order.status = "delivered"
        order.completed_at = None
        db_session.commit()

        monkeypatch.setattr(receipt_service, "get_vat_receipt", lambda order_id: None)
        with pytest.raises(DuplicateReceiptError) as exc:
            receipt_service.create_vat_receipt(delivered_order["id"])
        assert isinstance(exc.value.__cause__, IntegrityError)

        db_session.expire_all()
        assert db_session.query(VatReceipt).one().receipt_number == first.receipt_number
        assert db_session.get(Order, delivered_order["id"]).status == "delivered"

    def test_buyer_tin_override(self, db_session, delivered_order):
        receipt = receipt_service.create_vat_receipt(delivered_order["id"], buyer_tin="0077777777")
        assert receipt.buyer_tin == "0077777777"

    def test_order_must_be_delivered(self, db_session, business_user, stockist_user, heineken):
        order = order_service.create_order(
            customer_id=business_user.id,
            delivery_address="Bole Road",
            items=[{"beverage_id": heineken.id, "quantity": 1}],
        )
        order_service.update_order_status(order.id, "matched", stockist_id=stockist_user.id)

        with pytest.raises(ReceiptError) as exc:
            receipt_service.create_vat_receipt(order.id)
        assert exc.value.details["status"] == "matched"
        assert receipt_service.get_vat_receipt(order.id) is None
        assert order_service.get_order(order.id).status == "matched"

    def test_completed_order_without_receipt(self, db_session, delivered_order):
        order_service.update_order_status(delivered_order["id"], "completed")
        receipt = receipt_service.create_vat_receipt(delivered_order["id"])
        assert receipt.order_id == delivered_order["id"]

    def test_stockist_without_tin(self, db_session, delivered_order, stockist_user):
        stockist_user.tin = None
        db_session.commit()
        with pytest.raises(ReceiptError):
            receipt_service.create_vat_receipt(delivered_order["id"])

    def test_buyer_without_tin(self, client, db_session, stockist_user, vansales_user, vansales_headers, heineken):
        order = place_order(client, vansales_headers, [{"beverage_id": heineken.id, "quantity": 1}])
        deliver_order(client, vansales_headers, order["id"], stockist_user.id)
        with pytest.raises(ReceiptError):
            receipt_service.create_vat_receipt(order["id"])

    def test_unknown_order(self, db_session):
        with pytest.raises(ReceiptNotFoundError):
            receipt_service.create_vat_receipt(999999)


class TestReceiptRoutes:

    def test_stockist_issues_receipt(self, client, delivered_order, stockist_headers):
        resp = client.post("/api/receipts", json={"order_id": delivered_order["id"]}, headers=stockist_headers)
        assert resp.status_code == 201
        receipt = resp.get_json()["receipt"]
        assert receipt["vat_amount_cents"] == 7950

        order = client.get(f"/api/orders/{delivered_order['id']}", headers=stockist_headers).get_json()["order"]
        assert order["status"] == "completed"

    def test_duplicate_409(self, client, delivered_order, business_headers):
        body = {"order_id": delivered_order["id"]}
        assert client.post("/api/receipts", json=body, headers=business_headers).status_code == 201
        resp = client.post("/api/receipts", json=body, headers=business_headers)
        assert resp.status_code == 409

    def test_concurrent_insert_409(self, client, db_session, delivered_order, business_headers, monkeypatch):
        resp = client.post("/api/receipts", json={"order_id": delivered_order["id"]}, headers=business_headers)
        assert resp.status_code == 201

        order = db_session.get(Order, delivered_order["id"])
        order.status = "delivered"
        order.completed_at = None
        db_session.commit()

        monkeypatch.setattr(receipt_service, "get_vat_receipt", lambda order_id: None)
        resp = client.post("/api/receipts", json={"order_id": delivered_order["id"]}, headers=business_headers)
        assert resp.status_code == 409
        assert db_session.query(VatReceipt).count() == 1

    def test_not_delivered_400(self, client, business_headers, heineken):
        order = place_order(client, business_headers, [{"beverage_id": heineken.id, "quantity": 1}])
        resp = client.post("/api/receipts", json={"order_id": order["id"]}, headers=business_headers)
        assert resp.status_code == 400

    def test_unknown_order_404(self, client, business_headers):
        resp = client.post("/api/receipts", json={"order_id": 999999}, headers=business_headers)
        assert resp.status_code == 404

    def test_order_id_required(self, client, business_headers):
        resp = client.post("/api/receipts", json={}, headers=business_headers)
        assert resp.status_code == 400

    def test_non_participant_cannot_issue(self, client, delivered_order, other_business_headers):
        resp = client.post("/api/receipts", json={"order_id": delivered_order["id"]}, headers=other_business_headers)
        assert resp.status_code == 403

    def test_read_receipt(self, client, delivered_order, business_headers, vansales_headers, admin_headers, other_business_headers):
        client.post("/api/receipts", json={"order_id": delivered_order["id"]}, headers=business_headers)
        path = f"/api/receipts/order/{delivered_order['id']}"

        for headers in (business_headers, vansales_headers, admin_headers):
            resp = client.get(path, headers=headers)
            assert resp.status_code == 200
            assert resp.get_json()["receipt"]["order_id"] == delivered_order["id"]

        assert client.get(path, headers=other_business_headers).status_code == 403

    def test_missing_receipt_404(self, client, delivered_order, business_headers):
        resp = client.get(f"/api/receipts/order/{delivered_order['id']}", headers=business_headers)
        assert resp.status_code == 404

    def test_non_participant_403_before_receipt_exists(self, client, db_session, delivered_order, other_business, other_business_headers):
        """Outsiders cannot tell a receipted order from an unreceipted one."""
        resp = client.get(f"/api/receipts/order/{delivered_order['id']}", headers=other_business_headers)
        assert resp.status_code == 403

        event = db_session.query(SecurityEvent).filter_by(event_type="NOT_ORDER_PARTICIPANT").one()
        assert event.user_id == other_business.id
