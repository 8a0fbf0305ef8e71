# Overview: Service-layer operations for VAT receipts; encapsulates business logic and database work.

"""
VAT receipt issuance.

A receipt is the tax document for a delivered order: seller is the assigned
stockist, buyer is the ordering business, amounts are copied from the
order (which were priced server-side). Issuing the receipt completes the
order in the same DB transaction, so there is never a receipt without a
completed order or the other way round.

One receipt per order: checked up front and backed by a unique constraint
on vat_receipts.order_id.
"""

from __future__ import annotations

import secrets
import string

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, VatReceipt
from .concurrency import lock_for_update, run_with_retry
from .order_service import OrderError, _apply_status_change


RECEIPT_NUMBER_PREFIX = "VAT-"
RECEIPT_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
RECEIPT_NUMBER_LENGTH = 8

# Orders in these states may be receipted
RECEIPTABLE_STATUSES = ("delivered", "completed")


class ReceiptError(Exception):
    """Raised for receipt operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ReceiptNotFoundError(ReceiptError):
    """Raised when the order (or its receipt) does not exist."""


class DuplicateReceiptError(ReceiptError):
    """Raised when the order already has a receipt."""


def generate_receipt_number(max_attempts: int = 10) -> str:
    for _ in range(max_attempts):
        suffix = "".join(secrets.choice(RECEIPT_NUMBER_ALPHABET) for _ in range(RECEIPT_NUMBER_LENGTH))
        candidate = f"{RECEIPT_NUMBER_PREFIX}{suffix}"
        if db.session.query(VatReceipt.id).filter_by(receipt_number=candidate).first() is None:
            return candidate
    raise ReceiptError("Could not allocate a unique receipt number")


def get_vat_receipt(order_id: int) -> VatReceipt | None:
    return db.session.query(VatReceipt).filter_by(order_id=order_id).first()


def _receipt_lines(order: Order) -> dict:
    return {
        "order_number": order.order_number,
        "delivery_address": order.delivery_address,
        "items": [
            {
                "beverage_id": item.beverage_id,
                "name": item.beverage.name if item.beverage else None,
                "quantity": item.quantity,
                "unit_price_cents": item.unit_price_cents,
                "subtotal_cents": item.subtotal_cents,
            }
            for item in order.items
        ],
    }


def create_vat_receipt(
    order_id: int,
    issued_by_user_id: int | None = None,
    buyer_tin: str | None = None,
) -> VatReceipt:
    """
    Issue the VAT receipt for an order and complete it.

    Buyer TIN resolution: explicit buyer_tin, then the TIN captured on the
    order, then the customer's account TIN.

    Raises:
        ReceiptNotFoundError: order does not exist
        DuplicateReceiptError: order already has a receipt
        ReceiptError: order not delivered, no stockist, or missing TINs
    """
    def _op() -> VatReceipt:
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise ReceiptNotFoundError(f"Order with ID {order_id} not found")

        existing = get_vat_receipt(order_id)
        if existing is not None:
            raise DuplicateReceiptError(
                "A VAT receipt has already been issued for this order",
                details={"receipt_number": existing.receipt_number},
            )

        if order.status not in RECEIPTABLE_STATUSES:
            raise ReceiptError(
                f"Cannot issue a receipt for an order in status {order.status}",
                details={"status": order.status, "required_status": "delivered"},
            )

        seller = order.stockist
        if seller is None:
            raise ReceiptError("Order has no assigned stockist")
        if not seller.tin:
            raise ReceiptError("Stockist TIN is required for VAT receipts", details={"stockist_id": seller.id})

        buyer = order.customer
        resolved_buyer_tin = (buyer_tin or "").strip() or order.customer_tin or buyer.tin
        if not resolved_buyer_tin:
            raise ReceiptError("Buyer TIN is required for VAT receipts", details={"customer_id": buyer.id})

        receipt = VatReceipt(
            order_id=order.id,
            receipt_number=generate_receipt_number(),
            seller_name=seller.display_name,
            seller_tin=seller.tin,
            buyer_name=buyer.display_name,
            buyer_tin=resolved_buyer_tin,
            subtotal_cents=order.subtotal_cents,
            vat_amount_cents=order.vat_amount_cents,
            delivery_fee_cents=order.delivery_fee_cents,
            total_cents=order.total_cents,
            receipt_data=_receipt_lines(order),
            issued_by_user_id=issued_by_user_id,
        )
        db.session.add(receipt)
        try:
            db.session.flush()
        except IntegrityError as e:
            db.session.rollback()
            raise DuplicateReceiptError("A VAT receipt has already been issued for this order") from e

        if order.status != "completed":
            try:
                _apply_status_change(
                    order,
                    "completed",
                    actor_user_id=issued_by_user_id,
                    note=f"Receipt {receipt.receipt_number} issued",
                )
            except OrderError as e:
                raise ReceiptError(str(e), details=e.details) from e

        try:
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            raise DuplicateReceiptError("A VAT receipt has already been issued for this order") from e
        return receipt

    return run_with_retry(_op)
