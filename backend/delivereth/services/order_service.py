"""
Order Service - order placement, pricing and status lifecycle

WHY: Orders are priced by the server, not the client. Every line is priced
from the catalog, VAT and total are recomputed, and any client-submitted
amount that disagrees is rejected with the computed value in the error
details.

STATE MACHINE:
    placed -> matched -> [accepted ->] delivering -> delivered -> completed

    placed:     created by the customer, no stockist yet
    matched:    a stockist has been chosen (re-matching to another stockist
                is allowed while still matched)
    accepted:   the stockist has confirmed (optional step)
    delivering: on the way
    delivered:  handed over, awaiting VAT receipt
    completed:  receipt issued

RULES:
1. Cannot skip states (placed -> completed is forbidden)
2. Cannot reverse states
3. A stockist can only be (re)assigned on a move to 'matched'
4. Order + items, and status change + history event, commit together
"""

from __future__ import annotations

import secrets
import string

from ..extensions import db
from ..models import Beverage, Order, OrderItem, OrderStatusEvent, User, ORDER_STATUSES
from ..validation import (
    MAX_AMOUNT_CENTS,
    ModelValidationPolicy,
    ValidationError,
    validate_payload,
    enforce_quantity,
    enforce_amount_cents,
)
from delivereth.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .pricing_service import compute_order_totals, line_subtotal_cents


ORDER_NUMBER_PREFIX = "ET"
ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
ORDER_NUMBER_LENGTH = 6

ORDER_TRANSITIONS: dict[str, frozenset[str]] = {
    "placed": frozenset({"matched"}),
    "matched": frozenset({"matched", "accepted", "delivering"}),
    "accepted": frozenset({"delivering"}),
    "delivering": frozenset({"delivered"}),
    "delivered": frozenset({"completed"}),
    "completed": frozenset(),
}

ORDER_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"beverage_id", "quantity", "unit_price_cents", "subtotal_cents"},
    required_on_create={"beverage_id", "quantity"},
)


class OrderError(Exception):
    """Raised for order operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class OrderNotFoundError(OrderError):
    """Raised when the referenced order does not exist."""


class IllegalTransitionError(OrderError):
    """Raised when a status change violates the order state machine."""


def allowed_transitions(status: str) -> list[str]:
    return sorted(ORDER_TRANSITIONS.get(status, frozenset()))


def generate_order_number(max_attempts: int = 10) -> str:
    """'ET' + 6 random uppercase alphanumerics, unused so far."""
    for _ in range(max_attempts):
        suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(ORDER_NUMBER_LENGTH))
        candidate = f"{ORDER_NUMBER_PREFIX}{suffix}"
        if get_order_by_number(candidate) is None:
            return candidate
    raise OrderError("Could not allocate a unique order number")


# =============================================================================
# Reads
# =============================================================================

def get_order(order_id: int) -> Order | None:
    return db.session.get(Order, order_id)


def get_order_by_number(order_number: str) -> Order | None:
    return db.session.query(Order).filter_by(order_number=order_number).first()


def get_customer_orders(customer_id: int) -> list[Order]:
    return (
        db.session.query(Order)
        .filter(Order.customer_id == customer_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def get_stockist_orders(stockist_id: int) -> list[Order]:
    return (
        db.session.query(Order)
        .filter(Order.stockist_id == stockist_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def get_order_items(order_id: int) -> list[OrderItem]:
    """Order lines joined with their beverage."""
    return (
        db.session.query(OrderItem)
        .join(Beverage, Beverage.id == OrderItem.beverage_id)
        .filter(OrderItem.order_id == order_id)
        .order_by(OrderItem.id)
        .all()
    )


def get_order_history(order_id: int) -> list[OrderStatusEvent]:
    return (
        db.session.query(OrderStatusEvent)
        .filter(OrderStatusEvent.order_id == order_id)
        .order_by(OrderStatusEvent.id)
        .all()
    )


# =============================================================================
# Placement
# =============================================================================

def _append_status_event(
    order: Order,
    from_status: str | None,
    to_status: str,
    actor_user_id: int | None,
    note: str | None = None,
) -> OrderStatusEvent:
    event = OrderStatusEvent(
        order_id=order.id,
        from_status=from_status,
        to_status=to_status,
        stockist_id=order.stockist_id,
        actor_user_id=actor_user_id,
        note=note,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.flush()
    return event


def create_order_item(order: Order, beverage: Beverage, quantity: int) -> OrderItem:
    """
    Add one priced line to an order in the current transaction (no commit).

    The unit price is always the catalog price.
    """
    enforce_quantity("quantity", quantity, allow_zero=False)

    item = OrderItem(
        order_id=order.id,
        beverage_id=beverage.id,
        quantity=quantity,
        unit_price_cents=beverage.unit_price_cents,
        subtotal_cents=line_subtotal_cents(beverage.unit_price_cents, quantity),
    )
    db.session.add(item)
    return item


def _price_lines(items: list[dict]) -> tuple[list[tuple[Beverage, int]], list[dict]]:
    """
    Resolve and price submitted lines against the catalog.

    Returns ([(beverage, quantity)], mismatches). Unknown beverages raise.
    """
    lines: list[tuple[Beverage, int]] = []
    mismatches: list[dict] = []

    for i, raw in enumerate(items):
        try:
            item = validate_payload(model=OrderItem, payload=raw, policy=ORDER_ITEM_POLICY, partial=False)
            enforce_quantity("quantity", item.get("quantity"), allow_zero=False)
        except ValidationError as e:
            raise ValidationError(f"items[{i}]: {e}") from e

        beverage = db.session.get(Beverage, item["beverage_id"])
        if beverage is None:
            raise OrderError(
                "Beverage not found",
                details={"item_index": i, "beverage_id": item["beverage_id"]},
            )

        quantity = item["quantity"]
        expected_line = line_subtotal_cents(beverage.unit_price_cents, quantity)

        submitted_price = item.get("unit_price_cents")
        if submitted_price is not None and submitted_price != beverage.unit_price_cents:
            mismatches.append({
                "field": f"items[{i}].unit_price_cents",
                "submitted": submitted_price,
                "computed": beverage.unit_price_cents,
            })

        submitted_line = item.get("subtotal_cents")
        if submitted_line is not None and submitted_line != expected_line:
            mismatches.append({
                "field": f"items[{i}].subtotal_cents",
                "submitted": submitted_line,
                "computed": expected_line,
            })

        lines.append((beverage, quantity))

    return lines, mismatches


def create_order(
    *,
    customer_id: int,
    delivery_address: str,
    items: list[dict],
    delivery_fee_cents: int | None = 0,
    customer_tin: str | None = None,
    delivery_time: str | None = None,
    subtotal_cents: int | None = None,
    vat_amount_cents: int | None = None,
    total_cents: int | None = None,
) -> Order:
    """
    Place an order in status 'placed'.

    Lines are priced from the catalog; subtotal, VAT and total are computed
    here. Submitted amounts are optional, but when present they must equal
    the computed ones or the whole order is rejected.
    """
    if not items:
        raise OrderError("Order must contain at least one item")

    delivery_fee = delivery_fee_cents or 0
    enforce_amount_cents("delivery_fee_cents", delivery_fee)

    def _op() -> Order:
        customer = db.session.get(User, customer_id)
        if customer is None:
            raise OrderError("Customer not found")

        lines, mismatches = _price_lines(items)
        totals = compute_order_totals(
            [line_subtotal_cents(b.unit_price_cents, q) for b, q in lines],
            delivery_fee_cents=delivery_fee,
        )

        if totals.total_cents > MAX_AMOUNT_CENTS:
            raise OrderError(
                f"Order total cannot exceed {MAX_AMOUNT_CENTS} ({MAX_AMOUNT_CENTS / 100:,.2f} ETB)",
                details={"computed": totals.to_dict(), "max_amount_cents": MAX_AMOUNT_CENTS},
            )

        for field, submitted, computed in (
            ("subtotal_cents", subtotal_cents, totals.subtotal_cents),
            ("vat_amount_cents", vat_amount_cents, totals.vat_amount_cents),
            ("total_cents", total_cents, totals.total_cents),
        ):
            if submitted is not None and submitted != computed:
                mismatches.append({"field": field, "submitted": submitted, "computed": computed})

        if mismatches:
            raise OrderError(
                "Submitted amounts do not match server pricing",
                details={"mismatches": mismatches, "computed": totals.to_dict()},
            )

        now = utcnow()
        order = Order(
            order_number=generate_order_number(),
            customer_id=customer_id,
            status="placed",
            delivery_address=delivery_address,
            delivery_time=delivery_time,
            customer_tin=customer_tin or customer.tin,
            delivery_fee_cents=totals.delivery_fee_cents,
            subtotal_cents=totals.subtotal_cents,
            vat_amount_cents=totals.vat_amount_cents,
            total_cents=totals.total_cents,
            created_at=now,
            updated_at=now,
        )
        db.session.add(order)
        db.session.flush()

        for beverage, quantity in lines:
            create_order_item(order, beverage, quantity)

        _append_status_event(order, None, "placed", actor_user_id=customer_id)

        db.session.commit()
        return order

    return run_with_retry(_op)


# =============================================================================
# Status lifecycle
# =============================================================================

def _resolve_stockist(stockist_id: int) -> User:
    stockist = db.session.get(User, stockist_id)
    if stockist is None or stockist.user_type != "stockist" or not stockist.is_active:
        raise OrderError("Stockist not found", details={"stockist_id": stockist_id})
    return stockist


def _apply_status_change(
    order: Order,
    status: str,
    *,
    stockist_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> Order:
    """
    Validate and apply one transition in the current transaction (no commit).
    """
    if status not in ORDER_STATUSES:
        raise IllegalTransitionError(
            f"Unknown status '{status}'",
            details={"allowed_statuses": list(ORDER_STATUSES)},
        )

    current = order.status
    if status not in ORDER_TRANSITIONS.get(current, frozenset()):
        raise IllegalTransitionError(
            f"Cannot move order from {current} to {status}",
            details={"from": current, "to": status, "allowed": allowed_transitions(current)},
        )

    if status == "matched":
        if stockist_id is None:
            if current == "matched" or order.stockist_id is None:
                raise OrderError("stockist_id required to match an order")
            stockist_id = order.stockist_id
        _resolve_stockist(stockist_id)
        order.stockist_id = stockist_id
    elif stockist_id is not None and stockist_id != order.stockist_id:
        raise OrderError("A stockist can only be assigned when matching an order")

    now = utcnow()
    order.status = status
    order.updated_at = now
    if status == "completed":
        order.completed_at = now

    _append_status_event(order, current, status, actor_user_id=actor_user_id, note=note)
    return order


def update_order_status(
    order_id: int,
    status: str,
    stockist_id: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> Order:
    """
    Move an order along its lifecycle, optionally (re)assigning the stockist.

    Raises OrderNotFoundError, IllegalTransitionError or OrderError.
    """
    def _op() -> Order:
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise OrderNotFoundError(f"Order with ID {order_id} not found")

        _apply_status_change(
            order,
            status,
            stockist_id=stockist_id,
            actor_user_id=actor_user_id,
            note=note,
        )
        db.session.commit()
        return order

    return run_with_retry(_op)
