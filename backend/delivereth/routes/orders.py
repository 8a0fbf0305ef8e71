# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/delivereth/routes/orders.py
"""Order API routes with participant enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import Order
from ..services import order_service
from ..services.order_service import OrderError, OrderNotFoundError, IllegalTransitionError
from ..validation import ModelValidationPolicy, ValidationError, validate_payload, coerce_int, enforce_rules_order
from ..decorators import require_auth, require_user_type, log_denial


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

ORDER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "delivery_address",
        "delivery_time",
        "customer_tin",
        "delivery_fee_cents",
        "subtotal_cents",
        "vat_amount_cents",
        "total_cents",
    },
    required_on_create={"delivery_address", "items"},
    extra_fields={"items"},
)


def can_access_order(order: Order, user) -> bool:
    """Customer, assigned stockist, or admin."""
    return user.user_type == "admin" or order.is_participant(user.id)


def _order_error_response(e: OrderError):
    if isinstance(e, OrderNotFoundError):
        return jsonify({"error": str(e)}), 404
    if isinstance(e, IllegalTransitionError):
        return jsonify({"error": str(e), "details": e.details}), 409
    return jsonify({"error": str(e), "details": e.details}), 400


def _order_with_items(order: Order) -> dict:
    return {
        "order": order.to_dict(),
        "items": [item.to_dict(include_beverage=True) for item in order_service.get_order_items(order.id)],
    }


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Place an order.

    Body:
        delivery_address (required), items (required, [{beverage_id, quantity}]),
        delivery_fee_cents, customer_tin, delivery_time.
        subtotal_cents / vat_amount_cents / total_cents and per-item
        unit_price_cents / subtotal_cents are optional and must match
        server pricing when sent.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Order, payload=payload, policy=ORDER_CREATE_POLICY, partial=False)
        enforce_rules_order(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        order = order_service.create_order(customer_id=g.current_user.id, **patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderError as e:
        return _order_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info(
        "Order %s placed by user %s (total_cents=%s)",
        order.order_number, g.current_user.id, order.total_cents,
    )
    return jsonify(_order_with_items(order)), 201


@orders_bp.get("/customer")
@require_auth
def customer_orders_route():
    """Orders placed by the caller, newest first."""
    orders = order_service.get_customer_orders(g.current_user.id)
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/stockist")
@require_auth
@require_user_type("stockist")
def stockist_orders_route():
    """Orders assigned to the calling stockist, newest first."""
    orders = order_service.get_stockist_orders(g.current_user.id)
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    """Order with its lines. Participants and admins only."""
    order = order_service.get_order(order_id)
    if not order:
        return jsonify({"error": "Order not found"}), 404

    if not can_access_order(order, g.current_user):
        log_denial("NOT_ORDER_PARTICIPANT", f"Read of order {order_id}")
        return jsonify({"error": "Forbidden"}), 403

    return jsonify(_order_with_items(order)), 200


@orders_bp.get("/<int:order_id>/history")
@require_auth
def order_history_route(order_id: int):
    """Status change history, oldest first."""
    order = order_service.get_order(order_id)
    if not order:
        return jsonify({"error": "Order not found"}), 404

    if not can_access_order(order, g.current_user):
        log_denial("NOT_ORDER_PARTICIPANT", f"Read of order {order_id} history")
        return jsonify({"error": "Forbidden"}), 403

    events = order_service.get_order_history(order_id)
    return jsonify({
        "order_id": order_id,
        "status": order.status,
        "allowed_transitions": order_service.allowed_transitions(order.status),
        "events": [e.to_dict() for e in events],
    }), 200


@orders_bp.patch("/<int:order_id>/status")
@require_auth
def update_status_route(order_id: int):
    """
    Move an order to its next status.

    Body: {"status": str, "stockist_id": int (when matching), "note": str}
    Participants and admins only; 404 unknown order, 409 illegal transition.
    """
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not isinstance(status, str) or not status.strip():
        return jsonify({"error": "status required"}), 400

    stockist_id = data.get("stockist_id")
    try:
        if stockist_id is not None:
            stockist_id = coerce_int("stockist_id", stockist_id)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    note = data.get("note")
    if note is not None and not isinstance(note, str):
        return jsonify({"error": "note must be a string"}), 400

    order = order_service.get_order(order_id)
    if not order:
        return jsonify({"error": "Order not found"}), 404

    if not can_access_order(order, g.current_user):
        log_denial("NOT_ORDER_PARTICIPANT", f"Status change of order {order_id} to {status}")
        return jsonify({"error": "Forbidden"}), 403

    try:
        order = order_service.update_order_status(
            order_id,
            status.strip(),
            stockist_id=stockist_id,
            actor_user_id=g.current_user.id,
            note=note[:255] if note else None,
        )
    except OrderError as e:
        return _order_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Order %s moved to %s by user %s", order.order_number, order.status, g.current_user.id)
    return jsonify({"order": order.to_dict()}), 200
