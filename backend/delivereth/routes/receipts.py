# Overview: Flask API routes for VAT receipts.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import order_service, receipt_service
from ..services.receipt_service import ReceiptError, ReceiptNotFoundError, DuplicateReceiptError
from ..decorators import require_auth, log_denial
from ..validation import ValidationError, coerce_int
from .orders import can_access_order


receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/receipts")

# Roles that may read any receipt
RECEIPT_READER_TYPES = ("vansales", "admin")


@receipts_bp.post("")
@require_auth
def create_receipt_route():
    """
    Issue the VAT receipt for a delivered order and complete it.

    Body: {"order_id": int, "buyer_tin": str (optional)}
    Participants and admins only; 409 if the order already has a receipt.
    """
    data = request.get_json(silent=True) or {}
    try:
        order_id = coerce_int("order_id", data.get("order_id"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    buyer_tin = data.get("buyer_tin")
    if buyer_tin is not None and not isinstance(buyer_tin, str):
        return jsonify({"error": "buyer_tin must be a string"}), 400

    order = order_service.get_order(order_id)
    if not order:
        return jsonify({"error": "Order not found"}), 404

    if not can_access_order(order, g.current_user):
        log_denial("NOT_ORDER_PARTICIPANT", f"Receipt issue for order {order_id}")
        return jsonify({"error": "Forbidden"}), 403

    try:
        receipt = receipt_service.create_vat_receipt(
            order_id,
            issued_by_user_id=g.current_user.id,
            buyer_tin=buyer_tin,
        )
    except ReceiptNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except DuplicateReceiptError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except ReceiptError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create receipt")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Receipt %s issued for order %s", receipt.receipt_number, order_id)
    return jsonify({"receipt": receipt.to_dict()}), 201


@receipts_bp.get("/order/<int:order_id>")
@require_auth
def get_receipt_route(order_id: int):
    """Receipt for an order. Participants, van sales agents and admins."""
    order = order_service.get_order(order_id)
    if not order:
        return jsonify({"error": "Order not found"}), 404

    user = g.current_user
    if not (order.is_participant(user.id) or user.user_type in RECEIPT_READER_TYPES):
        log_denial("NOT_ORDER_PARTICIPANT", f"Read of receipt for order {order_id}")
        return jsonify({"error": "Forbidden"}), 403

    receipt = receipt_service.get_vat_receipt(order_id)
    if not receipt:
        return jsonify({"error": "Receipt not found"}), 404

    return jsonify({"receipt": receipt.to_dict()}), 200
