# backend/delivereth/routes/stockists.py
"""
Stockist routes: inventory, nearby lookup and earnings.

SECURITY:
- Inventory reads require authentication
- Inventory edits and earnings require user_type 'stockist', and a
  stockist only ever edits its own inventory
- Nearby lookup is public
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..models import StockistInventory
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    enforce_rules_inventory_upsert,
)
from ..decorators import require_auth, require_user_type, log_denial
from ..services import inventory_service, matching_service, earnings_service
from ..services.inventory_service import InventoryError
from ..services.earnings_service import ReportError


stockists_bp = Blueprint("stockists", __name__, url_prefix="/api/stockists")

INVENTORY_UPSERT_POLICY = ModelValidationPolicy(
    writable_fields={"stockist_id", "beverage_id", "quantity"},
    required_on_create={"beverage_id", "quantity"},
)


@stockists_bp.get("/<int:stockist_id>/inventory")
@require_auth
def get_inventory_route(stockist_id: int):
    """Inventory rows for a stockist, each with its beverage."""
    try:
        rows = inventory_service.get_stockist_inventory_for_display(stockist_id)
    except InventoryError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    return jsonify({"inventory": rows}), 200


@stockists_bp.post("/inventory")
@require_auth
@require_user_type("stockist")
def upsert_inventory_route():
    """
    Set the crate count for one beverage in the caller's inventory.

    Body: {"beverage_id": int, "quantity": int >= 0}
    stockist_id may be sent but must be the caller's own id.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=StockistInventory,
            payload=payload,
            policy=INVENTORY_UPSERT_POLICY,
            partial=False,
        )
        enforce_rules_inventory_upsert(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    stockist_id = patch.get("stockist_id") or g.current_user.id
    if stockist_id != g.current_user.id:
        log_denial("PERMISSION_DENIED", f"Attempted to edit inventory of stockist {stockist_id}")
        return jsonify({"error": "Stockists can only edit their own inventory"}), 403

    try:
        row = inventory_service.upsert_inventory(
            stockist_id=stockist_id,
            beverage_id=patch["beverage_id"],
            quantity=patch["quantity"],
        )
    except InventoryError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to update inventory")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"inventory": row.to_dict(include_beverage=True)}), 200


@stockists_bp.get("/nearby")
def nearby_stockists_route():
    """
    Stockists available for matching.

    Distance, rating, fee and delivery window are placeholder values.
    """
    return jsonify({"stockists": matching_service.find_nearby_stockists()}), 200


@stockists_bp.get("/earnings")
@require_auth
@require_user_type("stockist")
def earnings_route():
    """
    Earnings from the caller's completed orders.

    Query: start, end (ISO-8601), group_by=day|week|month
    """
    try:
        report = earnings_service.stockist_earnings(
            g.current_user.id,
            start=request.args.get("start"),
            end=request.args.get("end"),
            group_by=request.args.get("group_by", "day"),
        )
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(report), 200
