# Overview: Flask API routes for the public beverage catalog.

from flask import Blueprint, request, jsonify

from ..services import beverage_service


beverages_bp = Blueprint("beverages", __name__, url_prefix="/api/beverages")


@beverages_bp.get("")
def list_beverages_route():
    """
    List catalog beverages.

    Query: category=<name|all> (default all, case-insensitive match)
    """
    category = request.args.get("category", "all")
    beverages = beverage_service.get_beverages_by_category(category)
    return jsonify({"beverages": [b.to_dict() for b in beverages]}), 200


@beverages_bp.get("/categories")
def list_categories_route():
    return jsonify({"categories": beverage_service.list_categories()}), 200


@beverages_bp.get("/<int:beverage_id>")
def get_beverage_route(beverage_id: int):
    beverage = beverage_service.get_beverage(beverage_id)
    if not beverage:
        return jsonify({"error": "Beverage not found"}), 404
    return jsonify({"beverage": beverage.to_dict()}), 200
