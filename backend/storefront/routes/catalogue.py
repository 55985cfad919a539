# Overview: Flask API routes for catalogue reference data; parses input and returns JSON responses.

"""
Catalogue API Routes

Categories, master/sub-master attribute options and products.
Reads are public (the storefront browses them); writes are staff only.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import catalogue_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_staff


catalogue_bp = Blueprint("catalogue", __name__, url_prefix="/api")


def _json_error(exc: Exception, operation: str):
    if isinstance(exc, ValidationError):
        return jsonify(exc.to_dict()), 400
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    current_app.logger.exception("Failed to %s", operation)
    return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# CATEGORIES
# =============================================================================

@catalogue_bp.get("/categories")
def list_categories_route():
    categories = catalogue_service.list_categories()
    return jsonify({"categories": [c.to_dict() for c in categories]}), 200


@catalogue_bp.post("/categories")
@require_auth
@require_staff
def create_category_route():
    data = request.get_json(silent=True) or {}
    try:
        category = catalogue_service.create_category(data.get("name"), data.get("description"))
    except Exception as exc:
        return _json_error(exc, "create category")
    return jsonify({"category": category.to_dict()}), 201


# =============================================================================
# MASTER OPTIONS
# =============================================================================

@catalogue_bp.get("/masters")
def list_masters_route():
    """
    Master options grouped by type.

    Query params:
        types: comma-separated filter, e.g. ?types=ram,storage
    """
    types = catalogue_service.parse_master_types(request.args.get("types"))
    options = catalogue_service.list_master_options(types)
    grouped = catalogue_service.group_master_options(options)
    if types:
        grouped = {t: grouped.get(t, []) for t in types}
    return jsonify({"masters": grouped}), 200


@catalogue_bp.post("/masters")
@require_auth
@require_staff
def create_master_route():
    data = request.get_json(silent=True) or {}
    try:
        option = catalogue_service.create_master_option(
            data.get("type"),
            data.get("name"),
            description=data.get("description"),
            sort_order=data.get("sort_order"),
        )
    except Exception as exc:
        return _json_error(exc, "create master option")
    return jsonify({"master": option.to_dict()}), 201


# =============================================================================
# SUB-MASTER OPTIONS
# =============================================================================

@catalogue_bp.get("/submasters")
def list_submasters_route():
    master_id = request.args.get("master_id", type=int)
    options = catalogue_service.list_submaster_options(master_id)
    return jsonify({"submasters": [o.to_dict() for o in options]}), 200


@catalogue_bp.post("/submasters")
@require_auth
@require_staff
def create_submaster_route():
    data = request.get_json(silent=True) or {}
    try:
        option = catalogue_service.create_submaster_option(
            data.get("master_id"),
            data.get("name"),
            parent_id=data.get("parent_id"),
            description=data.get("description"),
            sort_order=data.get("sort_order"),
        )
    except Exception as exc:
        return _json_error(exc, "create sub-master option")
    return jsonify({"submaster": option.to_dict()}), 201


# =============================================================================
# PRODUCTS
# =============================================================================

@catalogue_bp.get("/products")
def list_products_route():
    products = catalogue_service.list_products(category=request.args.get("category"))
    return jsonify({"products": [p.to_dict(include_variants=True) for p in products]}), 200


@catalogue_bp.get("/products/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalogue_service.get_product(product_id)
    except NotFoundError as exc:
        return jsonify({"error": str(exc)}), 404
    if not product.is_active:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict(include_variants=True)}), 200


@catalogue_bp.post("/products")
@require_auth
@require_staff
def create_product_route():
    """
    Create a product.

    Request body:
    {
        "name": "ThinkPad T480",
        "category": "Laptops",
        "condition": "Refurbished - A",
        "price_cents": 2499900,
        "variants": [
            {"label": "16GB / 512GB", "price_cents": 2799900, "stock": 3}
        ]
    }
    """
    data = request.get_json(silent=True)
    try:
        product = catalogue_service.create_product(data)
    except Exception as exc:
        return _json_error(exc, "create product")
    return jsonify({"product": product.to_dict(include_variants=True)}), 201
