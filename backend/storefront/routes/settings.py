from __future__ import annotations

from flask import Blueprint, jsonify, request, g, current_app

from ..decorators import require_auth, require_staff
from ..services import settings_service
from ..validation import ValidationError


settings_bp = Blueprint("settings", __name__, url_prefix="/api")


@settings_bp.get("/settings")
def get_settings():
    """Public: the storefront needs GST and shipping to show cart totals."""
    return jsonify({"settings": settings_service.get_store_settings().to_dict()})


@settings_bp.put("/settings")
@require_auth
@require_staff
def put_settings():
    payload = request.get_json(silent=True)
    try:
        updated = settings_service.update_store_settings(payload, user_id=g.current_user.id)
    except ValidationError as exc:
        return jsonify(exc.to_dict()), 400
    except Exception:
        current_app.logger.exception("Failed to update store settings")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"settings": updated.to_dict()})
