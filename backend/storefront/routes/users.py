# Overview: Flask API routes for staff user management.

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..models import User
from ..services import auth_service
from ..services.auth_service import RoleAssignmentError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_staff


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_staff
def list_users_route():
    users = db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@users_bp.post("")
@require_auth
@require_staff
def create_user_route():
    """
    Create an account from the admin panel.

    superadmin may assign any role; admin may only create customers.

    Returns:
        201: Created user
        400: Invalid input
        403: Role not assignable by caller
        409: Email already in use
    """
    try:
        data = request.get_json(silent=True) or {}

        user = auth_service.create_user_by_staff(
            actor=g.current_user,
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role"),
            phone=data.get("phone"),
        )
        return jsonify({"user": user.to_dict()}), 201

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except RoleAssignmentError as e:
        return jsonify({"error": str(e)}), 403
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500
