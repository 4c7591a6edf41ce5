# Overview: Flask API routes for voucher administration.

"""Voucher administration routes (admin/manager by default)"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_roles
from ..errors import ConflictError, ValidationError
from ..services import voucher_service


vouchers_bp = Blueprint("vouchers", __name__, url_prefix="/api/vouchers")


@vouchers_bp.post("/")
@vouchers_bp.post("")
@require_auth
@require_roles("VOUCHER_ADMIN_ROLES")
def create_voucher_route():
    """
    Create a voucher.

    Body: code, value, is_percentage?, min_purchase?, max_uses?, expires_at?, description?
    """
    try:
        data = request.get_json(silent=True) or {}
        voucher = voucher_service.create_voucher(data, user_id=g.current_user_id)
        return jsonify({"voucher": voucher.to_dict()}), 201

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to create voucher")
        return jsonify({"error": "Internal server error"}), 500


@vouchers_bp.patch("/<int:voucher_id>")
@require_auth
@require_roles("VOUCHER_ADMIN_ROLES")
def update_voucher_route(voucher_id: int):
    try:
        data = request.get_json(silent=True) or {}
        voucher = voucher_service.update_voucher(voucher_id, data)
        if not voucher:
            return jsonify({"error": "Voucher not found"}), 404
        return jsonify({"voucher": voucher.to_dict()}), 200

    except ValidationError as e:
        return jsonify(e.to_dict()), 400
    except ConflictError as e:
        return jsonify(e.to_dict()), 409
    except Exception:
        current_app.logger.exception("Failed to update voucher")
        return jsonify({"error": "Internal server error"}), 500


@vouchers_bp.post("/<int:voucher_id>/active")
@require_auth
@require_roles("VOUCHER_ADMIN_ROLES")
def set_voucher_active_route(voucher_id: int):
    """Activate or deactivate. Body: {"is_active": bool}"""
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("is_active"), bool):
        return jsonify({"error": "is_active (boolean) required"}), 400

    try:
        voucher = voucher_service.set_voucher_active(voucher_id, data["is_active"])
    except Exception:
        current_app.logger.exception("Failed to toggle voucher")
        return jsonify({"error": "Internal server error"}), 500

    if not voucher:
        return jsonify({"error": "Voucher not found"}), 404
    return jsonify({"voucher": voucher.to_dict()}), 200


@vouchers_bp.post("/generate-code")
@require_auth
@require_roles("VOUCHER_ADMIN_ROLES")
def generate_code_route():
    return jsonify({"code": voucher_service.generate_voucher_code()}), 200
