# Overview: Flask API routes for the global vendor registry; parses input and returns JSON responses.

"""
Vendor Routes

Vendors are global; hierarchy nodes refer to them by name.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import vendor_service
from ..services.vendor_service import VendorNotFoundError, VendorValidationError


vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")


@vendors_bp.get("")
def list_vendors_route():
    """
    Query parameters:
    - token_type: Only vendors handling this token type
    - include_inactive: Include inactive vendors (default: false)
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    vendors = vendor_service.list_vendors(
        token_type=request.args.get("token_type"),
        include_inactive=include_inactive,
    )
    return jsonify({
        "items": [v.to_dict() for v in vendors],
        "count": len(vendors),
    })


@vendors_bp.post("")
def create_vendor_route():
    """
    Request body:
    {
        "name": "PT Listrik Prima",                // required, unique
        "handled_services": ["ELECTRICITY"],        // required
        "contact_person": "...",                   // optional
        "email": "...", "phone": "...", "address": "...", "auth_ref": "..."
    }
    """
    data = request.get_json(silent=True) or {}

    name = data.get("name")
    if not name:
        return jsonify({"error": "name is required"}), 400

    try:
        vendor = vendor_service.create_vendor(
            name=name,
            handled_services=data.get("handled_services") or [],
            contact_person=data.get("contact_person"),
            email=data.get("email"),
            phone=data.get("phone"),
            address=data.get("address"),
            auth_ref=data.get("auth_ref"),
        )
        return jsonify(vendor.to_dict()), 201
    except VendorValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create vendor")
        return jsonify({"error": "Internal server error"}), 500


@vendors_bp.get("/<int:vendor_id>")
def get_vendor_route(vendor_id: int):
    try:
        return jsonify(vendor_service.get_vendor(vendor_id).to_dict())
    except VendorNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@vendors_bp.patch("/<int:vendor_id>")
def update_vendor_route(vendor_id: int):
    data = request.get_json(silent=True) or {}
    try:
        vendor = vendor_service.update_vendor(
            vendor_id=vendor_id,
            handled_services=data.get("handled_services"),
            contact_person=data.get("contact_person"),
            email=data.get("email"),
            phone=data.get("phone"),
            address=data.get("address"),
        )
        return jsonify(vendor.to_dict())
    except VendorNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except VendorValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update vendor")
        return jsonify({"error": "Internal server error"}), 500


@vendors_bp.post("/<int:vendor_id>/deactivate")
def deactivate_vendor_route(vendor_id: int):
    """Deactivated vendors turn their hierarchy paths into configuration errors."""
    try:
        vendor = vendor_service.set_vendor_active(vendor_id, False)
        return jsonify(vendor.to_dict())
    except VendorNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@vendors_bp.post("/<int:vendor_id>/reactivate")
def reactivate_vendor_route(vendor_id: int):
    try:
        vendor = vendor_service.set_vendor_active(vendor_id, True)
        return jsonify(vendor.to_dict())
    except VendorNotFoundError as e:
        return jsonify({"error": str(e)}), 404
