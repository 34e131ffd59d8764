# Overview: Flask API routes for customers and their metered services.

from flask import Blueprint, request, jsonify, current_app

from ..services import customer_service
from ..services.customer_service import CustomerError, CustomerNotFoundError


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
def list_customers_route():
    """
    Query parameters:
    - status: VALID | NEEDS_CONFIGURATION | ERROR
    """
    items = customer_service.list_customers(status=request.args.get("status"))
    return jsonify({"items": items, "count": len(items)})


@customers_bp.post("")
def create_customer_route():
    """
    Request body:
    {
        "ktp": "3171234567890001",
        "name": "Budi Santoso",
        "username": "budi",
        "email": "budi@example.com",
        "phone": "0812...",
        "address": "...",
        "services": [
            {"service_id": "14234567890", "token_type": "ELECTRICITY",
             "area_project": "Jakarta", "project": "Tower A", "vendor_name": "PT Listrik",
             "power_or_volume": "1300 VA"}
        ]
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        customer = customer_service.create_customer(
            ktp=data.get("ktp"),
            name=data.get("name"),
            username=data.get("username"),
            email=data.get("email"),
            phone=data.get("phone"),
            address=data.get("address"),
            services=data.get("services"),
            is_transaction_active=bool(data.get("is_transaction_active", True)),
        )
        return jsonify(customer_service.describe_customer(customer)), 201
    except CustomerError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<customer_id>")
def get_customer_route(customer_id: str):
    try:
        customer = customer_service.get_customer(customer_id)
        return jsonify(customer_service.describe_customer(customer))
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.put("/<customer_id>/services")
def replace_services_route(customer_id: str):
    """
    Request body: {"services": [...]}

    The customer id may change (PENDING-XXXX <-> SAI-...); the response
    carries the current one.
    """
    data = request.get_json(silent=True) or {}
    try:
        customer = customer_service.replace_services(customer_id, data.get("services") or [])
        return jsonify(customer_service.describe_customer(customer))
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except CustomerError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to replace customer services")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/<customer_id>/transactions")
def set_transactions_route(customer_id: str):
    """Request body: {"is_transaction_active": false}"""
    data = request.get_json(silent=True) or {}
    if "is_transaction_active" not in data:
        return jsonify({"error": "is_transaction_active is required"}), 400
    try:
        customer = customer_service.set_transaction_active(customer_id, bool(data["is_transaction_active"]))
        return jsonify(customer_service.describe_customer(customer))
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
