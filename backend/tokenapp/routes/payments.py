# Overview: Flask API routes for gateway notifications and vending recovery.

"""
Payment Routes

The gateway posts transaction notifications at least once and possibly out
of order. The handler is idempotent; it answers 200 once the notification
is recorded, including when vending failed afterwards (the order is then
VENDING_FAILED and recoverable through /<order_id>/vend).
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import settlement_service
from ..services.settlement_service import OrderNotFoundError, SettlementError, VendingFailure


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("/notifications")
def gateway_notification_route():
    """
    Gateway callback.

    Request body:
    {
        "order_id": "TRN-U-070624-L-0001",
        "transaction_status": "settlement",   // settlement | capture | pending | deny | cancel | expire ...
        "status_code": "200"
    }
    """
    data = request.get_json(silent=True) or {}
    order_id = data.get("order_id")
    gateway_status = data.get("transaction_status") or data.get("gateway_status")
    if not order_id or not gateway_status:
        return jsonify({"error": "order_id and transaction_status required"}), 400

    try:
        order = settlement_service.handle_gateway_callback(
            order_id,
            gateway_status,
            str(data["status_code"]) if data.get("status_code") is not None else None,
        )
        return jsonify({"order_id": order.order_id, "status": order.status})
    except OrderNotFoundError as e:
        current_app.logger.warning("Gateway notification for unknown order %s", order_id)
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to process gateway notification for %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/<order_id>/vend")
def vend_route(order_id: str):
    """
    Re-trigger vending for a paid order.

    Returns:
        200: Token (existing or newly vended)
        404: Unknown order
        409: Order not paid
        502: Vending failed again (order stays VENDING_FAILED)
    """
    try:
        token = settlement_service.retry_vending(order_id)
        return jsonify(token.to_dict())
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except VendingFailure as e:
        return jsonify({"error": str(e), "order_id": e.order_id}), 502
    except SettlementError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to vend order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500
