# Overview: Flask API routes for quoting and placing token purchases.

"""
Purchase Routes

DESIGN:
- Quote: full price breakdown, service status and discount messages; no writes
- Create: persists the order and opens a gateway payment session
- Every amount rule is checked before the gateway is contacted
"""

from flask import Blueprint, request, jsonify, current_app

from ..clients.payment_gateway import GatewaySessionError, RedirectUrls
from ..services import settlement_service
from ..services.customer_service import CustomerError, CustomerNotFoundError
from ..services.identifier_service import IdentifierError
from ..services.price_calculator import InvalidAmountError
from ..services.settlement_service import OrderNotFoundError, PurchaseBlockedError


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _purchase_args(data: dict) -> tuple[dict | None, str | None]:
    customer_id = data.get("customer_id")
    service_id = data.get("service_id")
    nominal = data.get("nominal")
    if not customer_id or not service_id or nominal is None:
        return None, "customer_id, service_id, and nominal required"
    try:
        nominal = int(nominal)
    except (TypeError, ValueError):
        return None, "nominal must be an integer"
    return {
        "customer_id": customer_id,
        "service_id": service_id,
        "token_type": data.get("token_type"),
        "nominal": nominal,
        "voucher_code": data.get("voucher_code"),
        "redeem_points": bool(data.get("redeem_points", False)),
    }, None


@purchases_bp.post("/quote")
def quote_route():
    """
    Request body:
    {
        "customer_id": "SAI-0924-L-0007",
        "service_id": "14234567890",
        "token_type": "ELECTRICITY",   (optional; required when the id is
                                        registered for several token types)
        "nominal": 50000,
        "voucher_code": "DISKON10K",   (optional)
        "redeem_points": false          (optional, ignored when a voucher is given)
    }
    """
    args, error = _purchase_args(request.get_json(silent=True) or {})
    if error:
        return jsonify({"error": error}), 400

    try:
        quote = settlement_service.quote_purchase(**args)
        return jsonify(quote.to_dict())
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (CustomerError, InvalidAmountError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to quote purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("")
def create_purchase_route():
    """
    Same body as /quote, plus optional:
    - source: A | U | T | V (default U)
    - finish_url: redirect base after payment

    Returns:
        201: Order in PAYMENT_PENDING with session_token and redirect_url
        400: Invalid input or amount
        404: Unknown customer
        409: Purchase blocked (transactions disabled or configuration error)
        502: Gateway refused the session (body carries order_id)
    """
    data = request.get_json(silent=True) or {}
    args, error = _purchase_args(data)
    if error:
        return jsonify({"error": error}), 400

    redirect_urls = None
    if data.get("finish_url"):
        redirect_urls = RedirectUrls(finish=data["finish_url"])

    try:
        order = settlement_service.create_order(
            **args,
            source=data.get("source", "U"),
            redirect_urls=redirect_urls,
        )
        return jsonify(order.to_dict()), 201
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (CustomerError, InvalidAmountError, IdentifierError) as e:
        return jsonify({"error": str(e)}), 400
    except PurchaseBlockedError as e:
        return jsonify({"error": str(e)}), 409
    except GatewaySessionError as e:
        return jsonify({"error": str(e), "order_id": e.order_id}), 502
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
def list_purchases_route():
    """Query params: status, customer_id, limit (default 100, max 500)."""
    limit = request.args.get("limit", 100, type=int)
    limit = max(1, min(limit, 500))
    orders = settlement_service.list_orders(
        status=request.args.get("status"),
        customer_id=request.args.get("customer_id"),
        limit=limit,
    )
    return jsonify({"items": [o.to_dict() for o in orders], "count": len(orders)})


@purchases_bp.get("/<order_id>")
def get_purchase_route(order_id: str):
    try:
        order = settlement_service.get_order(order_id)
    except OrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404

    token = settlement_service.get_token(order_id)
    return jsonify({
        "order": order.to_dict(),
        "token": token.to_dict() if token else None,
    })
