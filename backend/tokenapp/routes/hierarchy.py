# Overview: Flask API routes for the Area -> Project -> Vendor hierarchy and price settings.

"""
Hierarchy Routes

One tree per token type (ELECTRICITY, WATER, GAS, SOLAR). Write routes
enforce the registry rules in hierarchy_service; the resolve route reports
pricing status and never fails on a missing path.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import hierarchy_service, pricing_service
from ..services.hierarchy_service import HierarchyError


hierarchy_bp = Blueprint("hierarchy", __name__, url_prefix="/api/hierarchy")


def _path(data: dict, prefix: str = "") -> tuple:
    return (
        data.get(f"{prefix}area"),
        data.get(f"{prefix}project"),
        data.get(f"{prefix}vendor_name"),
    )


@hierarchy_bp.get("/<token_type>")
def get_hierarchy_route(token_type: str):
    """
    Returns:
        {token_type, areas: [{name, projects: [{name, vendors: [{name}]}]}], price_settings: [...]}
    """
    try:
        return jsonify({
            "token_type": token_type.upper(),
            "areas": hierarchy_service.get_hierarchy(token_type),
            "price_settings": hierarchy_service.list_price_settings(token_type),
        })
    except HierarchyError as e:
        return jsonify({"error": str(e)}), 400


@hierarchy_bp.post("/<token_type>/paths")
def add_path_route(token_type: str):
    """
    Request body:
    {"area": "Jakarta", "project": "Tower A", "vendor_name": "PT Listrik"}
    """
    data = request.get_json(silent=True) or {}
    try:
        areas = hierarchy_service.add_hierarchy_path(token_type, *_path(data))
        return jsonify({"areas": areas}), 201
    except HierarchyError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to add hierarchy path")
        return jsonify({"error": "Internal server error"}), 500


@hierarchy_bp.put("/<token_type>/paths")
def move_path_route(token_type: str):
    """
    Request body:
    {
        "old": {"area": "...", "project": "...", "vendor_name": "..."},
        "new": {"area": "...", "project": "...", "vendor_name": "..."}
    }
    """
    data = request.get_json(silent=True) or {}
    old = data.get("old") or {}
    new = data.get("new") or {}
    try:
        areas = hierarchy_service.move_hierarchy_path(token_type, _path(old), _path(new))
        return jsonify({"areas": areas})
    except HierarchyError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to move hierarchy path")
        return jsonify({"error": "Internal server error"}), 500


@hierarchy_bp.delete("/<token_type>/paths")
def remove_path_route(token_type: str):
    data = request.get_json(silent=True) or {}
    try:
        areas = hierarchy_service.remove_hierarchy_path(token_type, *_path(data))
        return jsonify({"areas": areas})
    except HierarchyError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to remove hierarchy path")
        return jsonify({"error": "Internal server error"}), 500


@hierarchy_bp.put("/<token_type>/prices")
def set_price_route(token_type: str):
    """
    Request body:
    {
        "area": "...", "project": "...", "vendor_name": "...",
        "base_price": "1500", "tax_percent": "11", "admin_fee": "2500", "other_costs": "0"
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        setting = hierarchy_service.set_price_setting(
            token_type,
            *_path(data),
            base_price=data.get("base_price"),
            tax_percent=data.get("tax_percent"),
            admin_fee=data.get("admin_fee"),
            other_costs=data.get("other_costs"),
        )
        return jsonify(setting.to_dict())
    except HierarchyError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to save price setting")
        return jsonify({"error": "Internal server error"}), 500


@hierarchy_bp.get("/<token_type>/resolve")
def resolve_route(token_type: str):
    """
    Query params: area, project, vendor_name

    Always 200: NOT_CONFIGURED and INVALID_CONFIGURATION are statuses.
    """
    resolution = pricing_service.resolve_price(
        token_type,
        request.args.get("area"),
        request.args.get("project"),
        request.args.get("vendor_name"),
    )
    return jsonify(resolution.to_dict())


@hierarchy_bp.get("/<token_type>/vendors")
def project_vendors_route(token_type: str):
    """Vendors under area/project that may sell this token type."""
    try:
        names = hierarchy_service.vendors_for_project(
            token_type,
            request.args.get("area", ""),
            request.args.get("project", ""),
        )
        return jsonify({"vendors": names})
    except HierarchyError as e:
        return jsonify({"error": str(e)}), 400
