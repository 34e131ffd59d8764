# Overview: Service-layer operations for the global vendor registry.

"""
Vendor Service

The registry is the single source of truth for vendor data. Hierarchy
nodes keep only a vendor name, and every read that needs capability
(which token types a vendor may sell) joins back to this table by name.

Vendors are never hard-deleted; deactivation keeps history intact and
turns every hierarchy path pointing at the vendor into a configuration
error until it is reactivated.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Vendor
from .. import token_types


class VendorNotFoundError(Exception):
    """Raised when a vendor is not found."""
    pass


class VendorValidationError(Exception):
    """Raised when vendor data fails validation."""
    pass


def _normalize_services(handled_services) -> list[str]:
    if not handled_services:
        raise VendorValidationError("Vendor must handle at least one token type")

    normalized = []
    for value in handled_services:
        token_type = token_types.normalize_token_type(value)
        if token_type not in token_types.TYPE_CODES:
            raise VendorValidationError(f"Unknown token type: {value}")
        if token_type not in normalized:
            normalized.append(token_type)
    return normalized


def create_vendor(
    *,
    name: str,
    handled_services: list[str],
    contact_person: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    address: str | None = None,
    auth_ref: str | None = None,
) -> Vendor:
    """
    Register a new vendor.

    Raises:
        VendorValidationError: On a missing name, a duplicate name, or an
            unknown token type.
    """
    if not name or not name.strip():
        raise VendorValidationError("Vendor name is required")
    name = name.strip()

    if db.session.query(Vendor).filter_by(name=name).first():
        raise VendorValidationError(f"Vendor '{name}' already exists")

    vendor = Vendor(
        name=name,
        handled_services=_normalize_services(handled_services),
        contact_person=contact_person,
        email=email,
        phone=phone,
        address=address,
        auth_ref=auth_ref,
        is_active=True,
    )
    db.session.add(vendor)
    db.session.commit()
    return vendor


def get_vendor(vendor_id: int) -> Vendor:
    vendor = db.session.query(Vendor).filter_by(id=vendor_id).first()
    if not vendor:
        raise VendorNotFoundError(f"Vendor {vendor_id} not found")
    return vendor


def get_vendor_by_name(name: str | None) -> Vendor | None:
    if not name:
        return None
    return db.session.query(Vendor).filter_by(name=name.strip()).first()


def update_vendor(
    *,
    vendor_id: int,
    handled_services: list[str] | None = None,
    contact_person: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    address: str | None = None,
) -> Vendor:
    """
    Update registry data for a vendor.

    The name is immutable: hierarchy nodes refer to it.
    """
    vendor = get_vendor(vendor_id)
    if not vendor.is_active:
        raise VendorValidationError("Cannot update inactive vendor")

    if handled_services is not None:
        vendor.handled_services = _normalize_services(handled_services)
    if contact_person is not None:
        vendor.contact_person = contact_person
    if email is not None:
        vendor.email = email
    if phone is not None:
        vendor.phone = phone
    if address is not None:
        vendor.address = address

    db.session.commit()
    return vendor


def set_vendor_active(vendor_id: int, is_active: bool) -> Vendor:
    vendor = get_vendor(vendor_id)
    vendor.is_active = is_active
    db.session.commit()
    return vendor


def list_vendors(*, token_type: str | None = None, include_inactive: bool = False) -> list[Vendor]:
    """List vendors, optionally only those handling token_type."""
    q = db.session.query(Vendor)
    if not include_inactive:
        q = q.filter(Vendor.is_active.is_(True))
    vendors = q.order_by(Vendor.name.asc()).all()

    if token_type:
        normalized = token_types.normalize_token_type(token_type)
        vendors = [v for v in vendors if v.handles(normalized)]
    return vendors
