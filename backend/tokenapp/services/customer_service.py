# Overview: Service-layer operations for customers and their metered services.

"""
Customer Service

IDENTIFIERS: A customer with at least one service carries a sequenced id
(SAI-0924-L-0007). A customer without services carries a PENDING-XXXX
placeholder. Crossing between the two states re-issues the id.

STATUS: Never stored. Every read re-derives per-service status from the
current hierarchy and registry (pricing_service.service_status).
"""

from __future__ import annotations

from ..extensions import db
from ..models import Customer, CustomerService
from .. import token_types
from .identifier_service import generate_customer_id, reissue_customer_id
from .pricing_service import customer_status, service_status


KTP_LENGTH = 16

SERVICE_FIELDS = (
    "area_project",
    "project",
    "vendor_name",
    "power_or_volume",
    "notes",
)


class CustomerError(Exception):
    """Raised when customer data fails validation."""
    pass


class CustomerNotFoundError(CustomerError):
    """Raised when a customer is not found."""
    pass


def _clean_services(services: list[dict] | None) -> list[dict]:
    cleaned = []
    seen = set()
    for raw in services or []:
        service_id = (raw.get("service_id") or "").strip()
        if not service_id:
            raise CustomerError("service_id is required for every service")

        token_type = token_types.normalize_token_type(raw.get("token_type"))
        if token_type not in token_types.TYPE_CODES:
            raise CustomerError(f"Unknown token type for service {service_id}: {raw.get('token_type')}")

        key = (service_id, token_type)
        if key in seen:
            raise CustomerError(f"Duplicate service {service_id} for {token_type}")
        seen.add(key)

        item = {
            "service_id": service_id,
            "token_type": token_type,
            "is_service_transaction_active": bool(raw.get("is_service_transaction_active", True)),
        }
        for name in SERVICE_FIELDS:
            value = raw.get(name)
            item[name] = value.strip() if isinstance(value, str) else value
        cleaned.append(item)
    return cleaned


def create_customer(
    *,
    ktp: str,
    name: str,
    username: str,
    email: str,
    phone: str | None = None,
    address: str | None = None,
    services: list[dict] | None = None,
    is_transaction_active: bool = True,
) -> Customer:
    """
    Register a customer and issue their identifier.

    Raises:
        CustomerError: On an invalid or duplicate KTP, missing required
            fields, or invalid services.
    """
    ktp = (ktp or "").strip()
    if len(ktp) != KTP_LENGTH or not ktp.isdigit():
        raise CustomerError(f"KTP must be exactly {KTP_LENGTH} digits")
    for label, value in (("name", name), ("username", username), ("email", email)):
        if not value or not value.strip():
            raise CustomerError(f"{label} is required")

    if db.session.query(Customer).filter_by(ktp=ktp).first():
        raise CustomerError("A customer with this KTP already exists")

    cleaned = _clean_services(services)
    customer_id = generate_customer_id([s["token_type"] for s in cleaned])

    customer = Customer(
        customer_id=customer_id,
        ktp=ktp,
        name=name.strip(),
        username=username.strip(),
        email=email.strip(),
        phone=phone,
        address=address,
        is_transaction_active=is_transaction_active,
    )
    customer.services = [CustomerService(**s) for s in cleaned]
    db.session.add(customer)
    db.session.commit()
    return customer


def get_customer(customer_id: str) -> Customer:
    customer = db.session.query(Customer).filter_by(customer_id=customer_id).first()
    if not customer:
        raise CustomerNotFoundError(f"Customer {customer_id} not found")
    return customer


def replace_services(customer_id: str, services: list[dict]) -> Customer:
    """Replace a customer's services, re-issuing the id when needed."""
    customer = get_customer(customer_id)
    cleaned = _clean_services(services)

    customer.customer_id = reissue_customer_id(customer.customer_id, [s["token_type"] for s in cleaned])
    # Flush removals before inserts so the (customer, service, type) key can be reused
    customer.services = []
    db.session.flush()
    customer.services = [CustomerService(**s) for s in cleaned]
    db.session.commit()
    return customer


def set_transaction_active(customer_id: str, is_active: bool) -> Customer:
    customer = get_customer(customer_id)
    customer.is_transaction_active = is_active
    db.session.commit()
    return customer


def describe_customer(customer: Customer) -> dict:
    data = customer.to_dict()
    statuses = {
        (s.service_id, s.token_type): service_status(s)
        for s in customer.services
    }
    for item in data["services"]:
        item.update(statuses[(item["service_id"], item["token_type"])].to_dict())
    data["status"] = customer_status(customer)
    return data


def list_customers(status: str | None = None) -> list[dict]:
    customers = db.session.query(Customer).order_by(Customer.registration_date.desc(), Customer.id.desc()).all()
    described = [describe_customer(c) for c in customers]
    if status:
        described = [c for c in described if c["status"] == status.upper()]
    return described
