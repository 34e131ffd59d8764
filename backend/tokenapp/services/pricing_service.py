# Overview: Pricing resolution, per-service status and purchase quotes.

"""
Pricing Service

RESOLUTION (resolve_price):
1. Walk Area -> Project -> Vendor in the hierarchy of the token type. A
   missing node is NOT_CONFIGURED, never an exception.
2. Re-join the vendor name against the registry. A vendor that is missing,
   inactive, or not authorized for the token type is INVALID_CONFIGURATION.
3. Look up the price setting. No row is NOT_CONFIGURED.
4. Parse the stored strings into a PriceTuple. Raw strings never leave
   this module.

SERVICE STATUS (service_status):
- ERROR: identifying fields incomplete, path absent from the hierarchy, or
  registry mismatch
- NEEDS_CONFIGURATION: path is valid but has no price setting yet
- VALID: everything resolves

Nothing here is cached; hierarchy and registry edits take effect on the next
read.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from flask import current_app

from ..models import Customer, CustomerService, PriceSetting
from .. import token_types
from .hierarchy_service import find_area, find_project, find_vendor_ref, get_price_setting
from .vendor_service import get_vendor_by_name
from .price_calculator import AmountRules, PriceBreakdown, PriceTuple, compute_price
from . import discount_service
from .identifier_service import is_placeholder


PRICING_CONFIGURED = "CONFIGURED"
PRICING_NOT_CONFIGURED = "NOT_CONFIGURED"
PRICING_INVALID = "INVALID_CONFIGURATION"

STATUS_VALID = "VALID"
STATUS_NEEDS_CONFIGURATION = "NEEDS_CONFIGURATION"
STATUS_ERROR = "ERROR"

# Where a NOT_CONFIGURED walk stopped
LEVEL_AREA = "area"
LEVEL_PROJECT = "project"
LEVEL_VENDOR = "vendor"
LEVEL_PRICE = "price"


@dataclass(frozen=True)
class PriceResolution:
    status: str
    price: PriceTuple | None = None
    reason: str | None = None
    missing_level: str | None = None

    @property
    def is_configured(self) -> bool:
        return self.status == PRICING_CONFIGURED

    def to_dict(self) -> dict:
        price = None
        if self.price is not None:
            price = {
                "base_price": self.price.base_price,
                "tax_percent": str(self.price.tax_percent),
                "admin_fee": self.price.admin_fee,
                "other_costs": self.price.other_costs,
            }
        return {
            "status": self.status,
            "price": price,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ServiceStatus:
    status: str
    pricing: PriceResolution
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "pricing_status": self.pricing.status,
            "reason": self.reason,
        }


# =============================================================================
# PARSING
# =============================================================================

_NON_DIGITS = re.compile(r"[^0-9]")
_NON_DECIMAL = re.compile(r"[^0-9.]")


def parse_amount(value: str | None) -> int | None:
    """
    "Rp 2.500" -> 2500. Empty or digit-free input -> None (unset).
    """
    if value is None:
        return None
    digits = _NON_DIGITS.sub("", str(value))
    if not digits:
        return None
    return int(digits)


def parse_percent(value: str | None) -> Decimal | None:
    if value is None:
        return None
    cleaned = _NON_DECIMAL.sub("", str(value))
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def price_tuple_from_setting(setting: PriceSetting) -> PriceTuple:
    """Unset fees and tax count as zero; an unset base price stays None."""
    return PriceTuple(
        base_price=parse_amount(setting.base_price),
        tax_percent=parse_percent(setting.tax_percent) or Decimal(0),
        admin_fee=parse_amount(setting.admin_fee) or 0,
        other_costs=parse_amount(setting.other_costs) or 0,
    )


# =============================================================================
# RESOLUTION
# =============================================================================

def _not_configured(level: str, reason: str) -> PriceResolution:
    return PriceResolution(status=PRICING_NOT_CONFIGURED, reason=reason, missing_level=level)


def resolve_price(token_type: str | None, area: str | None, project: str | None,
                  vendor_name: str | None) -> PriceResolution:
    """Resolve the price tuple for a full hierarchy path. Never raises."""
    token_type = token_types.normalize_token_type(token_type)
    area = (area or "").strip()
    project = (project or "").strip()
    vendor_name = (vendor_name or "").strip()

    if not area or not find_area(token_type, area):
        return _not_configured(LEVEL_AREA, f"Area '{area}' is not configured for {token_type or 'this token type'}")
    if not project or not find_project(token_type, area, project):
        return _not_configured(LEVEL_PROJECT, f"Project '{project}' is not configured under area '{area}'")
    if not vendor_name or not find_vendor_ref(token_type, area, project, vendor_name):
        return _not_configured(LEVEL_VENDOR, f"Vendor '{vendor_name}' is not configured under {area} / {project}")

    vendor = get_vendor_by_name(vendor_name)
    if not vendor:
        return PriceResolution(
            status=PRICING_INVALID,
            reason=f"Vendor '{vendor_name}' is not in the vendor registry",
        )
    if not vendor.is_active:
        return PriceResolution(status=PRICING_INVALID, reason=f"Vendor '{vendor_name}' is inactive")
    if not vendor.handles(token_type):
        return PriceResolution(
            status=PRICING_INVALID,
            reason=f"Vendor '{vendor_name}' is not authorized for {token_type}",
        )

    setting = get_price_setting(token_type, area, project, vendor_name)
    if not setting:
        return _not_configured(LEVEL_PRICE, f"No price setting for {area} / {project} / {vendor_name}")

    return PriceResolution(status=PRICING_CONFIGURED, price=price_tuple_from_setting(setting))


def service_status(service: CustomerService) -> ServiceStatus:
    required = {
        "service_id": service.service_id,
        "token_type": service.token_type,
        "area_project": service.area_project,
        "project": service.project,
        "vendor_name": service.vendor_name,
        "power_or_volume": service.power_or_volume,
    }
    missing = [name for name, value in required.items() if not (value or "").strip()]
    resolution = resolve_price(service.token_type, service.area_project, service.project, service.vendor_name)

    if missing:
        return ServiceStatus(STATUS_ERROR, resolution, f"Missing fields: {', '.join(missing)}")
    if resolution.status == PRICING_INVALID:
        return ServiceStatus(STATUS_ERROR, resolution, resolution.reason)
    if resolution.status == PRICING_NOT_CONFIGURED:
        if resolution.missing_level != LEVEL_PRICE:
            # Path itself no longer exists in the hierarchy
            return ServiceStatus(STATUS_ERROR, resolution, resolution.reason)
        return ServiceStatus(STATUS_NEEDS_CONFIGURATION, resolution, resolution.reason)
    return ServiceStatus(STATUS_VALID, resolution)


def customer_status(customer: Customer) -> str:
    if is_placeholder(customer.customer_id) or not customer.services:
        return STATUS_NEEDS_CONFIGURATION

    statuses = {service_status(s).status for s in customer.services}
    if STATUS_ERROR in statuses:
        return STATUS_ERROR
    if STATUS_NEEDS_CONFIGURATION in statuses:
        return STATUS_NEEDS_CONFIGURATION
    return STATUS_VALID


# =============================================================================
# QUOTES
# =============================================================================

def amount_rules_for(token_type: str) -> AmountRules:
    config = current_app.config
    granularity = config["NOMINAL_GRANULARITY"].get(token_types.normalize_token_type(token_type), 1_000)
    return AmountRules(
        min_nominal=config["MIN_NOMINAL"],
        max_nominal=config["MAX_NOMINAL"],
        granularity=granularity,
        min_payment=config["MIN_PAYMENT"],
    )


@dataclass(frozen=True)
class Quote:
    customer: Customer
    service: CustomerService
    status: ServiceStatus
    breakdown: PriceBreakdown
    voucher: discount_service.VoucherCheck | None = None
    points: discount_service.PointsQuote | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def base_price(self) -> int | None:
        price = self.status.pricing.price
        return price.base_price if price else None

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer.customer_id,
            "service_id": self.service.service_id,
            "token_type": self.service.token_type,
            "service_status": self.status.status,
            "pricing": self.status.pricing.to_dict(),
            "breakdown": self.breakdown.to_dict(),
            "voucher": self.voucher.to_dict() if self.voucher else None,
            "points": self.points.to_dict() if self.points else None,
            "warnings": list(self.warnings),
        }


def build_quote(
    customer: Customer,
    service: CustomerService,
    nominal: int,
    *,
    voucher_code: str | None = None,
    redeem_points: bool = False,
) -> Quote:
    """
    Price a purchase without mutating anything.

    NOT_CONFIGURED pricing falls back to the raw nominal with zero fees and
    adds a warning. An ERROR service is still quoted; refusing the purchase
    is the settlement service's job.

    Raises:
        InvalidAmountError: From the calculator.
    """
    status = service_status(service)
    warnings = []
    if status.status == STATUS_NEEDS_CONFIGURATION:
        current_app.logger.warning(
            "Pricing not configured for %s service %s (%s); charging raw nominal",
            service.token_type, service.service_id, status.reason,
        )
        warnings.append("Price settings are not configured yet; admin fee and tax are not applied")
    elif status.status == STATUS_ERROR:
        warnings.append(f"Service configuration error: {status.reason}")

    selection, voucher, points = discount_service.build_selection(
        customer.id,
        voucher_code=voucher_code,
        redeem_points=redeem_points,
    )

    breakdown = compute_price(
        nominal,
        status.pricing.price,
        selection,
        amount_rules_for(service.token_type),
    )
    if breakdown.discount_conflict:
        current_app.logger.warning(
            "Voucher and points both supplied for customer %s; voucher %s takes precedence",
            customer.customer_id, breakdown.voucher_code,
        )

    return Quote(
        customer=customer,
        service=service,
        status=status,
        breakdown=breakdown,
        voucher=voucher,
        points=points,
        warnings=warnings,
    )
