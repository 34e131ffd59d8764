"""
Pricing resolver and service status tests.

Missing hierarchy nodes resolve to NOT_CONFIGURED; registry drift resolves
to INVALID_CONFIGURATION and marks the owning service ERROR.
"""

from decimal import Decimal

import pytest

from tokenapp.models import PriceSetting
from tokenapp.services import customer_service, hierarchy_service, pricing_service, vendor_service
from tokenapp.services.pricing_service import (
    PRICING_CONFIGURED,
    PRICING_INVALID,
    PRICING_NOT_CONFIGURED,
    STATUS_ERROR,
    STATUS_NEEDS_CONFIGURATION,
    STATUS_VALID,
    parse_amount,
    parse_percent,
    resolve_price,
)


VENDOR_NAME = "PT Listrik Prima"
AREA = "Jakarta Selatan"
PROJECT = "Tower A"


def test_configured_path_resolves(db_session, priced_path):
    resolution = resolve_price(*priced_path)

    assert resolution.status == PRICING_CONFIGURED
    assert resolution.price.base_price == 1500
    assert resolution.price.tax_percent == Decimal("11")
    assert resolution.price.admin_fee == 2500
    assert resolution.price.other_costs == 0


@pytest.mark.parametrize(
    "path",
    [
        ("ELECTRICITY", "Bandung", PROJECT, VENDOR_NAME),
        ("ELECTRICITY", AREA, "Tower Z", VENDOR_NAME),
        ("ELECTRICITY", AREA, PROJECT, "PT Lain"),
        ("WATER", AREA, PROJECT, VENDOR_NAME),
        ("ELECTRICITY", "", "", ""),
        (None, None, None, None),
    ],
)
def test_absent_paths_are_not_configured(db_session, priced_path, path):
    resolution = resolve_price(*path)

    assert resolution.status == PRICING_NOT_CONFIGURED
    assert resolution.price is None


def test_missing_price_setting_is_not_configured(db_session, vendor):
    hierarchy_service.add_hierarchy_path("ELECTRICITY", AREA, PROJECT, VENDOR_NAME)

    resolution = resolve_price("ELECTRICITY", AREA, PROJECT, VENDOR_NAME)

    assert resolution.status == PRICING_NOT_CONFIGURED
    assert resolution.missing_level == pricing_service.LEVEL_PRICE


def test_vendor_no_longer_authorized_is_invalid(db_session, priced_path, vendor):
    vendor_service.update_vendor(vendor_id=vendor.id, handled_services=["WATER"])

    assert resolve_price(*priced_path).status == PRICING_INVALID


def test_deactivated_vendor_is_invalid(db_session, priced_path, vendor):
    vendor_service.set_vendor_active(vendor.id, False)

    assert resolve_price(*priced_path).status == PRICING_INVALID


def test_malformed_strings_parse_to_unset(db_session, priced_path):
    setting = db_session.query(PriceSetting).one()
    setting.base_price = "abc"
    setting.tax_percent = "1.2.3"
    setting.admin_fee = "Rp 2.500"
    setting.other_costs = None
    db_session.commit()

    price = resolve_price(*priced_path).price

    assert price.base_price is None
    assert price.tax_percent == Decimal(0)
    assert price.admin_fee == 2500
    assert price.other_costs == 0


@pytest.mark.parametrize(
    "raw, expected",
    [("2500", 2500), ("Rp 2.500", 2500), ("", None), (None, None), ("n/a", None)],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


def test_parse_percent():
    assert parse_percent("11.5 %") == Decimal("11.5")
    assert parse_percent("") is None
    assert parse_percent("1.2.3") is None


def test_valid_service_status(db_session, customer):
    status = pricing_service.service_status(customer.services[0])

    assert status.status == STATUS_VALID
    assert pricing_service.customer_status(customer) == STATUS_VALID


def test_registry_mismatch_marks_service_error(db_session, customer, vendor):
    vendor_service.update_vendor(vendor_id=vendor.id, handled_services=["GAS"])

    status = pricing_service.service_status(customer.services[0])

    assert status.status == STATUS_ERROR
    assert status.pricing.status == PRICING_INVALID
    assert pricing_service.customer_status(customer) == STATUS_ERROR


def test_unpriced_path_needs_configuration(db_session, customer):
    hierarchy_service.remove_hierarchy_path("ELECTRICITY", AREA, PROJECT, VENDOR_NAME)
    hierarchy_service.add_hierarchy_path("ELECTRICITY", AREA, PROJECT, VENDOR_NAME)

    status = pricing_service.service_status(customer.services[0])

    assert status.status == STATUS_NEEDS_CONFIGURATION
    assert pricing_service.customer_status(customer) == STATUS_NEEDS_CONFIGURATION


def test_service_outside_hierarchy_is_error(db_session, customer, make_service):
    customer = customer_service.replace_services(
        customer.customer_id,
        [make_service(area_project="Bandung")],
    )

    assert pricing_service.service_status(customer.services[0]).status == STATUS_ERROR


def test_incomplete_service_is_error(db_session, customer, make_service):
    customer = customer_service.replace_services(
        customer.customer_id,
        [make_service(vendor_name="")],
    )

    status = pricing_service.service_status(customer.services[0])
    assert status.status == STATUS_ERROR
    assert "vendor_name" in status.reason


def test_customer_without_services_needs_configuration(db_session, priced_path):
    customer = customer_service.create_customer(
        ktp="3171234567890002",
        name="Ani",
        username="ani",
        email="ani@example.test",
    )

    assert pricing_service.customer_status(customer) == STATUS_NEEDS_CONFIGURATION


def test_service_without_power_or_volume_is_error(db_session, customer, make_service):
    customer = customer_service.replace_services(
        customer.customer_id,
        [make_service(power_or_volume="  ")],
    )

    status = pricing_service.service_status(customer.services[0])
    assert status.status == STATUS_ERROR
    assert "power_or_volume" in status.reason
    assert pricing_service.customer_status(customer) == STATUS_ERROR
