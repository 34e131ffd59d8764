import re

import pytest

from tokenapp.models import CustomerService
from tokenapp.services import customer_service
from tokenapp.services.customer_service import CustomerError, CustomerNotFoundError


SEQUENCED = re.compile(r"SAI-\d{4}-[LAGSMU]-\d{4}")
PLACEHOLDER = re.compile(r"PENDING-[A-Z0-9]{4}")


def _create(ktp="3171234567890009", services=None):
    return customer_service.create_customer(
        ktp=ktp,
        name="Siti Rahma",
        username="siti",
        email="siti@example.test",
        services=services,
    )


def test_customer_with_service_gets_sequenced_id(db_session, customer):
    assert SEQUENCED.fullmatch(customer.customer_id)
    assert customer.customer_id.split("-")[2] == "L"
    assert customer.customer_id.endswith("-0001")


def test_customer_with_mixed_services(db_session, priced_path, make_service):
    c = _create(services=[make_service(), make_service("WTR-001", token_type="WATER")])

    assert c.customer_id.split("-")[2] == "M"


def test_customer_without_services_gets_placeholder(db_session):
    assert PLACEHOLDER.fullmatch(_create().customer_id)


@pytest.mark.parametrize("ktp", ["123", "31712345678900AB", "", "31712345678900011"])
def test_ktp_must_be_sixteen_digits(db_session, ktp):
    with pytest.raises(CustomerError, match="KTP"):
        _create(ktp=ktp)


def test_duplicate_ktp_rejected(db_session, customer):
    with pytest.raises(CustomerError, match="already exists"):
        _create(ktp=customer.ktp)


def test_duplicate_service_rejected(db_session, make_service):
    with pytest.raises(CustomerError, match="Duplicate"):
        _create(services=[make_service(), make_service()])


def test_unknown_token_type_rejected(db_session, make_service):
    with pytest.raises(CustomerError, match="Unknown token type"):
        _create(services=[make_service(token_type="TELECOM")])


def test_adding_first_service_reissues_id(db_session, priced_path, make_service):
    c = _create()
    placeholder = c.customer_id

    c = customer_service.replace_services(placeholder, [make_service()])

    assert SEQUENCED.fullmatch(c.customer_id)
    with pytest.raises(CustomerNotFoundError):
        customer_service.get_customer(placeholder)


def test_removing_all_services_reissues_placeholder(db_session, customer):
    c = customer_service.replace_services(customer.customer_id, [])

    assert PLACEHOLDER.fullmatch(c.customer_id)
    assert db_session.query(CustomerService).count() == 0


def test_replacing_services_keeps_sequenced_id(db_session, customer, make_service):
    original = customer.customer_id

    c = customer_service.replace_services(original, [make_service(power_or_volume="2200 VA")])

    assert c.customer_id == original
    assert c.services[0].power_or_volume == "2200 VA"


def test_describe_customer_derives_status(db_session, customer):
    data = customer_service.describe_customer(customer)

    assert data["status"] == "VALID"
    assert data["ktp_last4"] == "0001"
    assert data["services"][0]["status"] == "VALID"
    assert data["services"][0]["pricing_status"] == "CONFIGURED"


def test_list_customers_filters_by_status(db_session, customer):
    _create()

    assert len(customer_service.list_customers()) == 2
    needs = customer_service.list_customers(status="needs_configuration")
    assert [c["name"] for c in needs] == ["Siti Rahma"]
