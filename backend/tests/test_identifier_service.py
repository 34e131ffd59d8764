"""
Identifier sequencer tests.

Covers identifier formats, per-key counters, customer type codes, and the
degraded fallback when the counter store fails.
"""

import re
import threading
from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from tokenapp import create_app
from tokenapp.extensions import db
from tokenapp.models import SequenceCounter
from tokenapp.services import identifier_service
from tokenapp.services.identifier_service import (
    IdentifierError,
    customer_type_code,
    format_identifier,
    generate_customer_id,
    generate_order_id,
    is_placeholder,
    next_sequence,
    reissue_customer_id,
)


SEPT_2024 = datetime(2024, 9, 15, 10, 30)
JUNE_7_2024 = datetime(2024, 6, 7, 8, 0)


def test_format_identifier_pads_to_four_digits():
    assert format_identifier("SAI", "0924", "L", 7) == "SAI-0924-L-0007"
    assert format_identifier("TRN-U", "070624", "A", 12345) == "TRN-U-070624-A-12345"


def test_next_sequence_increments_per_key(db_session):
    assert next_sequence("0924", "L") == 1
    assert next_sequence("0924", "L") == 2
    assert next_sequence("0924", "A") == 1
    assert next_sequence("1024", "L") == 1
    db_session.commit()

    counter = db_session.query(SequenceCounter).filter_by(scope="customer", period="0924", type_code="L").one()
    assert counter.last_sequence == 2


def test_scopes_are_independent(db_session):
    assert next_sequence("070624", "L", scope="order_U") == 1
    assert next_sequence("070624", "L", scope="order_A") == 1
    assert next_sequence("070624", "L", scope="order_U") == 2


def test_next_sequence_requires_key(db_session):
    with pytest.raises(IdentifierError):
        next_sequence("", "L")
    with pytest.raises(IdentifierError):
        next_sequence("0924", "")


@pytest.mark.parametrize(
    "types, expected",
    [
        ([], None),
        (["ELECTRICITY"], "L"),
        (["WATER"], "A"),
        (["GAS"], "G"),
        (["SOLAR"], "S"),
        (["ELECTRICITY", "ELECTRICITY"], "L"),
        (["ELECTRICITY", "WATER"], "M"),
        (["TELECOM"], "U"),
    ],
)
def test_customer_type_code(types, expected):
    assert customer_type_code(types) == expected


def test_generate_customer_id(db_session):
    first = generate_customer_id(["ELECTRICITY"], now=SEPT_2024)
    second = generate_customer_id(["ELECTRICITY"], now=SEPT_2024)
    mixed = generate_customer_id(["WATER", "GAS"], now=SEPT_2024)

    assert first == "SAI-0924-L-0001"
    assert second == "SAI-0924-L-0002"
    assert mixed == "SAI-0924-M-0001"


def test_customer_without_services_gets_placeholder(db_session):
    customer_id = generate_customer_id([], now=SEPT_2024)

    assert re.fullmatch(r"PENDING-[A-Z0-9]{4}", customer_id)
    assert is_placeholder(customer_id)
    assert db_session.query(SequenceCounter).count() == 0


def test_reissue_customer_id_transitions(db_session):
    placeholder = "PENDING-AB12"

    promoted = reissue_customer_id(placeholder, ["SOLAR"], now=SEPT_2024)
    assert promoted == "SAI-0924-S-0001"

    demoted = reissue_customer_id(promoted, [])
    assert is_placeholder(demoted)

    assert reissue_customer_id(promoted, ["SOLAR", "GAS"]) == promoted
    assert reissue_customer_id(placeholder, []) == placeholder


def test_generate_order_id(db_session):
    assert generate_order_id("ELECTRICITY", now=JUNE_7_2024) == "TRN-U-070624-L-0001"
    assert generate_order_id("ELECTRICITY", now=JUNE_7_2024) == "TRN-U-070624-L-0002"
    assert generate_order_id("WATER", "A", now=JUNE_7_2024) == "TRN-A-070624-A-0001"
    assert generate_order_id("UNKNOWN", now=JUNE_7_2024) == "TRN-U-070624-X-0001"


def test_generate_order_id_rejects_unknown_source(db_session):
    with pytest.raises(IdentifierError):
        generate_order_id("ELECTRICITY", "Z", now=JUNE_7_2024)


def test_counter_store_failure_falls_back_to_random_suffix(db_session, monkeypatch, caplog):
    calls = []

    def broken(scope, period, type_code):
        calls.append((scope, period, type_code))
        raise OperationalError("UPDATE sequence_counters", {}, Exception("database is locked"))

    monkeypatch.setattr(identifier_service, "_allocate_sequence", broken)
    monkeypatch.setattr(identifier_service.random, "randint", lambda a, b: 42)

    with caplog.at_level("WARNING"):
        customer_id = generate_customer_id(["GAS"], now=SEPT_2024)

    assert customer_id == "SAI-0924-G-0042"
    assert len(calls) == 3  # retried before degrading
    assert "SequencerDegraded" in caplog.text


def test_concurrent_allocations_never_repeat(app, tmp_path):
    """Eight workers, each with its own app context and connection, share one counter row."""
    counter_app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'counters.sqlite3'}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30, "check_same_thread": False}},
        # Keep the shared outbound clients pointed at the test endpoints
        **{
            key: app.config[key]
            for key in (
                "PAYMENT_GATEWAY_URL", "PAYMENT_GATEWAY_SERVER_KEY",
                "VENDING_API_URL", "VENDING_COMPANY_NAME", "VENDING_USERNAME", "VENDING_PASSWORD",
            )
        },
    })
    with counter_app.app_context():
        db.create_all()

    workers, per_worker = 8, 10
    results = []
    errors = []
    lock = threading.Lock()

    def allocate():
        with counter_app.app_context():
            try:
                for _ in range(per_worker):
                    value = next_sequence("0924", "L")
                    db.session.commit()
                    with lock:
                        results.append(value)
            except Exception as exc:
                errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=allocate) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    with counter_app.app_context():
        last = db.session.query(SequenceCounter.last_sequence).filter_by(period="0924", type_code="L").scalar()
        db.engine.dispose()

    assert errors == []
    assert sorted(results) == list(range(1, workers * per_worker + 1))
    assert last == workers * per_worker
