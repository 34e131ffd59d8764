# Overview: Service-layer operations for human-readable customer and order identifiers.

"""
Identifier Sequencer

FORMATS:
- Customer: SAI-<MMYY>-<code>-<seq:04d>     e.g. SAI-0924-L-0007
- Placeholder customer (no services): PENDING-<4 random chars>
- Order: TRN-<source>-<DDMMYY>-<code>-<seq:04d>  e.g. TRN-U-070624-L-0001

COUNTERS: One SequenceCounter row per (scope, period, type code). The
increment is a single UPDATE ... SET last_sequence = last_sequence + 1, so
two concurrent purchases in the same key can never read the same value.

DEGRADED MODE: If the counter store cannot be reached the caller still gets
an identifier, built from a random 4-digit suffix. Sequences are therefore
best-effort unique and never gap-free.
"""

from __future__ import annotations

import random
import string

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import SequenceCounter
from .. import token_types
from tokenapp.time_utils import business_now, month_period, day_period
from .concurrency import run_with_retry


SCOPE_CUSTOMER = "customer"
PENDING_PREFIX = "PENDING"
PLACEHOLDER_ALPHABET = string.ascii_uppercase + string.digits

ORDER_SOURCES = {
    "A": "admin",
    "U": "user",
    "T": "technician",
    "V": "vendor",
}


class IdentifierError(Exception):
    """Raised for invalid identifier requests."""
    pass


def format_identifier(prefix: str, period: str, type_code: str, sequence: int) -> str:
    """PREFIX-<period>-<typeCode>-<seq:04d>."""
    return f"{prefix}-{period}-{type_code}-{sequence:04d}"


def order_scope(source: str) -> str:
    return f"order_{source}"


def _allocate_sequence(scope: str, period: str, type_code: str) -> int:
    stmt = (
        update(SequenceCounter)
        .where(
            SequenceCounter.scope == scope,
            SequenceCounter.period == period,
            SequenceCounter.type_code == type_code,
        )
        .values(last_sequence=SequenceCounter.last_sequence + 1)
        .execution_options(synchronize_session=False)
    )

    def _current() -> int:
        return (
            db.session.query(SequenceCounter.last_sequence)
            .filter_by(scope=scope, period=period, type_code=type_code)
            .scalar()
        )

    result = db.session.execute(stmt)
    if result.rowcount:
        return _current()

    counter = SequenceCounter(scope=scope, period=period, type_code=type_code, last_sequence=1)
    db.session.add(counter)
    try:
        db.session.flush()
        return 1
    except IntegrityError:
        # Another writer seeded the row first
        db.session.rollback()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        return _current()


def next_sequence(period: str, type_code: str, *, scope: str = SCOPE_CUSTOMER) -> int:
    """
    Allocate the next sequence number for (scope, period, type_code).

    Falls back to a random number in [0, 9999] when the counter store is
    unreachable; the fallback is logged as a SequencerDegraded warning.
    """
    if not period:
        raise IdentifierError("period is required")
    if not type_code:
        raise IdentifierError("type_code is required")

    try:
        return run_with_retry(lambda: _allocate_sequence(scope, period, type_code))
    except SQLAlchemyError:
        db.session.rollback()
        fallback = random.randint(0, 9999)
        current_app.logger.warning(
            "SequencerDegraded: counter store unavailable for %s/%s/%s, using random suffix %04d",
            scope, period, type_code, fallback,
            exc_info=True,
        )
        return fallback


# =============================================================================
# CUSTOMER IDENTIFIERS
# =============================================================================

def is_placeholder(customer_id: str | None) -> bool:
    return not customer_id or customer_id.startswith(f"{PENDING_PREFIX}-")


def placeholder_customer_id() -> str:
    suffix = "".join(random.choice(PLACEHOLDER_ALPHABET) for _ in range(4))
    return f"{PENDING_PREFIX}-{suffix}"


def customer_type_code(service_token_types: list[str]) -> str | None:
    """
    Type code for a customer's identifier.

    No services -> None (placeholder id), one token type -> its letter,
    several distinct token types -> M.
    """
    distinct = {token_types.normalize_token_type(t) for t in service_token_types if t}
    if not distinct:
        return None
    if len(distinct) > 1:
        return token_types.MIXED_CODE
    only = next(iter(distinct))
    return token_types.TYPE_CODES.get(only, token_types.UNKNOWN_CODE)


def generate_customer_id(service_token_types: list[str], *, now=None) -> str:
    type_code = customer_type_code(service_token_types)
    if type_code is None:
        return placeholder_customer_id()

    now = now or business_now(current_app.config["BUSINESS_TIMEZONE"])
    period = month_period(now)
    sequence = next_sequence(period, type_code, scope=SCOPE_CUSTOMER)
    return format_identifier(current_app.config["CUSTOMER_ID_PREFIX"], period, type_code, sequence)


def reissue_customer_id(current_id: str | None, service_token_types: list[str], *, now=None) -> str:
    """
    Re-derive a customer's identifier after their services changed.

    placeholder + services  -> new sequenced id
    sequenced + no services -> new placeholder
    otherwise               -> unchanged
    """
    has_services = customer_type_code(service_token_types) is not None
    if is_placeholder(current_id) and has_services:
        return generate_customer_id(service_token_types, now=now)
    if not is_placeholder(current_id) and not has_services:
        return placeholder_customer_id()
    return current_id


# =============================================================================
# ORDER IDENTIFIERS
# =============================================================================

def order_type_code(token_type: str | None) -> str:
    normalized = token_types.normalize_token_type(token_type)
    return token_types.TYPE_CODES.get(normalized, token_types.DEFAULT_ORDER_CODE)


def generate_order_id(token_type: str, source: str = "U", *, now=None) -> str:
    source = (source or "").strip().upper()
    if source not in ORDER_SOURCES:
        raise IdentifierError(f"Invalid order source: {source}. Must be one of {sorted(ORDER_SOURCES)}")

    now = now or business_now(current_app.config["BUSINESS_TIMEZONE"])
    period = day_period(now)
    type_code = order_type_code(token_type)
    sequence = next_sequence(period, type_code, scope=order_scope(source))
    prefix = f"{current_app.config['ORDER_ID_PREFIX']}-{source}"
    return format_identifier(prefix, period, type_code, sequence)
