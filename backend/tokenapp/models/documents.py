from __future__ import annotations

from ..extensions import db


class SequenceCounter(db.Model):
    """
    Per-(scope, period, type code) counter behind human-readable identifiers.

    scope is "customer" for customer ids and "order_<source>" for order ids.
    Rows are created on first use and never deleted. last_sequence is only
    ever changed by a single UPDATE ... SET last_sequence = last_sequence + 1.
    """
    __tablename__ = "sequence_counters"
    __table_args__ = (
        db.UniqueConstraint("scope", "period", "type_code", name="uq_sequence_counters_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(32), nullable=False)
    period = db.Column(db.String(16), nullable=False)
    type_code = db.Column(db.String(4), nullable=False)
    last_sequence = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "scope": self.scope,
            "period": self.period,
            "type_code": self.type_code,
            "last_sequence": self.last_sequence,
        }
