from __future__ import annotations

from ..extensions import db
from tokenapp.time_utils import to_utc_z


class Vendor(db.Model):
    """
    Global vendor registry entry.

    handled_services lists the token types the vendor is authorized to sell.
    Hierarchy nodes refer to vendors by name only.
    """
    __tablename__ = "vendors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True, index=True)
    handled_services = db.Column(db.JSON, nullable=False, default=list)

    contact_person = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)

    # Login identity of the vendor user, when one exists
    auth_ref = db.Column(db.String(128), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    registration_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def handles(self, token_type: str) -> bool:
        return token_type in (self.handled_services or [])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "handled_services": list(self.handled_services or []),
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "auth_ref": self.auth_ref,
            "is_active": self.is_active,
            "registration_date": to_utc_z(self.registration_date),
            "updated_at": to_utc_z(self.updated_at),
        }
