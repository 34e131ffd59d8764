from __future__ import annotations

from ..extensions import db
from tokenapp.time_utils import to_utc_z


class HierarchyArea(db.Model):
    """
    Top level of the Area -> Project -> Vendor tree, one tree per token type.

    Names are unique within a token type.
    """
    __tablename__ = "hierarchy_areas"
    __table_args__ = (
        db.UniqueConstraint("token_type", "name", name="uq_hierarchy_areas_type_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    token_type = db.Column(db.String(16), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    projects = db.relationship(
        "HierarchyProject",
        backref="area",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="HierarchyProject.name",
    )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "projects": [p.to_dict() for p in self.projects],
        }


class HierarchyProject(db.Model):
    __tablename__ = "hierarchy_projects"
    __table_args__ = (
        db.UniqueConstraint("area_id", "name", name="uq_hierarchy_projects_area_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    area_id = db.Column(db.Integer, db.ForeignKey("hierarchy_areas.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    vendors = db.relationship(
        "HierarchyVendorRef",
        backref="project",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="HierarchyVendorRef.vendor_name",
    )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "vendors": [{"name": v.vendor_name} for v in self.vendors],
        }


class HierarchyVendorRef(db.Model):
    """
    Name pointer from a project to a vendor in the global registry.

    WHY: The hierarchy never owns vendor data. Capability (handled services)
    lives only on the Vendor row and is re-joined by name on every read.
    """
    __tablename__ = "hierarchy_vendor_refs"
    __table_args__ = (
        db.UniqueConstraint("project_id", "vendor_name", name="uq_hierarchy_vendor_refs_project_vendor"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("hierarchy_projects.id"), nullable=False, index=True)
    vendor_name = db.Column(db.String(255), nullable=False, index=True)


class PriceSetting(db.Model):
    """
    Vendor-specific price configuration for one hierarchy path.

    Values are kept exactly as the administrator typed them (free-form
    strings). They are parsed into numbers only by the pricing resolver.
    A missing row means "not yet configured".
    """
    __tablename__ = "price_settings"
    __table_args__ = (
        db.UniqueConstraint(
            "token_type", "area", "project", "vendor_name",
            name="uq_price_settings_path",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    token_type = db.Column(db.String(16), nullable=False, index=True)
    area = db.Column(db.String(255), nullable=False)
    project = db.Column(db.String(255), nullable=False)
    vendor_name = db.Column(db.String(255), nullable=False)

    base_price = db.Column(db.String(64), nullable=True)
    tax_percent = db.Column(db.String(64), nullable=True)
    admin_fee = db.Column(db.String(64), nullable=True)
    other_costs = db.Column(db.String(64), nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "token_type": self.token_type,
            "area": self.area,
            "project": self.project,
            "vendor_name": self.vendor_name,
            "base_price": self.base_price,
            "tax_percent": self.tax_percent,
            "admin_fee": self.admin_fee,
            "other_costs": self.other_costs,
            "updated_at": to_utc_z(self.updated_at),
        }
