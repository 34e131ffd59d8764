# Overview: Service-layer operations for the Area -> Project -> Vendor hierarchy and its price settings.

"""
Hierarchy Service

One tree per token type. Vendor nodes hold only a vendor *name*; the
registry (vendor_service) owns everything else about a vendor.

WRITE-TIME RULES:
- Area, project and vendor names are required and trimmed
- The vendor must exist in the registry, be active, and handle the token type
- A vendor appears at most once under a project
- Removing or moving the last vendor of a project prunes the project, and
  the last project of an area prunes the area

Registry edits made later can still invalidate a path; that drift is
reported at read time by pricing_service, not prevented here.
"""

from __future__ import annotations

import re

from ..extensions import db
from ..models import HierarchyArea, HierarchyProject, HierarchyVendorRef, PriceSetting
from .. import token_types
from .vendor_service import get_vendor_by_name


class HierarchyError(Exception):
    """Raised when a hierarchy edit breaks a write-time rule."""
    pass


def _token_type(value: str) -> str:
    token_type = token_types.normalize_token_type(value)
    if token_type not in token_types.TYPE_CODES:
        raise HierarchyError(f"Unknown token type: {value}")
    return token_type


def _clean(label: str, value: str | None) -> str:
    value = (value or "").strip()
    if not value:
        raise HierarchyError(f"{label} is required")
    return value


def _clean_path(area, project, vendor_name) -> tuple[str, str, str]:
    return (
        _clean("Area", area),
        _clean("Project", project),
        _clean("Vendor", vendor_name),
    )


def _check_vendor(token_type: str, vendor_name: str) -> None:
    vendor = get_vendor_by_name(vendor_name)
    if not vendor:
        raise HierarchyError(f"Vendor '{vendor_name}' is not in the vendor registry")
    if not vendor.is_active:
        raise HierarchyError(f"Vendor '{vendor_name}' is inactive")
    if not vendor.handles(token_type):
        raise HierarchyError(
            f"Vendor '{vendor_name}' does not handle {token_types.LABELS[token_type]} tokens"
        )


# =============================================================================
# LOOKUPS
# =============================================================================

def find_area(token_type: str, area: str) -> HierarchyArea | None:
    return db.session.query(HierarchyArea).filter_by(token_type=token_type, name=area).first()


def find_project(token_type: str, area: str, project: str) -> HierarchyProject | None:
    return (
        db.session.query(HierarchyProject)
        .join(HierarchyArea, HierarchyProject.area_id == HierarchyArea.id)
        .filter(
            HierarchyArea.token_type == token_type,
            HierarchyArea.name == area,
            HierarchyProject.name == project,
        )
        .first()
    )


def find_vendor_ref(token_type: str, area: str, project: str, vendor_name: str) -> HierarchyVendorRef | None:
    return (
        db.session.query(HierarchyVendorRef)
        .join(HierarchyProject, HierarchyVendorRef.project_id == HierarchyProject.id)
        .join(HierarchyArea, HierarchyProject.area_id == HierarchyArea.id)
        .filter(
            HierarchyArea.token_type == token_type,
            HierarchyArea.name == area,
            HierarchyProject.name == project,
            HierarchyVendorRef.vendor_name == vendor_name,
        )
        .first()
    )


def get_price_setting(token_type: str, area: str, project: str, vendor_name: str) -> PriceSetting | None:
    return (
        db.session.query(PriceSetting)
        .filter_by(token_type=token_type, area=area, project=project, vendor_name=vendor_name)
        .first()
    )


def get_hierarchy(token_type: str) -> list[dict]:
    """Areas with their projects and vendor names, sorted by name."""
    token_type = _token_type(token_type)
    areas = (
        db.session.query(HierarchyArea)
        .filter_by(token_type=token_type)
        .order_by(HierarchyArea.name.asc())
        .all()
    )
    return [a.to_dict() for a in areas]


def list_price_settings(token_type: str) -> list[dict]:
    token_type = _token_type(token_type)
    rows = (
        db.session.query(PriceSetting)
        .filter_by(token_type=token_type)
        .order_by(PriceSetting.area, PriceSetting.project, PriceSetting.vendor_name)
        .all()
    )
    return [r.to_dict() for r in rows]


def vendors_for_project(token_type: str, area: str, project: str) -> list[str]:
    """Vendor names under a project that the registry says handle the type."""
    token_type = _token_type(token_type)
    project_row = find_project(token_type, area, project)
    if not project_row:
        return []

    names = []
    for ref in project_row.vendors:
        vendor = get_vendor_by_name(ref.vendor_name)
        if vendor and vendor.is_active and vendor.handles(token_type):
            names.append(ref.vendor_name)
    return names


# =============================================================================
# EDITS
# =============================================================================

def _attach(token_type: str, area: str, project: str, vendor_name: str) -> HierarchyVendorRef:
    area_row = find_area(token_type, area)
    if not area_row:
        area_row = HierarchyArea(token_type=token_type, name=area)
        db.session.add(area_row)
        db.session.flush()

    project_row = (
        db.session.query(HierarchyProject)
        .filter_by(area_id=area_row.id, name=project)
        .first()
    )
    if not project_row:
        project_row = HierarchyProject(area_id=area_row.id, name=project)
        db.session.add(project_row)
        db.session.flush()

    ref = HierarchyVendorRef(project_id=project_row.id, vendor_name=vendor_name)
    db.session.add(ref)
    db.session.flush()
    return ref


def _detach(ref: HierarchyVendorRef) -> None:
    project_row = ref.project
    area_row = project_row.area

    project_row.vendors.remove(ref)
    db.session.flush()

    if not project_row.vendors:
        area_row.projects.remove(project_row)
        db.session.flush()
        if not area_row.projects:
            db.session.delete(area_row)
            db.session.flush()


def add_hierarchy_path(token_type: str, area: str, project: str, vendor_name: str) -> list[dict]:
    """
    Add a vendor under area/project, creating the area and project as needed.

    Returns:
        The updated hierarchy for the token type.

    Raises:
        HierarchyError: On missing names, registry mismatch, or duplicates.
    """
    token_type = _token_type(token_type)
    area, project, vendor_name = _clean_path(area, project, vendor_name)
    _check_vendor(token_type, vendor_name)

    if find_vendor_ref(token_type, area, project, vendor_name):
        raise HierarchyError(f"Vendor '{vendor_name}' already exists under {area} / {project}")

    _attach(token_type, area, project, vendor_name)
    db.session.commit()
    return get_hierarchy(token_type)


def move_hierarchy_path(
    token_type: str,
    old_path: tuple[str, str, str],
    new_path: tuple[str, str, str],
) -> list[dict]:
    """
    Rename or relocate a vendor path. Its price setting follows it.

    Raises:
        HierarchyError: If the old path is missing, the new path already
            exists, or the new vendor fails the registry check.
    """
    token_type = _token_type(token_type)
    old_area, old_project, old_vendor = _clean_path(*old_path)
    new_area, new_project, new_vendor = _clean_path(*new_path)

    if (old_area, old_project, old_vendor) == (new_area, new_project, new_vendor):
        return get_hierarchy(token_type)

    ref = find_vendor_ref(token_type, old_area, old_project, old_vendor)
    if not ref:
        raise HierarchyError(f"Path {old_area} / {old_project} / {old_vendor} not found")

    _check_vendor(token_type, new_vendor)
    if find_vendor_ref(token_type, new_area, new_project, new_vendor):
        raise HierarchyError(f"Vendor '{new_vendor}' already exists under {new_area} / {new_project}")

    setting = get_price_setting(token_type, old_area, old_project, old_vendor)
    if get_price_setting(token_type, new_area, new_project, new_vendor):
        raise HierarchyError(f"Price setting already exists for {new_area} / {new_project} / {new_vendor}")

    _detach(ref)
    _attach(token_type, new_area, new_project, new_vendor)

    if setting:
        setting.area = new_area
        setting.project = new_project
        setting.vendor_name = new_vendor

    db.session.commit()
    return get_hierarchy(token_type)


def remove_hierarchy_path(token_type: str, area: str, project: str, vendor_name: str) -> list[dict]:
    token_type = _token_type(token_type)
    area, project, vendor_name = _clean_path(area, project, vendor_name)

    ref = find_vendor_ref(token_type, area, project, vendor_name)
    if not ref:
        raise HierarchyError(f"Path {area} / {project} / {vendor_name} not found")

    setting = get_price_setting(token_type, area, project, vendor_name)
    if setting:
        db.session.delete(setting)

    _detach(ref)
    db.session.commit()
    return get_hierarchy(token_type)


_AMOUNT_JUNK = re.compile(r"[^0-9]")
_PERCENT_JUNK = re.compile(r"[^0-9.]")


def _clean_amount(value) -> str | None:
    if value is None:
        return None
    cleaned = _AMOUNT_JUNK.sub("", str(value))
    return cleaned or None


def _clean_percent(value) -> str | None:
    if value is None:
        return None
    cleaned = _PERCENT_JUNK.sub("", str(value))
    return cleaned or None


def set_price_setting(
    token_type: str,
    area: str,
    project: str,
    vendor_name: str,
    *,
    base_price=None,
    tax_percent=None,
    admin_fee=None,
    other_costs=None,
) -> PriceSetting:
    """
    Create or replace the price setting of an existing path.

    Values are stored as strings, stripped to digits (amounts) or digits
    and '.' (tax). A value that cleans to nothing is stored as unset.
    """
    token_type = _token_type(token_type)
    area, project, vendor_name = _clean_path(area, project, vendor_name)

    if not find_vendor_ref(token_type, area, project, vendor_name):
        raise HierarchyError(f"Path {area} / {project} / {vendor_name} not found")

    setting = get_price_setting(token_type, area, project, vendor_name)
    if not setting:
        setting = PriceSetting(token_type=token_type, area=area, project=project, vendor_name=vendor_name)
        db.session.add(setting)

    setting.base_price = _clean_amount(base_price)
    setting.tax_percent = _clean_percent(tax_percent)
    setting.admin_fee = _clean_amount(admin_fee)
    setting.other_costs = _clean_amount(other_costs)

    db.session.commit()
    return setting
