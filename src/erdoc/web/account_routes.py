"""
Account endpoints: membership summary and contact information for the
primary member.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from supabase import Client

from erdoc.audit import AuditAction, log_audit
from erdoc.db import client as db_ops
from erdoc.errors import NotFound
from erdoc.formatting import format_dob, format_phone, vitals_kit_label
from erdoc.web.auth import (
    AuthenticatedUser,
    Capability,
    get_current_user,
    get_db,
    require_capability,
)
from onboarding.api import load_membership, load_self_person
from onboarding.forms import normalize_phone
from onboarding.state import next_destination

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/account",
    tags=["account"],
    dependencies=[Depends(require_capability(Capability.MANAGE_MEMBERSHIP))],
)


class ContactInfoUpdate(BaseModel):
    """Phone is required. Omitted address fields are left as they are; blank ones are cleared."""
    phone: str
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = Field(default=None, max_length=10)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Phone number is required")
        return normalize_phone(v)

    @field_validator("address_line1", "address_line2", "city", "postal_code")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("state")
    @classmethod
    def upper_state(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        v = v.strip().upper()
        if len(v) != 2 or not v.isalpha():
            raise ValueError("State must be a two-letter code")
        return v


@router.patch("/contact")
async def update_contact_info(
    request: ContactInfoUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> dict:
    """Update phone and mailing address of the primary member."""
    membership = load_membership(db, user)
    person = load_self_person(db, membership)

    updated = db_ops.update_person(db, person["id"], request.model_dump(exclude_unset=True))
    if updated is None:
        raise NotFound("Could not locate your profile")

    log_audit(db, AuditAction.UPDATE_CONTACT_INFO, "person", person["id"], person["id"])
    return {"data": updated, "message": "Contact information updated successfully"}


@router.get("/summary")
async def get_membership_summary(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> dict:
    """Dashboard view of the membership: primary member, vitals kit and emergency contacts."""
    membership = load_membership(db, user)
    person = load_self_person(db, membership)
    contacts = db_ops.list_emergency_contacts(db, membership["id"])

    return {
        "membership_id": membership["id"],
        "plan_type": membership.get("plan_type"),
        "status": membership.get("status"),
        "onboarding_step": membership.get("onboarding_step"),
        "redirect_to": next_destination(membership.get("onboarding_step")).value,
        "vitals_kit_status": membership.get("vitals_kit_status"),
        "vitals_kit_label": vitals_kit_label(membership.get("vitals_kit_status")),
        "primary_member": {
            "id": person["id"],
            "name": f"{person.get('first_name', '')} {person.get('last_name', '')}".strip(),
            "date_of_birth": format_dob(person.get("date_of_birth")),
            "phone": format_phone(person.get("phone")),
        },
        "emergency_contacts": [
            {
                "name": c.get("name"),
                "relationship": c.get("relationship"),
                "phone": format_phone(c.get("phone")),
            }
            for c in contacts
        ],
    }
