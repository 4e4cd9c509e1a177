"""
Family member endpoints.

Adds, edits and removes dependents on the caller's membership. The primary
member (relationship = self) is never removed and never changes relationship
through these routes.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator, model_validator
from supabase import Client

from erdoc.audit import AuditAction, log_audit
from erdoc.db import client as db_ops
from erdoc.errors import NotFound, PersistenceFailure, ValidationFailure
from erdoc.web.auth import (
    AuthenticatedUser,
    Capability,
    get_current_user,
    get_db,
    require_capability,
)
from onboarding.api import load_membership, load_owned_person
from onboarding.forms import DEPENDENT_RELATIONSHIPS, normalize_phone, validate_birth_date

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/family",
    tags=["family"],
    dependencies=[Depends(require_capability(Capability.MANAGE_MEMBERSHIP))],
)


# =============================================================================
# Request Models
# =============================================================================


def _check_relationship(value: str) -> str:
    if value not in DEPENDENT_RELATIONSHIPS:
        raise ValueError(f"Invalid relationship: {value}")
    return value


class FamilyMemberCreate(BaseModel):
    first_name: str
    last_name: str
    date_of_birth: date
    relationship: str
    phone: str | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def required_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("First and last name are required")
        return v

    @field_validator("date_of_birth")
    @classmethod
    def check_dob(cls, v: date) -> date:
        return validate_birth_date(v)

    @field_validator("relationship")
    @classmethod
    def check_relationship(cls, v: str) -> str:
        return _check_relationship(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str | None) -> str | None:
        if not v or not v.strip():
            return None
        return normalize_phone(v)


class FamilyMemberUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    preferred_name: str | None = None
    date_of_birth: date | None = None
    relationship: str | None = None
    phone: str | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def non_blank_name(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("Names cannot be blank")
        return v.strip() if v else v

    @field_validator("date_of_birth")
    @classmethod
    def check_dob(cls, v: date | None) -> date | None:
        return validate_birth_date(v) if v else v

    @field_validator("relationship")
    @classmethod
    def check_relationship(cls, v: str | None) -> str | None:
        return _check_relationship(v) if v is not None else v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return normalize_phone(v)

    @model_validator(mode="after")
    def required_fields_not_cleared(self) -> "FamilyMemberUpdate":
        cleared = [
            name for name in ("first_name", "last_name", "date_of_birth", "relationship")
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"Cannot clear required fields: {', '.join(cleared)}")
        return self

    def to_updates(self) -> dict:
        updates = self.model_dump(exclude_unset=True)
        if "date_of_birth" in updates and updates["date_of_birth"] is not None:
            updates["date_of_birth"] = updates["date_of_birth"].isoformat()
        return updates


class FamilyListResponse(BaseModel):
    data: list[dict]
    count: int


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=FamilyListResponse)
async def list_family_members(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> FamilyListResponse:
    """Everyone covered by the caller's membership."""
    membership = load_membership(db, user)
    people = db_ops.list_people(db, membership["id"])
    return FamilyListResponse(data=people, count=len(people))


@router.post("", status_code=201)
async def add_family_member(
    request: FamilyMemberCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> dict:
    """Add a dependent. Their intake starts incomplete."""
    membership = load_membership(db, user)

    person = db_ops.insert_person(db, {
        "membership_id": membership["id"],
        "first_name": request.first_name,
        "last_name": request.last_name,
        "date_of_birth": request.date_of_birth.isoformat(),
        "relationship": request.relationship,
        "phone": request.phone,
        "intake_complete": False,
    })
    log_audit(db, AuditAction.ADD_FAMILY_MEMBER, "person", person.get("id"), person.get("id"))
    return {"data": person, "redirect_to": f"/membership/intake/{person.get('id')}"}


@router.patch("/{person_id}")
async def update_family_member(
    person_id: str,
    request: FamilyMemberUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> dict:
    """Edit a covered person. The self row keeps relationship = self."""
    membership = load_membership(db, user)
    person = load_owned_person(db, membership, person_id)

    updates = request.to_updates()
    if person.get("relationship") == "self" and "relationship" in updates:
        raise ValidationFailure("The primary member's relationship cannot be changed")
    if not updates:
        raise ValidationFailure("No changes provided")

    updated = db_ops.update_person(db, person_id, updates)
    if updated is None:
        raise NotFound("Family member not found")

    log_audit(db, AuditAction.UPDATE_FAMILY_MEMBER, "person", person_id, person_id,
              {"fields": sorted(updates)})
    return {"data": updated}


@router.delete("/{person_id}")
async def remove_family_member(
    person_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> dict:
    """Remove a dependent. Removing the primary member is always rejected."""
    membership = load_membership(db, user)
    person = load_owned_person(db, membership, person_id)

    if person.get("relationship") == "self":
        logger.warning(f"Rejected removal of primary member {person_id}")
        raise ValidationFailure("The primary member cannot be removed from the membership")

    if not db_ops.delete_person(db, person_id, membership["id"]):
        raise PersistenceFailure("Failed to remove family member. Please try again.")

    log_audit(db, AuditAction.REMOVE_FAMILY_MEMBER, "person", person_id, person_id)
    return {"deleted": person_id}
