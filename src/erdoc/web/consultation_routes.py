"""
Consultation request endpoints.

Members request physician contact for a covered person and may cancel a
request while it is pending or in progress. Completion and other status
changes belong to clinicians.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, Field, field_validator
from supabase import Client

from erdoc.audit import AuditAction, log_audit
from erdoc.db import client as db_ops
from erdoc.db.client import ACTIVE_CONSULTATION_STATUSES
from erdoc.errors import NotFound, OutOfSequence, Unauthorized, ValidationFailure
from erdoc.notifications import notify_consultation_created
from erdoc.web.auth import (
    AuthenticatedUser,
    Capability,
    get_current_user,
    get_db,
    require_capability,
)
from onboarding.api import load_membership, load_owned_person
from onboarding.forms import normalize_phone
from onboarding.state import OnboardingStep, next_destination, parse_step

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/consultations",
    tags=["consultations"],
    dependencies=[Depends(require_capability(Capability.REQUEST_CONSULTATION))],
)

CANCELLABLE_STATUSES = set(ACTIVE_CONSULTATION_STATUSES)


# =============================================================================
# Request Models
# =============================================================================


class ConsultationCreate(BaseModel):
    person_id: str
    chief_complaint: str = Field(max_length=2000)
    symptom_category: str | None = None
    symptom_onset: str | None = None
    symptom_severity: str | None = None
    callback_phone: str
    patient_location_state: str | None = None
    emergency_acknowledgement: bool

    @field_validator("chief_complaint")
    @classmethod
    def required_complaint(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please describe the main concern")
        return v

    @field_validator("callback_phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        return normalize_phone(v)

    @field_validator("emergency_acknowledgement")
    @classmethod
    def must_acknowledge(cls, v: bool) -> bool:
        if not v:
            raise ValueError("Please acknowledge that this is not emergency care")
        return v


def can_cancel(status: str | None) -> bool:
    """Members may cancel only while a request is pending or in progress."""
    return status in CANCELLABLE_STATUSES


# =============================================================================
# Endpoints
# =============================================================================


@router.get("")
async def list_consultations(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> dict:
    """Active request (if any) and recent history for the caller's membership."""
    membership = load_membership(db, user)
    consultations = db_ops.list_consultations(db, membership_id=membership["id"])

    active = next((c for c in consultations if c.get("status") in CANCELLABLE_STATUSES), None)
    history = [c for c in consultations if c.get("status") not in CANCELLABLE_STATUSES]
    return {"active": active, "history": history}


@router.post("", status_code=201)
async def request_consultation(
    request: ConsultationCreate,
    background_tasks: BackgroundTasks,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> dict:
    """
    Create a consultation request.

    Requires completed onboarding and no other active request. The on-call
    notification runs after the response and cannot undo the insert.
    """
    membership = load_membership(db, user)
    step = membership.get("onboarding_step")
    if parse_step(step) != OnboardingStep.ONBOARDING_COMPLETE:
        raise OutOfSequence(
            "Complete intake before requesting a consultation",
            redirect_to=next_destination(step).value,
        )

    person = load_owned_person(db, membership, request.person_id)

    active = db_ops.list_consultations(
        db, membership_id=membership["id"], statuses=ACTIVE_CONSULTATION_STATUSES, limit=1
    )
    if active:
        raise ValidationFailure("You already have an active consultation request")

    consultation = db_ops.insert_consultation(db, {
        "membership_id": membership["id"],
        **request.model_dump(),
    })
    logger.info(f"Consultation {consultation.get('id')} requested by membership {membership['id']}")

    log_audit(db, AuditAction.REQUEST_CONSULTATION, "consultation", consultation.get("id"), person["id"])
    background_tasks.add_task(notify_consultation_created, consultation, person)
    return {"data": consultation}


@router.post("/{consultation_id}/cancel")
async def cancel_consultation(
    consultation_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> dict:
    """Cancel a pending or in-progress request owned by the caller."""
    membership = load_membership(db, user)

    consultation = db_ops.get_consultation(db, consultation_id)
    if not consultation:
        raise NotFound("Consultation request not found")
    if consultation.get("membership_id") != membership["id"]:
        raise Unauthorized("This consultation is not on your membership", redirect_to="/dashboard")

    if not can_cancel(consultation.get("status")):
        raise ValidationFailure(
            f"A {consultation.get('status')} consultation cannot be cancelled"
        )

    cancelled = db_ops.cancel_consultation(db, consultation_id)
    if cancelled is None:
        # Status changed between the read and the write (e.g. a clinician completed it)
        raise ValidationFailure("This consultation can no longer be cancelled")

    log_audit(db, AuditAction.CANCEL_CONSULTATION, "consultation", consultation_id,
              consultation.get("person_id"))
    return {"data": cancelled}
