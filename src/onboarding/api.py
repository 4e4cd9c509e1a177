"""
Onboarding API Endpoints.

Page-load guards and stage submissions for membership intake. Every
submission validates its form, checks the stage against the membership's
onboarding_step, writes its own data, and only then advances the step.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from supabase import Client

from erdoc.db import client as db_ops
from erdoc.errors import NotFound, OutOfSequence, PersistenceFailure, Unauthorized
from erdoc.web.auth import AuthenticatedUser, get_current_user, get_db

from .forms import (
    BaselineForm,
    DependentIntakeForm,
    EmergencyContactsForm,
    MedicalHistoryForm,
    VitalsKitForm,
    get_form_options,
)
from .state import (
    IntakeStage,
    OnboardingStep,
    Route,
    advance,
    begin_intake,
    completed_steps,
    next_destination,
    require_stage,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


# =============================================================================
# Response Models
# =============================================================================


class StepResponse(BaseModel):
    """Where the member stands and where to send them."""
    onboarding_step: str | None
    redirect_to: str
    completed_steps: list[str] = []


class StageResponse(BaseModel):
    """A stage the member is allowed to open."""
    stage: str
    membership_id: str
    onboarding_step: str | None
    options: dict
    prefill: dict | None = None


class DependentIntakeResponse(BaseModel):
    person_id: str
    intake_complete: bool
    redirect_to: str


def _step_response(step: str | OnboardingStep | None) -> StepResponse:
    value = step.value if isinstance(step, OnboardingStep) else step
    return StepResponse(
        onboarding_step=value,
        redirect_to=next_destination(step).value,
        completed_steps=completed_steps(step),
    )


# =============================================================================
# Helpers
# =============================================================================


def load_membership(db: Client, user: AuthenticatedUser) -> dict:
    """Membership owned by the caller, or NotFound pointing at the request flow."""
    membership = db_ops.get_membership_for_user(db, user.id)
    if not membership:
        raise NotFound(
            "No membership found for this account",
            redirect_to=Route.REQUEST_REVIEW.value,
        )
    return membership


def load_self_person(db: Client, membership: dict) -> dict:
    person = db_ops.get_self_person(db, membership["id"])
    if not person:
        raise NotFound("Could not locate your profile")
    return person


def load_owned_person(db: Client, membership: dict, person_id: str) -> dict:
    """A person on the caller's membership. Anyone else's is Unauthorized."""
    person = db_ops.get_person(db, person_id)
    if not person:
        raise NotFound("Family member not found")
    if person.get("membership_id") != membership["id"]:
        logger.warning(f"Membership {membership['id']} tried to access person {person_id}")
        raise Unauthorized("This person is not on your membership", redirect_to=Route.DASHBOARD.value)
    return person


def commit_step(
    db: Client,
    membership: dict,
    stage: IntakeStage,
    extra: dict | None = None,
) -> OnboardingStep:
    """
    Advance onboarding_step after the stage's own data has been written.

    The update is conditional on the step read at the start of the request,
    so a concurrent submission cannot rewind it.
    """
    current = membership.get("onboarding_step")
    new_step = advance(current, stage)

    updated = db_ops.update_onboarding_step(db, membership["id"], current, new_step.value, extra)
    if not updated:
        logger.error(
            f"Step write for membership {membership['id']} matched no row "
            f"(expected {current!r}, writing {new_step.value})"
        )
        raise PersistenceFailure(
            "Your information was saved, but your progress could not be updated. Please retry."
        )

    logger.info(f"Membership {membership['id']} advanced {current!r} -> {new_step.value}")
    return new_step


def check_sequence(membership: dict, stage: IntakeStage) -> None:
    """Reject out-of-order requests before anything is written."""
    try:
        require_stage(membership.get("onboarding_step"), stage)
    except OutOfSequence as e:
        logger.warning(
            f"Membership {membership['id']} at {membership.get('onboarding_step')!r} "
            f"tried {stage.value}; redirecting to {e.redirect_to}"
        )
        raise


# =============================================================================
# Endpoints: Routing
# =============================================================================


@router.get("/next", response_model=StepResponse)
async def get_next_destination(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> StepResponse:
    """Where the caller should go now."""
    membership = db_ops.get_membership_for_user(db, user.id)
    if not membership:
        return StepResponse(
            onboarding_step=None,
            redirect_to=next_destination(None, has_membership=False).value,
        )
    return _step_response(membership.get("onboarding_step"))


@router.get("/options")
async def get_options():
    """Option lists for all intake forms."""
    return get_form_options()


@router.get("/stages/{stage}", response_model=StageResponse)
async def open_stage(
    stage: IntakeStage,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> StageResponse:
    """
    Page-load guard for an intake stage.

    Returns 409 with redirect_to when the stage is not open. Opening the
    baseline form for the first time moves the membership to pending_baseline.
    """
    membership = load_membership(db, user)
    check_sequence(membership, stage)

    step = membership.get("onboarding_step")
    prefill = None

    if stage == IntakeStage.BASELINE:
        pending = begin_intake(step)
        if pending is not None:
            if db_ops.update_onboarding_step(db, membership["id"], step, pending.value):
                step = pending.value
            else:
                logger.warning(f"Membership {membership['id']} moved before baseline was opened")
        person = db_ops.get_self_person(db, membership["id"])
        if person:
            prefill = {
                k: person.get(k)
                for k in ("first_name", "last_name", "middle_name", "preferred_name", "date_of_birth")
            }

    return StageResponse(
        stage=stage.value,
        membership_id=membership["id"],
        onboarding_step=step,
        options=get_form_options(),
        prefill=prefill,
    )


# =============================================================================
# Endpoints: Stage Submissions
# =============================================================================


@router.post("/baseline", response_model=StepResponse)
async def submit_baseline(
    form: BaselineForm,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> StepResponse:
    """Stage 1: baseline profile and medical summary."""
    membership = load_membership(db, user)
    check_sequence(membership, IntakeStage.BASELINE)
    person = load_self_person(db, membership)

    db_ops.update_person(db, person["id"], form.person_updates())
    db_ops.upsert_intake_responses(db, form.to_intake_responses(person["id"], membership["id"]))

    return _step_response(commit_step(db, membership, IntakeStage.BASELINE))


@router.post("/emergency-contacts", response_model=StepResponse)
async def submit_emergency_contacts(
    form: EmergencyContactsForm,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> StepResponse:
    """Stage 2: one or two emergency contacts."""
    membership = load_membership(db, user)
    check_sequence(membership, IntakeStage.EMERGENCY_CONTACTS)
    person = load_self_person(db, membership)

    db_ops.upsert_emergency_contacts(db, form.to_rows(membership["id"], person["id"]))

    return _step_response(commit_step(db, membership, IntakeStage.EMERGENCY_CONTACTS))


@router.post("/medical-history", response_model=StepResponse)
async def submit_medical_history(
    form: MedicalHistoryForm,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> StepResponse:
    """Stage 3: medical history and sex assigned at birth."""
    membership = load_membership(db, user)
    check_sequence(membership, IntakeStage.MEDICAL_HISTORY)
    person = load_self_person(db, membership)

    db_ops.upsert_medical_history(db, form.to_row(membership["id"]))
    db_ops.update_person(db, person["id"], {"sex_at_birth": form.sex_at_birth})

    return _step_response(commit_step(db, membership, IntakeStage.MEDICAL_HISTORY))


@router.post("/vitals-kit", response_model=StepResponse)
async def submit_vitals_kit(
    form: VitalsKitForm,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> StepResponse:
    """Stage 4: vitals kit status. Written in the same update as the final step."""
    membership = load_membership(db, user)
    check_sequence(membership, IntakeStage.VITALS_KIT)

    new_step = commit_step(
        db,
        membership,
        IntakeStage.VITALS_KIT,
        extra={"vitals_kit_status": form.vitals_kit_status},
    )
    return _step_response(new_step)


# =============================================================================
# Endpoints: Family Member Intake
# =============================================================================


@router.post("/family/{person_id}", response_model=DependentIntakeResponse)
async def submit_dependent_intake(
    person_id: str,
    form: DependentIntakeForm,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> DependentIntakeResponse:
    """Medical intake for a dependent. One submission per person."""
    membership = load_membership(db, user)
    person = load_owned_person(db, membership, person_id)

    if person.get("relationship") == "self":
        raise OutOfSequence(
            "The primary member completes intake through the onboarding steps",
            redirect_to=next_destination(membership.get("onboarding_step")).value,
        )
    if person.get("intake_complete"):
        raise OutOfSequence("Intake is already complete for this person", redirect_to=Route.DASHBOARD.value)

    db_ops.upsert_intake_responses(db, form.to_intake_responses(person_id, membership["id"]))
    db_ops.update_person(db, person_id, {"intake_complete": True})

    return DependentIntakeResponse(
        person_id=person_id,
        intake_complete=True,
        redirect_to=Route.DASHBOARD.value,
    )
