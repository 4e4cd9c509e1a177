"""
Onboarding Progression.

Decides which intake page a membership belongs on and what its
onboarding_step becomes once a stage is submitted. Pure functions over the
persisted step value; callers own all reads and writes.
"""

from enum import Enum

from erdoc.errors import OutOfSequence


class OnboardingStep(Enum):
    """Persisted memberships.onboarding_step values, in progression order."""
    STARTED = "started"                                          # Created at registration
    PENDING_BASELINE = "pending_baseline"                        # Baseline form opened
    BASELINE_COMPLETE = "baseline_complete"
    EMERGENCY_CONTACTS_COMPLETE = "emergency_contacts_complete"
    MEDICAL_HISTORY_COMPLETE = "medical_history_complete"
    ONBOARDING_COMPLETE = "onboarding_complete"                  # Terminal


class IntakeStage(Enum):
    """Data-collection forms a member submits during onboarding. Values are the URL segments."""
    BASELINE = "baseline"
    EMERGENCY_CONTACTS = "emergency-contacts"
    MEDICAL_HISTORY = "medical-history"
    VITALS_KIT = "vitals-kit"


class Route(str, Enum):
    """Pages the progression engine can send a member to."""
    REQUEST_REVIEW = "/request"
    DASHBOARD = "/dashboard"
    BASELINE_FORM = "/membership/intake/form"
    EMERGENCY_CONTACT_FORM = "/membership/intake/emergency-contact"
    MEDICAL_HISTORY_FORM = "/membership/intake/medical-history"
    VITALS_KIT_FORM = "/membership/intake/vitals-kit"


# =============================================================================
# Transition Table
# =============================================================================

STEP_ORDER = list(OnboardingStep)

# Steps with no intake data yet. A membership row with a NULL step counts too.
PRE_BASELINE_STEPS = {OnboardingStep.STARTED, OnboardingStep.PENDING_BASELINE}

DESTINATIONS: dict[OnboardingStep, Route] = {
    OnboardingStep.STARTED: Route.BASELINE_FORM,
    OnboardingStep.PENDING_BASELINE: Route.BASELINE_FORM,
    OnboardingStep.BASELINE_COMPLETE: Route.EMERGENCY_CONTACT_FORM,
    OnboardingStep.EMERGENCY_CONTACTS_COMPLETE: Route.MEDICAL_HISTORY_FORM,
    OnboardingStep.MEDICAL_HISTORY_COMPLETE: Route.VITALS_KIT_FORM,
    OnboardingStep.ONBOARDING_COMPLETE: Route.DASHBOARD,
}

# stage -> (steps it may be submitted from, step it writes)
TRANSITIONS: dict[IntakeStage, tuple[frozenset, OnboardingStep]] = {
    IntakeStage.BASELINE: (
        frozenset(PRE_BASELINE_STEPS | {None}),
        OnboardingStep.BASELINE_COMPLETE,
    ),
    IntakeStage.EMERGENCY_CONTACTS: (
        frozenset({OnboardingStep.BASELINE_COMPLETE}),
        OnboardingStep.EMERGENCY_CONTACTS_COMPLETE,
    ),
    IntakeStage.MEDICAL_HISTORY: (
        frozenset({OnboardingStep.EMERGENCY_CONTACTS_COMPLETE}),
        OnboardingStep.MEDICAL_HISTORY_COMPLETE,
    ),
    IntakeStage.VITALS_KIT: (
        frozenset({OnboardingStep.MEDICAL_HISTORY_COMPLETE}),
        OnboardingStep.ONBOARDING_COMPLETE,
    ),
}

STAGE_ROUTES: dict[IntakeStage, Route] = {
    IntakeStage.BASELINE: Route.BASELINE_FORM,
    IntakeStage.EMERGENCY_CONTACTS: Route.EMERGENCY_CONTACT_FORM,
    IntakeStage.MEDICAL_HISTORY: Route.MEDICAL_HISTORY_FORM,
    IntakeStage.VITALS_KIT: Route.VITALS_KIT_FORM,
}


# =============================================================================
# Engine
# =============================================================================


def parse_step(value: str | OnboardingStep | None) -> OnboardingStep | None:
    """
    Coerce a stored onboarding_step to the enum.

    Unknown strings degrade to STARTED so a bad row sends the member back to
    the first stage instead of failing the request.
    """
    if value is None or isinstance(value, OnboardingStep):
        return value
    try:
        return OnboardingStep(value)
    except ValueError:
        return OnboardingStep.STARTED


def next_destination(step: str | OnboardingStep | None, has_membership: bool = True) -> Route:
    """
    Route a member to the page matching their onboarding progress.

    Args:
        step: Persisted onboarding_step (None when the column is empty)
        has_membership: False when no membership row exists for the user

    Returns:
        One of the six Route values. Never raises.
    """
    if not has_membership:
        return Route.REQUEST_REVIEW

    parsed = parse_step(step)
    if parsed is None:
        return Route.BASELINE_FORM
    return DESTINATIONS[parsed]


def is_allowed(step: str | OnboardingStep | None, stage: IntakeStage) -> bool:
    """Check whether a stage may be opened or submitted from this step."""
    predecessors, _ = TRANSITIONS[stage]
    return parse_step(step) in predecessors


def advance(step: str | OnboardingStep | None, stage: IntakeStage) -> OnboardingStep:
    """
    Compute the step written after a stage is submitted.

    Raises:
        OutOfSequence: step is not a predecessor of the stage. redirect_to
            carries the page the member should be on instead.
    """
    predecessors, target = TRANSITIONS[stage]
    current = parse_step(step)
    if current not in predecessors:
        raise OutOfSequence(
            f"Cannot submit {stage.value} while onboarding step is "
            f"{current.value if current else 'unset'}",
            redirect_to=next_destination(current).value,
        )
    return target


def require_stage(step: str | OnboardingStep | None, stage: IntakeStage) -> None:
    """Page-load guard: raise OutOfSequence unless the stage is open for this step."""
    advance(step, stage)


def begin_intake(step: str | OnboardingStep | None) -> OnboardingStep | None:
    """
    Step to write when the baseline form is first opened.

    Returns PENDING_BASELINE from STARTED (or unset), otherwise None
    meaning no write is needed.
    """
    current = parse_step(step)
    if current is None or current == OnboardingStep.STARTED:
        return OnboardingStep.PENDING_BASELINE
    return None


def completed_steps(step: str | OnboardingStep | None) -> list[str]:
    """Steps strictly before the current one, for progress display."""
    current = parse_step(step)
    if current is None:
        return []
    return [s.value for s in STEP_ORDER[:STEP_ORDER.index(current)]]
