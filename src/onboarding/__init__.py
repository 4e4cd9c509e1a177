"""
ERDoc Onboarding.

Membership intake progression. The engine in state.py maps a persisted
onboarding_step to the page a member belongs on and decides the step written
after each intake stage; api.py exposes it to the web app.

Stages:
1. Baseline - profile and medical summary
2. Emergency contacts
3. Medical history
4. Vitals kit
"""

from .state import (
    IntakeStage,
    OnboardingStep,
    Route,
    advance,
    next_destination,
    require_stage,
)

__all__ = [
    "IntakeStage",
    "OnboardingStep",
    "Route",
    "advance",
    "next_destination",
    "require_stage",
]
