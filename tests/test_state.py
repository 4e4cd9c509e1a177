"""
Tests for the onboarding progression engine.

Pure functions only; no database or app needed.
"""

import pytest

from erdoc.errors import OutOfSequence
from onboarding.state import (
    DESTINATIONS,
    IntakeStage,
    OnboardingStep,
    Route,
    TRANSITIONS,
    advance,
    begin_intake,
    completed_steps,
    is_allowed,
    next_destination,
    parse_step,
    require_stage,
)

ALL_INPUTS = [None, "garbage", ""] + [s.value for s in OnboardingStep] + list(OnboardingStep)


class TestNextDestination:
    """Routing table for every step value."""

    @pytest.mark.parametrize("step, expected", [
        (None, Route.BASELINE_FORM),
        ("started", Route.BASELINE_FORM),
        ("pending_baseline", Route.BASELINE_FORM),
        ("baseline_complete", Route.EMERGENCY_CONTACT_FORM),
        ("emergency_contacts_complete", Route.MEDICAL_HISTORY_FORM),
        ("medical_history_complete", Route.VITALS_KIT_FORM),
        ("onboarding_complete", Route.DASHBOARD),
    ])
    def test_table(self, step, expected):
        assert next_destination(step) == expected

    def test_no_membership_goes_to_request_review(self):
        assert next_destination(None, has_membership=False) == Route.REQUEST_REVIEW
        # Even a stale step value is ignored without a membership row
        assert next_destination("onboarding_complete", has_membership=False) == Route.REQUEST_REVIEW

    def test_unknown_step_falls_back_to_baseline(self):
        assert next_destination("paused_by_admin") == Route.BASELINE_FORM
        assert next_destination("") == Route.BASELINE_FORM

    @pytest.mark.parametrize("step", ALL_INPUTS)
    def test_total_over_six_routes(self, step):
        assert next_destination(step) in set(Route)
        assert len(set(Route)) == 6

    @pytest.mark.parametrize("step", ALL_INPUTS)
    def test_idempotent(self, step):
        assert next_destination(step) == next_destination(step)

    def test_accepts_enum_values(self):
        assert next_destination(OnboardingStep.BASELINE_COMPLETE) == Route.EMERGENCY_CONTACT_FORM

    def test_every_step_has_a_destination(self):
        assert set(DESTINATIONS) == set(OnboardingStep)


class TestAdvance:
    """Stage completion transitions."""

    @pytest.mark.parametrize("step, stage, expected", [
        ("started", IntakeStage.BASELINE, OnboardingStep.BASELINE_COMPLETE),
        ("pending_baseline", IntakeStage.BASELINE, OnboardingStep.BASELINE_COMPLETE),
        (None, IntakeStage.BASELINE, OnboardingStep.BASELINE_COMPLETE),
        ("baseline_complete", IntakeStage.EMERGENCY_CONTACTS, OnboardingStep.EMERGENCY_CONTACTS_COMPLETE),
        ("emergency_contacts_complete", IntakeStage.MEDICAL_HISTORY, OnboardingStep.MEDICAL_HISTORY_COMPLETE),
        ("medical_history_complete", IntakeStage.VITALS_KIT, OnboardingStep.ONBOARDING_COMPLETE),
    ])
    def test_from_predecessor(self, step, stage, expected):
        assert advance(step, stage) == expected

    def test_only_predecessor_succeeds(self):
        for stage, (predecessors, _) in TRANSITIONS.items():
            for step in [None] + list(OnboardingStep):
                if step in predecessors:
                    advance(step, stage)
                else:
                    with pytest.raises(OutOfSequence):
                        advance(step, stage)

    def test_cannot_skip_ahead(self):
        with pytest.raises(OutOfSequence) as exc_info:
            advance("baseline_complete", IntakeStage.MEDICAL_HISTORY)
        assert exc_info.value.redirect_to == Route.EMERGENCY_CONTACT_FORM.value

    def test_cannot_repeat_completed_stage(self):
        with pytest.raises(OutOfSequence) as exc_info:
            advance("onboarding_complete", IntakeStage.VITALS_KIT)
        assert exc_info.value.redirect_to == Route.DASHBOARD.value

    def test_steps_only_move_forward(self):
        order = list(OnboardingStep)
        for stage, (predecessors, target) in TRANSITIONS.items():
            for step in predecessors:
                if step is not None:
                    assert order.index(target) > order.index(step)

    def test_unknown_step_can_submit_baseline(self):
        assert advance("mystery", IntakeStage.BASELINE) == OnboardingStep.BASELINE_COMPLETE


class TestGuards:
    """Page-load guard and helpers."""

    def test_medical_history_while_started_is_out_of_sequence(self):
        with pytest.raises(OutOfSequence) as exc_info:
            require_stage("started", IntakeStage.MEDICAL_HISTORY)
        assert exc_info.value.redirect_to == Route.BASELINE_FORM.value
        assert exc_info.value.status_code == 409

    def test_require_stage_allows_current_stage(self):
        require_stage("emergency_contacts_complete", IntakeStage.MEDICAL_HISTORY)

    def test_is_allowed(self):
        assert is_allowed(None, IntakeStage.BASELINE)
        assert not is_allowed(None, IntakeStage.VITALS_KIT)

    def test_begin_intake(self):
        assert begin_intake("started") == OnboardingStep.PENDING_BASELINE
        assert begin_intake(None) == OnboardingStep.PENDING_BASELINE
        assert begin_intake("pending_baseline") is None
        assert begin_intake("baseline_complete") is None

    def test_parse_step(self):
        assert parse_step(None) is None
        assert parse_step("baseline_complete") == OnboardingStep.BASELINE_COMPLETE
        assert parse_step("nope") == OnboardingStep.STARTED

    def test_completed_steps(self):
        assert completed_steps(None) == []
        assert completed_steps("baseline_complete") == ["started", "pending_baseline"]


class TestScenarios:
    def test_vitals_kit_completes_onboarding(self):
        step = "medical_history_complete"
        assert next_destination(step) == Route.VITALS_KIT_FORM

        step = advance(step, IntakeStage.VITALS_KIT)
        assert step == OnboardingStep.ONBOARDING_COMPLETE
        assert next_destination(step) == Route.DASHBOARD

    def test_full_walk(self):
        step = None
        for stage in IntakeStage:
            step = advance(step, stage)
        assert step == OnboardingStep.ONBOARDING_COMPLETE
