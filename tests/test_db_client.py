"""Tests for the Supabase table operations and audit helper."""

import pytest

from conftest import seed_member
from erdoc.audit import AuditAction, log_audit
from erdoc.db import client as db_ops
from erdoc.db.adapter import DatabaseAdapter
from erdoc.errors import PersistenceFailure


class TestConditionalStepWrite:
    def test_matches_expected_step(self, fake_db):
        m = seed_member(fake_db, step="baseline_complete")["membership"]
        assert db_ops.update_onboarding_step(fake_db, m["id"], "baseline_complete", "emergency_contacts_complete")
        assert fake_db.rows("memberships")[0]["onboarding_step"] == "emergency_contacts_complete"

    def test_stale_expected_step_writes_nothing(self, fake_db):
        m = seed_member(fake_db, step="medical_history_complete")["membership"]
        assert not db_ops.update_onboarding_step(fake_db, m["id"], "baseline_complete", "emergency_contacts_complete")
        assert fake_db.rows("memberships")[0]["onboarding_step"] == "medical_history_complete"

    def test_null_step(self, fake_db):
        m = seed_member(fake_db, step=None)["membership"]
        assert db_ops.update_onboarding_step(fake_db, m["id"], None, "pending_baseline")
        assert fake_db.rows("memberships")[0]["onboarding_step"] == "pending_baseline"

    def test_extra_columns(self, fake_db):
        m = seed_member(fake_db, step="medical_history_complete")["membership"]
        db_ops.update_onboarding_step(
            fake_db, m["id"], "medical_history_complete", "onboarding_complete",
            extra={"vitals_kit_status": "has_kit"},
        )
        assert fake_db.rows("memberships")[0]["vitals_kit_status"] == "has_kit"


class TestOperations:
    def test_fake_satisfies_adapter(self, fake_db):
        assert isinstance(fake_db, DatabaseAdapter)

    def test_missing_membership(self, fake_db):
        assert db_ops.get_membership_for_user(fake_db, "nobody") is None

    def test_emergency_contact_upsert(self, fake_db):
        m = seed_member(fake_db)
        row = {
            "membership_id": m["membership"]["id"],
            "person_id": m["person"]["id"],
            "name": "Sam",
            "relationship": "spouse",
            "phone": "(801) 555-0199",
        }
        db_ops.upsert_emergency_contacts(fake_db, [row])
        db_ops.upsert_emergency_contacts(fake_db, [dict(row)])
        assert len(db_ops.list_emergency_contacts(fake_db, m["membership"]["id"])) == 1

        db_ops.upsert_emergency_contacts(fake_db, [{**row, "phone": "(801) 555-0111"}])
        assert len(fake_db.rows("emergency_contacts")) == 2

    def test_delete_never_removes_self(self, fake_db):
        m = seed_member(fake_db)
        assert not db_ops.delete_person(fake_db, m["person"]["id"], m["membership"]["id"])
        assert len(fake_db.rows("people")) == 1

    def test_cancel_only_active(self, fake_db):
        c = fake_db.add_row("consultation_requests", {"status": "completed"})
        assert db_ops.cancel_consultation(fake_db, c["id"]) is None
        assert fake_db.rows("consultation_requests")[0]["status"] == "completed"

    def test_api_error_becomes_persistence_failure(self, fake_db):
        fake_db.fail_on.add(("people", "insert"))
        with pytest.raises(PersistenceFailure, match="add family member"):
            db_ops.insert_person(fake_db, {"first_name": "X"})

    def test_list_people_coerces_intake_flag(self, fake_db):
        m = seed_member(fake_db)
        fake_db.rows("people")[0]["intake_complete"] = None
        assert db_ops.list_people(fake_db, m["membership"]["id"])[0]["intake_complete"] is False


class TestAudit:
    def test_writes_rpc(self, fake_db):
        audit_id = log_audit(fake_db, AuditAction.CANCEL_CONSULTATION, "consultation", "c-1", "p-1")
        assert audit_id == "audit-1"
        name, params = fake_db.rpc_calls[0]
        assert name == "create_audit_log"
        assert params["p_action"] == "CANCEL_CONSULTATION"

    def test_failure_returns_none(self, fake_db):
        fake_db.fail_on.add(("rpc", "create_audit_log"))
        assert log_audit(fake_db, AuditAction.UPDATE_CONTACT_INFO, "person") is None
