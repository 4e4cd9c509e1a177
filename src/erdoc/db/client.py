"""
ERDoc - Supabase Client.

Low-level database access. All queries go through here.

Clients are constructed per request: get_authenticated_client() carries the
member's JWT so row-level security applies, get_service_client() is used only
to validate tokens. Table operations take the client as their first argument.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from supabase import Client, PostgrestAPIError, create_client

from erdoc.config import settings
from erdoc.db.adapter import DatabaseAdapter
from erdoc.errors import PersistenceFailure

logger = logging.getLogger(__name__)

ACTIVE_CONSULTATION_STATUSES = ["pending", "in_progress"]
EMERGENCY_CONTACT_CONFLICT = "membership_id,name,relationship,phone"
INTAKE_RESPONSE_CONFLICT = "person_id,question_key"
MEDICAL_HISTORY_CONFLICT = "membership_id"


def get_service_client() -> Client:
    """Build a service-role client (bypasses RLS; token validation only)."""
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
    )


def get_authenticated_client(access_token: str) -> Client:
    """Build a client that acts as the member holding access_token."""
    client = create_client(
        settings.supabase_url,
        settings.supabase_anon_key,
    )
    client.postgrest.auth(access_token)
    return client


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _execute(query: Any, action: str) -> Any:
    """Run a built query, turning PostgREST errors into PersistenceFailure."""
    try:
        return query.execute()
    except PostgrestAPIError as e:
        logger.error(f"Database error while trying to {action}: {e}")
        raise PersistenceFailure(f"Failed to {action}. Please try again.") from e


def _single(response: Any) -> dict | None:
    """Unwrap a maybe_single() response, which may itself be None."""
    if response is None:
        return None
    return response.data or None


# =============================================================================
# Membership Operations
# =============================================================================


def get_membership_for_user(client: DatabaseAdapter, user_id: str) -> dict | None:
    """Get the membership owned by a user."""
    response = _execute(
        client.table("memberships")
        .select("id, user_id, plan_type, status, onboarding_step, vitals_kit_status")
        .eq("user_id", user_id)
        .maybe_single(),
        "load membership",
    )
    return _single(response)


def update_onboarding_step(
    client: DatabaseAdapter,
    membership_id: str,
    expected_step: str | None,
    new_step: str,
    extra: dict | None = None,
) -> bool:
    """
    Conditionally write onboarding_step.

    Only updates the row while it still holds expected_step, so a stale
    request cannot move a membership backwards. Returns False when no row
    matched.
    """
    updates = {"onboarding_step": new_step, **(extra or {})}
    query = client.table("memberships").update(updates).eq("id", membership_id)
    if expected_step is None:
        query = query.is_("onboarding_step", "null")
    else:
        query = query.eq("onboarding_step", expected_step)

    response = _execute(query, "update onboarding progress")
    return bool(response.data)


# =============================================================================
# People Operations
# =============================================================================


PERSON_COLUMNS = (
    "id, membership_id, first_name, last_name, middle_name, preferred_name, "
    "date_of_birth, relationship, phone, sex_at_birth, address_line1, "
    "address_line2, city, state, postal_code, intake_complete"
)


def get_self_person(client: DatabaseAdapter, membership_id: str) -> dict | None:
    """Get the primary member (relationship = self) of a membership."""
    response = _execute(
        client.table("people")
        .select(PERSON_COLUMNS)
        .eq("membership_id", membership_id)
        .eq("relationship", "self")
        .maybe_single(),
        "load your profile",
    )
    return _single(response)


def get_person(client: DatabaseAdapter, person_id: str) -> dict | None:
    """Get a single person by ID."""
    response = _execute(
        client.table("people").select(PERSON_COLUMNS).eq("id", person_id).maybe_single(),
        "load family member",
    )
    return _single(response)


def list_people(client: DatabaseAdapter, membership_id: str) -> list[dict]:
    """Get everyone covered by a membership."""
    response = _execute(
        client.table("people")
        .select(PERSON_COLUMNS)
        .eq("membership_id", membership_id)
        .order("relationship"),
        "load family members",
    )
    people = response.data or []
    for person in people:
        person["intake_complete"] = bool(person.get("intake_complete"))
    return people


def insert_person(client: DatabaseAdapter, person: dict) -> dict:
    """Add a person to a membership."""
    response = _execute(client.table("people").insert(person), "add family member")
    return response.data[0]


def update_person(client: DatabaseAdapter, person_id: str, updates: dict) -> dict | None:
    """Update a person. Returns the updated row, or None if nothing matched."""
    response = _execute(
        client.table("people").update(updates).eq("id", person_id),
        "update profile",
    )
    return response.data[0] if response.data else None


def delete_person(client: DatabaseAdapter, person_id: str, membership_id: str) -> bool:
    """Remove a dependent. The self row is excluded by the filter as well."""
    response = _execute(
        client.table("people")
        .delete()
        .eq("id", person_id)
        .eq("membership_id", membership_id)
        .neq("relationship", "self"),
        "remove family member",
    )
    return bool(response.data)


# =============================================================================
# Intake Operations
# =============================================================================


def upsert_intake_responses(client: DatabaseAdapter, rows: list[dict]) -> None:
    """Store baseline answers keyed by (person, question key)."""
    if not rows:
        return
    _execute(
        client.table("intake_responses").upsert(rows, on_conflict=INTAKE_RESPONSE_CONFLICT),
        "save intake answers",
    )


def upsert_emergency_contacts(client: DatabaseAdapter, contacts: list[dict]) -> list[dict]:
    """
    Save emergency contacts.

    Upserts on the natural key so an identical resubmission (double click,
    second tab) leaves exactly one row per contact.
    """
    response = _execute(
        client.table("emergency_contacts").upsert(
            contacts,
            on_conflict=EMERGENCY_CONTACT_CONFLICT,
        ),
        "save emergency contacts",
    )
    return response.data or []


def list_emergency_contacts(client: DatabaseAdapter, membership_id: str) -> list[dict]:
    """Get the emergency contacts on file for a membership."""
    response = _execute(
        client.table("emergency_contacts")
        .select("id, person_id, name, relationship, phone")
        .eq("membership_id", membership_id)
        .order("created_at", desc=True),
        "load emergency contacts",
    )
    return response.data or []


def upsert_medical_history(client: DatabaseAdapter, history: dict) -> dict:
    """Store the membership's medical history. One row per membership; a retry overwrites it."""
    response = _execute(
        client.table("medical_histories").upsert(history, on_conflict=MEDICAL_HISTORY_CONFLICT),
        "save medical history",
    )
    return response.data[0]


# =============================================================================
# Consultation Operations
# =============================================================================


CONSULTATION_COLUMNS = (
    "id, membership_id, person_id, chief_complaint, status, "
    "created_at, cancelled_at, completed_at"
)


def get_consultation(client: DatabaseAdapter, consultation_id: str) -> dict | None:
    """Get a single consultation request."""
    response = _execute(
        client.table("consultation_requests")
        .select(CONSULTATION_COLUMNS)
        .eq("id", consultation_id)
        .maybe_single(),
        "load consultation request",
    )
    return _single(response)


def list_consultations(
    client: DatabaseAdapter,
    membership_id: str | None = None,
    statuses: list[str] | None = None,
    limit: int = 20,
) -> list[dict]:
    """Get consultation requests, newest first."""
    query = client.table("consultation_requests").select(CONSULTATION_COLUMNS)
    if membership_id:
        query = query.eq("membership_id", membership_id)
    if statuses:
        query = query.in_("status", statuses)

    response = _execute(
        query.order("created_at", desc=True).limit(limit),
        "load consultation requests",
    )
    return response.data or []


def insert_consultation(client: DatabaseAdapter, consultation: dict) -> dict:
    """Create a consultation request in pending status."""
    data = {"status": "pending", **consultation}
    response = _execute(
        client.table("consultation_requests").insert(data),
        "submit consultation request",
    )
    return response.data[0]


def cancel_consultation(client: DatabaseAdapter, consultation_id: str) -> dict | None:
    """
    Mark a consultation cancelled if it is still pending or in progress.

    Returns the updated row, or None when the status had already moved on.
    """
    response = _execute(
        client.table("consultation_requests")
        .update({"status": "cancelled", "cancelled_at": _utc_now()})
        .eq("id", consultation_id)
        .in_("status", ACTIVE_CONSULTATION_STATUSES),
        "cancel consultation request",
    )
    return response.data[0] if response.data else None


# =============================================================================
# Role & Audit Operations
# =============================================================================


def get_user_role(client: DatabaseAdapter, user_id: str) -> str | None:
    """Get the role row for a user, if any."""
    response = _execute(
        client.table("user_roles").select("role").eq("user_id", user_id).maybe_single(),
        "load user role",
    )
    row = _single(response)
    return row.get("role") if row else None


def create_audit_log(client: DatabaseAdapter, params: dict) -> str | None:
    """Call the create_audit_log database function. Returns the log ID."""
    response = _execute(client.rpc("create_audit_log", params), "write audit log")
    return response.data
