"""
ERDoc - Audit log.

Records who touched member data through the create_audit_log database
function. A failed audit write is logged and never fails the action it
describes.
"""

import logging
from enum import Enum
from typing import Any

from erdoc.db.adapter import DatabaseAdapter
from erdoc.db.client import create_audit_log
from erdoc.db.request_context import get_current_user_id
from erdoc.errors import PersistenceFailure

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    """Audited actions."""
    UPDATE_CONTACT_INFO = "UPDATE_CONTACT_INFO"
    ADD_FAMILY_MEMBER = "ADD_FAMILY_MEMBER"
    UPDATE_FAMILY_MEMBER = "UPDATE_FAMILY_MEMBER"
    REMOVE_FAMILY_MEMBER = "REMOVE_FAMILY_MEMBER"
    REQUEST_CONSULTATION = "REQUEST_CONSULTATION"
    CANCEL_CONSULTATION = "CANCEL_CONSULTATION"


def log_audit(
    client: DatabaseAdapter,
    action: AuditAction,
    resource_type: str,
    resource_id: str | None = None,
    patient_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> str | None:
    """Write an audit entry. Returns its ID, or None if the write failed."""
    params = {
        "p_action": action.value,
        "p_resource_type": resource_type,
        "p_resource_id": resource_id,
        "p_patient_id": patient_id,
        "p_details": {"actor_id": get_current_user_id(), **(details or {})},
    }
    try:
        return create_audit_log(client, params)
    except PersistenceFailure as e:
        logger.warning(f"Audit log write failed for {action.value} on {resource_type}: {e}")
        return None
