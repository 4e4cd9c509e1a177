"""
Authentication and role utilities for FastAPI routes.

Shared dependencies used by all route modules: token validation, the
per-request database client, and capability checks by role.
"""

import logging
from enum import Enum

from fastapi import Depends, Header
from pydantic import BaseModel
from supabase import Client

from erdoc.db.client import get_authenticated_client, get_service_client, get_user_role
from erdoc.db.request_context import set_request_context
from erdoc.errors import Unauthorized

logger = logging.getLogger(__name__)


class AuthenticatedUser(BaseModel):
    """Authenticated user info from Supabase JWT."""
    id: str
    email: str | None
    access_token: str


class Role(str, Enum):
    PATIENT = "patient"
    CLINICIAN = "clinician"
    ADMIN = "admin"


class Capability(str, Enum):
    MANAGE_MEMBERSHIP = "manage_membership"
    REQUEST_CONSULTATION = "request_consultation"
    VIEW_CONSULTATION_QUEUE = "view_consultation_queue"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.PATIENT: frozenset({
        Capability.MANAGE_MEMBERSHIP,
        Capability.REQUEST_CONSULTATION,
    }),
    Role.CLINICIAN: frozenset({
        Capability.VIEW_CONSULTATION_QUEUE,
    }),
    Role.ADMIN: frozenset({
        Capability.VIEW_CONSULTATION_QUEUE,
    }),
}

# Landing pages for staff roles; patients land wherever onboarding puts them
STAFF_HOME = "/clinician/dashboard"


def parse_role(value: str | None) -> Role:
    """Users without a user_roles row (or with an unknown role) are patients."""
    try:
        return Role(value) if value else Role.PATIENT
    except ValueError:
        logger.warning(f"Unknown role {value!r}; treating as patient")
        return Role.PATIENT


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES[role]


async def get_current_user(authorization: str = Header(None)) -> AuthenticatedUser:
    """
    Validate Supabase JWT and extract user info.

    Expects Authorization header: "Bearer <access_token>"
    """
    if not authorization:
        raise Unauthorized("Missing authorization header")

    if not authorization.startswith("Bearer "):
        raise Unauthorized("Invalid authorization format")

    access_token = authorization[7:]  # Remove "Bearer " prefix

    try:
        client = get_service_client()
        user_response = client.auth.get_user(access_token)
    except Exception as e:
        logger.warning(f"Auth validation failed: {e}")
        raise Unauthorized("Invalid or expired token") from e

    if not user_response or not user_response.user:
        raise Unauthorized("Invalid or expired token")

    user = user_response.user
    set_request_context(access_token=access_token, user_id=user.id)
    return AuthenticatedUser(
        id=user.id,
        email=user.email,
        access_token=access_token,
    )


def get_db(user: AuthenticatedUser = Depends(get_current_user)) -> Client:
    """Supabase client scoped to this request and acting as the caller."""
    return get_authenticated_client(user.access_token)


def get_role(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> Role:
    return parse_role(get_user_role(db, user.id))


def require_capability(capability: Capability):
    """
    Dependency factory guarding a route by capability.

    Usage:
        @router.get("/queue", dependencies=[Depends(require_capability(Capability.VIEW_CONSULTATION_QUEUE))])
    """

    def check(role: Role = Depends(get_role)) -> Role:
        if not has_capability(role, capability):
            # Clinicians hitting patient pages go to their dashboard and vice versa
            home = "/dashboard" if role == Role.PATIENT else STAFF_HOME
            raise Unauthorized(
                f"Role {role.value} lacks {capability.value}",
                redirect_to=home,
            )
        return role

    return check
