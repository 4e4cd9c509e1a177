"""
ERDoc Web API - FastAPI application.

Uses Supabase Auth for authentication. Every route builds its own Supabase
client for the request through erdoc.web.auth.get_db.
"""

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from supabase import Client

from erdoc import __version__
from erdoc.config import settings
from erdoc.db import client as db_ops
from erdoc.db.request_context import clear_request_context
from erdoc.errors import ERDocError, ValidationFailure
from erdoc.logging_config import setup_logging
from erdoc.web.account_routes import router as account_router
from erdoc.web.auth import (
    STAFF_HOME,
    AuthenticatedUser,
    Role,
    get_current_user,
    get_db,
    get_role,
)
from erdoc.web.clinician_routes import router as clinician_router
from erdoc.web.consultation_routes import router as consultation_router
from erdoc.web.family_routes import router as family_router
from onboarding.api import router as onboarding_router
from onboarding.state import next_destination

logger = logging.getLogger(__name__)

app = FastAPI(title="ERDoc", version=__version__)


@app.on_event("startup")
async def startup_event():
    """Configure logging and report the environment."""
    setup_logging(settings.log_level)
    logger.info(f"ERDoc {__version__} starting up ({settings.erdoc_env})")
    logger.info(f"  Consultation notifications: {'on' if settings.slack_webhook_url else 'off'}")


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Make sure no identity outlives its request."""
    clear_request_context()
    try:
        return await call_next(request)
    finally:
        clear_request_context()


# =============================================================================
# Error Handlers
# =============================================================================


@app.exception_handler(ERDocError)
async def erdoc_error_handler(request: Request, exc: ERDocError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body validation errors as one readable ValidationFailure."""
    messages = []
    for error in exc.errors():
        msg = error.get("msg", "Invalid value").removeprefix("Value error, ")
        field = ".".join(str(p) for p in error.get("loc", ())[1:])
        messages.append(f"{field}: {msg}" if field else msg)

    failure = ValidationFailure("; ".join(messages) or "Invalid request")
    return JSONResponse(status_code=failure.status_code, content=failure.to_dict())


# =============================================================================
# Routers
# =============================================================================

app.include_router(onboarding_router, prefix="/api")
app.include_router(family_router, prefix="/api")
app.include_router(consultation_router, prefix="/api")
app.include_router(account_router, prefix="/api")
app.include_router(clinician_router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


# =============================================================================
# Identity Endpoints
# =============================================================================


@app.get("/api/me")
async def get_me(
    user: AuthenticatedUser = Depends(get_current_user),
    role: Role = Depends(get_role),
    db: Client = Depends(get_db),
):
    """Get current user info."""
    display_name = None
    if role == Role.PATIENT:
        membership = db_ops.get_membership_for_user(db, user.id)
        person = db_ops.get_self_person(db, membership["id"]) if membership else None
        if person:
            display_name = person.get("preferred_name") or person.get("first_name")

    # Fallback to email prefix if no name on file
    if not display_name and user.email:
        display_name = user.email.split("@")[0]

    return {
        "user_id": user.id,
        "email": user.email,
        "role": role.value,
        "display_name": display_name or "Member",
    }


@app.get("/api/home")
async def get_home(
    user: AuthenticatedUser = Depends(get_current_user),
    role: Role = Depends(get_role),
    db: Client = Depends(get_db),
):
    """
    Landing page after login.

    Staff go to the clinician dashboard; members go wherever their
    onboarding progress puts them.
    """
    if role != Role.PATIENT:
        return {"role": role.value, "redirect_to": STAFF_HOME}

    membership = db_ops.get_membership_for_user(db, user.id)
    if not membership:
        destination = next_destination(None, has_membership=False)
    else:
        destination = next_destination(membership.get("onboarding_step"))
    return {"role": role.value, "redirect_to": destination.value}
