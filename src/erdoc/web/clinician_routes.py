"""
Clinician endpoints.

Only the consultation queue lives here; everything else clinicians do is
outside this service.
"""

from fastapi import APIRouter, Depends
from supabase import Client

from erdoc.db import client as db_ops
from erdoc.db.client import ACTIVE_CONSULTATION_STATUSES
from erdoc.web.auth import Capability, get_db, require_capability

router = APIRouter(
    prefix="/clinician",
    tags=["clinician"],
    dependencies=[Depends(require_capability(Capability.VIEW_CONSULTATION_QUEUE))],
)


@router.get("/queue")
async def get_consultation_queue(db: Client = Depends(get_db), limit: int = 50) -> dict:
    """Pending and in-progress consultation requests, newest first."""
    queue = db_ops.list_consultations(db, statuses=ACTIVE_CONSULTATION_STATUSES, limit=limit)
    return {"data": queue, "count": len(queue)}
