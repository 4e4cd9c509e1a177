"""
ERDoc - Database access.

Supabase clients are built per request; nothing here holds a module-level
client.
"""

from erdoc.db.client import get_authenticated_client, get_service_client

__all__ = [
    "get_authenticated_client",
    "get_service_client",
]
