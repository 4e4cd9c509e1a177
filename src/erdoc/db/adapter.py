"""
Database Adapter Protocol.

The table operations in erdoc.db.client only need the PostgREST query
builder surface of a Supabase client: table() returns a fluent builder and
rpc() calls a database function. Anything with that shape can be passed in,
which is how the tests run against an in-memory store.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DatabaseAdapter(Protocol):
    """Query-builder view of a Supabase client."""

    def table(self, name: str) -> Any:
        """
        Return a query builder for the given table.

        The builder must support .select(), .insert(), .update(), .upsert(),
        .delete(), the .eq()/.in_()/.is_() filters and .execute().
        """
        ...

    def rpc(self, function_name: str, params: dict) -> Any:
        """Call a database function. Returns an object with .execute()."""
        ...
