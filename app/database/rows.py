"""Helpers shared by the table gateways."""

from typing import Any, Dict, List

from supabase import AsyncClient

from app.core.exceptions import AccessDeniedError, NotFoundError


async def ensure_rows_written(
    supabase: AsyncClient,
    table: str,
    entity: str,
    row_id: str,
    data: List[Dict[str, Any]],
) -> Dict[str, Any]:
    """Return the first written row, or explain why nothing was written.

    PostgREST reports an update/delete filtered out by a row-level policy as
    an empty result, not an error. Every gateway table is publicly readable,
    so a follow-up read tells "missing" apart from "not allowed".
    """
    if data:
        return data[0]
    existing = await supabase.table(table).select("id").eq("id", row_id).limit(1).execute()
    if existing.data:
        raise AccessDeniedError(f"Not allowed to modify {entity} {row_id}")
    raise NotFoundError(entity, row_id)
