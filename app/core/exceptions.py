"""
Application error taxonomy.

Each error carries the HTTP status it maps to; app.main registers a single
handler that turns any AppError into a JSON response. Pydantic validation
errors are left to FastAPI (422) and never reach the backing store.
"""

import logging
from typing import Optional

from fastapi import status

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class AuthError(AppError):
    """Bad credentials or an invalid/expired token. Never retried."""
    status_code = status.HTTP_401_UNAUTHORIZED


class AccessDeniedError(AppError):
    """Insufficient role, or the row-level policy rejected the operation."""
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        if entity_id is not None:
            detail = f"{entity} {entity_id} not found"
        else:
            detail = f"{entity} not found"
        super().__init__(detail)


class TransientFetchError(AppError):
    """Backing store unreachable or failing; the caller may retry later."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ConfigurationError(AppError):
    """Missing environment variable or external resource. Fatal."""

    def __init__(self, detail: str, resource: Optional[str] = None):
        super().__init__(detail)
        self.resource = resource


# PostgREST / Postgres codes that mean "the policy said no"
_PERMISSION_CODES = {"42501", "PGRST301", "PGRST302"}
_NO_ROWS_CODE = "PGRST116"


def translate_backing_store_error(exc: Exception, entity: str, entity_id: Optional[str] = None) -> AppError:
    """Map a supabase/postgrest exception to the application taxonomy."""
    if isinstance(exc, AppError):
        return exc
    code = str(getattr(exc, "code", "") or "")
    message = str(getattr(exc, "message", "") or exc)
    if code in _PERMISSION_CODES or "row-level security" in message.lower() or "permission denied" in message.lower():
        logger.warning(f"Backing store rejected operation on {entity}: {message}")
        return AccessDeniedError(f"Not allowed to modify {entity}")
    if code == _NO_ROWS_CODE:
        return NotFoundError(entity, entity_id)
    logger.error(f"Backing store error on {entity}: {message}")
    return TransientFetchError(f"Failed to reach backing store for {entity}")
