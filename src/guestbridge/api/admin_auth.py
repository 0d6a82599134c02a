"""Shared-secret authentication for the admin surface.

Two callers exist:
- operators, sending X-Admin-Token (ADMIN_API_TOKEN)
- the hourly scheduler, sending X-Cron-Secret (CRON_SECRET), accepted on
  the sync trigger only

Both fail closed: an unset secret never matches.
"""

from __future__ import annotations

import hmac

from fastapi import Depends, HTTPException, Request

from guestbridge.api.deps import get_settings
from guestbridge.config import Settings
from guestbridge.infra.repositories.sync_ledger_repository import TriggeredBy
from guestbridge.observability.logging import get_logger
from guestbridge.observability.redaction import safe_log_context

logger = get_logger(__name__)

ADMIN_TOKEN_HEADER = "X-Admin-Token"
CRON_SECRET_HEADER = "X-Cron-Secret"


def _matches(expected: str, received: str) -> bool:
    if not expected or not received:
        return False
    return hmac.compare_digest(expected.encode(), received.encode())


def _reject(request: Request, reason: str) -> HTTPException:
    logger.warning(
        "admin auth failed",
        extra={"extra_fields": safe_log_context(path=request.url.path, reason=reason)},
    )
    return HTTPException(status_code=401, detail="Unauthorized")


def require_admin(request: Request, settings: Settings = Depends(get_settings)) -> TriggeredBy:
    """FastAPI dependency: operator token required."""
    if _matches(settings.admin_api_token, request.headers.get(ADMIN_TOKEN_HEADER, "")):
        return "manual"
    raise _reject(request, "invalid_admin_token")


def require_admin_or_cron(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> TriggeredBy:
    """FastAPI dependency: operator token or scheduler secret.

    Returns:
        "cron" when the scheduler secret matched, "manual" otherwise.
    """
    if _matches(settings.cron_secret, request.headers.get(CRON_SECRET_HEADER, "")):
        return "cron"
    if _matches(settings.admin_api_token, request.headers.get(ADMIN_TOKEN_HEADER, "")):
        return "manual"
    raise _reject(request, "invalid_credentials")
