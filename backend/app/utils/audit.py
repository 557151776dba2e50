"""Best-effort audit trail."""

import logging
from typing import Any
from uuid import UUID

from backend.app.db.repositories import AuditLogRepository
from backend.app.errors import PersistenceError

logger = logging.getLogger(__name__)


async def record_audit_event(
    repo: AuditLogRepository, user_id: UUID, action: str, details: dict[str, Any]
) -> None:
    """Write an audit event; a failed write is logged and never raised."""
    try:
        await repo.record(user_id, action, details)
    except PersistenceError as e:
        logger.warning(
            f"Audit write failed for {action}: {e.message}",
            extra={"structured": {"user_id": str(user_id), "action": action}},
        )
