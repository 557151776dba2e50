"""Structured logging for chat and analysis state transitions."""

import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlowContext:
    """Identifies one chat or analysis request in the logs."""

    flow: str
    user_id: UUID
    document_id: UUID | None = None
    request_id: str = field(default_factory=lambda: uuid4().hex)


class StructuredFlowLogger:
    """Structured logger for request state machines."""

    def log_transition(
        self,
        ctx: FlowContext,
        state: str,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log a state transition with structured data."""
        log_data: dict[str, Any] = {
            "request_id": ctx.request_id,
            "flow": ctx.flow,
            "user_id": str(ctx.user_id),
            "document_id": str(ctx.document_id) if ctx.document_id else None,
            "state": state,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"{ctx.flow}: {state} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
