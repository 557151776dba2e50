"""Models package - re-exports for convenience."""

from backend.app.models.common import DocumentStatus, SourceKind, Tier
from backend.app.models.documents import (
    AnalysisResult,
    ChatTurnOut,
    DocumentDetail,
    DocumentOut,
    DocumentVersionOut,
    EntitlementOut,
)

__all__ = [
    # Common
    "Tier",
    "DocumentStatus",
    "SourceKind",
    # Documents
    "AnalysisResult",
    "DocumentOut",
    "DocumentDetail",
    "DocumentVersionOut",
    "ChatTurnOut",
    "EntitlementOut",
]
