"""
Observability & Audit Layer

RESPONSIBILITY: Record session and verification transitions
OUTPUTS: AuditTrail entries (queryable), standard logging records

WHAT THIS LAYER MUST NOT DO:
============================
- Modify client behavior
- Make decisions based on recorded data
- Block or delay the operations it records
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple
import logging


logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """Explicit audit event types."""
    SESSION_ESTABLISHED = "session_established"
    SESSION_RESTORED = "session_restored"
    REFRESH_STARTED = "refresh_started"
    REFRESH_SUCCEEDED = "refresh_succeeded"
    REFRESH_FAILED = "refresh_failed"
    LOGGED_OUT = "logged_out"
    VERIFICATION_STARTED = "verification_started"
    VERIFICATION_COMPLETED = "verification_completed"
    VERIFICATION_FAILED = "verification_failed"
    VERIFICATION_REJECTED = "verification_rejected"


@dataclass(frozen=True)
class AuditEntry:
    """Immutable audit entry."""
    sequence: int
    event_type: AuditEventType
    at_ms: int
    layer: str
    detail: str = ""
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


class AuditTrail:
    """
    Append-only collector of audit entries.

    Each layer records into its own trail, or several layers share one.
    Entries are never modified once collected.
    """

    def __init__(self, layer_name: str):
        self._layer_name = layer_name
        self._entries: List[AuditEntry] = []

    def record(
        self,
        event_type: AuditEventType,
        at_ms: int,
        detail: str = "",
        **metadata: str
    ) -> AuditEntry:
        entry = AuditEntry(
            sequence=len(self._entries),
            event_type=event_type,
            at_ms=at_ms,
            layer=self._layer_name,
            detail=detail,
            metadata=tuple(sorted((k, str(v)) for k, v in metadata.items()))
        )
        self._entries.append(entry)
        logger.debug("[%s] %s %s", self._layer_name, event_type.value, detail)
        return entry

    def get_entries(
        self,
        event_type: Optional[AuditEventType] = None
    ) -> List[AuditEntry]:
        """Get entries, optionally filtered by type."""
        if event_type is None:
            return list(self._entries)
        return [e for e in self._entries if e.event_type == event_type]

    def count(self, event_type: AuditEventType) -> int:
        return len(self.get_entries(event_type))

    @property
    def layer_name(self) -> str:
        return self._layer_name

    @property
    def entry_count(self) -> int:
        return len(self._entries)
