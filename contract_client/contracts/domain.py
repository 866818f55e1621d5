"""
Domain Contracts

Read-only snapshots of contracts, versions, participants and signatures.

OWNERSHIP:
==========
- Contracts are created and mutated by the server, never by the core
- The core only reads these snapshots
- All identity fields hold the canonical identity string produced by
  api.mapper.IdentityNormalizer; no other representation reaches here
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class ContractStatus(Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class VersionStatus(Enum):
    PENDING_SIGNATURE = "PENDING_SIGNATURE"
    SIGNED = "SIGNED"
    ARCHIVED = "ARCHIVED"


class ParticipantRole(Enum):
    INITIATOR = "INITIATOR"
    COUNTERPARTY = "COUNTERPARTY"


# =============================================================================
# SESSION
# =============================================================================

@dataclass(frozen=True)
class Session:
    """
    Current credentials held by SessionManager.

    expires_at_ms is always decoded from access_token by the session
    layer; it is never copied from a server response field.
    """
    access_token: str
    refresh_token: str
    expires_at_ms: int


@dataclass(frozen=True)
class RefreshedToken:
    """Response of the refresh endpoint."""
    access_token: str
    expires_at_ms: Optional[int] = None
    refresh_token: Optional[str] = None  # set when the server rotates it


# =============================================================================
# USERS
# =============================================================================

@dataclass(frozen=True)
class CurrentUser:
    """The logged-in user, already normalized to one canonical identity."""
    identity: str
    email: str
    username: str = ""
    user_id: Optional[str] = None


@dataclass(frozen=True)
class UserRef:
    """A user referenced from a contract (creator)."""
    identity: str
    email: str = ""
    username: str = ""


@dataclass(frozen=True)
class Participant:
    identity: str
    role: ParticipantRole
    email: str = ""
    username: str = ""


# =============================================================================
# CONTRACT SNAPSHOTS
# =============================================================================

@dataclass(frozen=True)
class Signature:
    """Immutable once created; a signer signs a given version at most once."""
    signer_identity: str
    signed_at: datetime
    signature_hash: str
    signer_username: str = ""


@dataclass(frozen=True)
class Version:
    id: int
    version_number: int
    status: VersionStatus
    file_hash: str
    signatures: Tuple[Signature, ...] = field(default_factory=tuple)

    def __post_init__(self):
        seen = set()
        for signature in self.signatures:
            if signature.signer_identity in seen:
                raise ValueError(
                    f"Duplicate signature for {signature.signer_identity} "
                    f"on version {self.version_number}"
                )
            seen.add(signature.signer_identity)


@dataclass(frozen=True)
class Contract:
    id: int
    title: str
    status: ContractStatus
    created_by: UserRef
    participants: Tuple[Participant, ...] = field(default_factory=tuple)
    current_version: Optional[Version] = None
    description: str = ""


@dataclass(frozen=True)
class ContractSummary:
    """Row of the "my contracts" listing."""
    id: int
    title: str
    status: str
    created_by_username: str
    created_at: Optional[datetime] = None
    current_version_number: Optional[int] = None
    current_version_id: Optional[int] = None


@dataclass(frozen=True)
class SignReceipt:
    success: bool
    message: Optional[str] = None
