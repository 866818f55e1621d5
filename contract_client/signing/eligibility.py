"""
Signature Eligibility
=====================

Pure decision: (contract, current user) -> signing outcome.

INVARIANT: evaluate(contract, user) is a PURE FUNCTION.
Same snapshot -> identical decision. No hidden state, no I/O.

PRIORITY ORDER (first match wins):
==================================
1. NOT_PARTICIPANT
2. ALREADY_SIGNED
3. CONTRACT_CLOSED
4. CONTRACT_CANCELLED
5. VERSION_SIGNED
6. VERSION_ARCHIVED
7. CAN_SIGN
8. NO_DECISION

Identity comparison uses only the canonical identity field, with email as
the participant fallback. Normalization happens at the API boundary.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..contracts.domain import (
    Contract, ContractStatus, CurrentUser, Signature, Version, VersionStatus
)


class SigningOutcome(Enum):
    """Closed set of outcomes; values double as display-neutral reason codes."""
    NOT_PARTICIPANT = "not_participant"
    ALREADY_SIGNED = "already_signed"
    CONTRACT_CLOSED = "contract_closed"
    CONTRACT_CANCELLED = "contract_cancelled"
    VERSION_SIGNED = "version_signed"
    VERSION_ARCHIVED = "version_archived"
    CAN_SIGN = "can_sign"
    NO_DECISION = "no_decision"


class SigningAction(Enum):
    SIGN = "sign"


@dataclass(frozen=True)
class SigningDecision:
    outcome: SigningOutcome
    signature: Optional[Signature] = None  # the user's own, for ALREADY_SIGNED

    @property
    def reason(self) -> str:
        return self.outcome.value

    @property
    def allowed_action(self) -> Optional[SigningAction]:
        if self.outcome is SigningOutcome.CAN_SIGN:
            return SigningAction.SIGN
        return None

    @property
    def can_sign(self) -> bool:
        return self.allowed_action is SigningAction.SIGN


# =============================================================================
# IDENTITY PREDICATES
# =============================================================================

def _same_email(a: str, b: str) -> bool:
    return bool(a) and a == b


def is_participant(contract: Contract, user: CurrentUser) -> bool:
    """Creator or listed participant, by identity or email fallback."""
    creator = contract.created_by
    if creator.identity == user.identity or _same_email(creator.email, user.email):
        return True
    return any(
        p.identity == user.identity or _same_email(p.email, user.email)
        for p in contract.participants
    )


def find_user_signature(version: Optional[Version], user: CurrentUser) -> Optional[Signature]:
    """The user's signature on version, if any."""
    if version is None:
        return None
    for signature in version.signatures:
        if signature.signer_identity == user.identity:
            return signature
    return None


# =============================================================================
# DECISION
# =============================================================================

def evaluate(contract: Contract, user: CurrentUser) -> SigningDecision:
    """Decide the signing outcome for user on contract's current version."""
    if not is_participant(contract, user):
        return SigningDecision(SigningOutcome.NOT_PARTICIPANT)

    version = contract.current_version
    own_signature = find_user_signature(version, user)
    if own_signature is not None:
        return SigningDecision(SigningOutcome.ALREADY_SIGNED, signature=own_signature)

    if contract.status is ContractStatus.CLOSED:
        return SigningDecision(SigningOutcome.CONTRACT_CLOSED)
    if contract.status is ContractStatus.CANCELLED:
        return SigningDecision(SigningOutcome.CONTRACT_CANCELLED)

    if version is None:
        return SigningDecision(SigningOutcome.NO_DECISION)
    if version.status is VersionStatus.SIGNED:
        return SigningDecision(SigningOutcome.VERSION_SIGNED)
    if version.status is VersionStatus.ARCHIVED:
        return SigningDecision(SigningOutcome.VERSION_ARCHIVED)

    if (
        contract.status is ContractStatus.OPEN
        and version.status is VersionStatus.PENDING_SIGNATURE
    ):
        return SigningDecision(SigningOutcome.CAN_SIGN)
    return SigningDecision(SigningOutcome.NO_DECISION)
