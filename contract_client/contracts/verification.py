"""
Verification Contracts

Result of the two-step integrity check: ledger-of-record (database)
consistency, then comparison against the external chain.

INVARIANT:
==========
overall_success is True iff both steps report SUCCESS.
Discrepancy lists are preserved verbatim and in server order.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class StepStatus(Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    DATA_NOT_FOUND = "DATA_NOT_FOUND"
    ERROR = "ERROR"
    NOT_CHECKED = "NOT_CHECKED"


@dataclass(frozen=True)
class VerificationStep:
    status: StepStatus
    details: str = ""
    discrepancies: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> bool:
        return self.status is StepStatus.SUCCESS


@dataclass(frozen=True)
class VerificationResult:
    """
    Produced once per verification request.

    Build through VerificationResult.create so overall_success is derived
    from the step statuses rather than trusted from the wire.
    """
    overall_success: bool
    message: str
    verified_at: Optional[datetime]
    db_step: VerificationStep
    chain_step: VerificationStep

    def __post_init__(self):
        expected = self.db_step.succeeded and self.chain_step.succeeded
        if self.overall_success != expected:
            raise ValueError(
                "overall_success must equal both steps succeeding"
            )

    @staticmethod
    def create(
        message: str,
        verified_at: Optional[datetime],
        db_step: VerificationStep,
        chain_step: VerificationStep
    ) -> VerificationResult:
        return VerificationResult(
            overall_success=db_step.succeeded and chain_step.succeeded,
            message=message,
            verified_at=verified_at,
            db_step=db_step,
            chain_step=chain_step
        )

    @property
    def discrepancies(self) -> Tuple[str, ...]:
        """All discrepancies, database step first."""
        return self.db_step.discrepancies + self.chain_step.discrepancies
