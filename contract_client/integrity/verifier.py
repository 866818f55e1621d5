"""
Integrity Verifier
==================

Drives one integrity check per contract:

    Idle -> Verifying -> Completed(result) | Failed(error)

The server runs both checks (ledger-of-record, external chain) in a
single call. This layer only:
1. Rejects a second request for a contract while one is outstanding
2. Guarantees overall success iff both steps succeeded
3. Keeps step discrepancies verbatim for display
4. Turns collaborator errors into a Failed state with a readable message

It never mutates persisted contract state.
"""

from __future__ import annotations
from typing import Awaitable, Callable, Dict, Optional
import logging

from ..contracts.base import ClientError, Error, ErrorCode
from ..contracts.verification import VerificationResult
from ..observability import AuditEventType, AuditTrail
from ..session.clock import Clock, SystemClock
from ..state.operation import Idle, OperationSlot, OperationState


logger = logging.getLogger(__name__)

VerifyIntegrityFn = Callable[[int, int], Awaitable[VerificationResult]]

DEFAULT_FAILURE_MESSAGE = "Integrity verification could not be completed."


class IntegrityVerifier:
    """
    Per-contract single-flight wrapper around the verification endpoint.
    """

    def __init__(
        self,
        verify_integrity: VerifyIntegrityFn,
        clock: Optional[Clock] = None,
        audit: Optional[AuditTrail] = None
    ):
        self._verify_integrity = verify_integrity
        self._clock = clock or SystemClock()
        self._audit = audit or AuditTrail("integrity")
        self._slots: Dict[int, OperationSlot[VerificationResult]] = {}

    @property
    def audit(self) -> AuditTrail:
        return self._audit

    def state(self, contract_id: int) -> OperationState:
        slot = self._slots.get(contract_id)
        return slot.state if slot is not None else Idle()

    def is_verifying(self, contract_id: int) -> bool:
        slot = self._slots.get(contract_id)
        return slot is not None and slot.in_flight

    async def verify(self, contract_id: int, version_number: int) -> OperationState:
        """
        Run the check, or return the in-flight state if one is running.
        """
        slot = self._slots.get(contract_id)
        if slot is None:
            slot = OperationSlot(f"verify:{contract_id}")
            self._slots[contract_id] = slot

        if slot.in_flight:
            self._record(AuditEventType.VERIFICATION_REJECTED, contract_id, version_number)
            logger.info("Verification already running for contract %s", contract_id)
            return slot.state

        request_id = slot.begin()
        self._record(AuditEventType.VERIFICATION_STARTED, contract_id, version_number)
        try:
            result = await self._verify_integrity(contract_id, version_number)
        except ClientError as e:
            error = Error(
                code=ErrorCode.VERIFICATION_FAILED,
                message=e.message or DEFAULT_FAILURE_MESSAGE
            ).with_context("cause", e.code.value)
            slot.fail(request_id, error)
            self._record(AuditEventType.VERIFICATION_FAILED, contract_id, version_number, e.message)
            logger.warning("Verification of contract %s failed: %s", contract_id, e.message)
            return slot.state
        except Exception:
            slot.fail(request_id, Error(ErrorCode.VERIFICATION_FAILED, DEFAULT_FAILURE_MESSAGE))
            raise

        slot.succeed(request_id, result)
        self._record(
            AuditEventType.VERIFICATION_COMPLETED,
            contract_id,
            version_number,
            "success" if result.overall_success else "mismatch"
        )
        return slot.state

    def forget(self, contract_id: int) -> None:
        """Drop state for a contract; an outstanding response is ignored."""
        slot = self._slots.pop(contract_id, None)
        if slot is not None:
            slot.reset()

    def _record(
        self,
        event_type: AuditEventType,
        contract_id: int,
        version_number: int,
        detail: str = ""
    ) -> None:
        self._audit.record(
            event_type,
            self._clock.now_ms(),
            detail,
            contract_id=str(contract_id),
            version_number=str(version_number)
        )
