"""
Contract Detail Controller

Drives a single contract-detail view through the core: load the
snapshot, decide signing eligibility, sign, verify integrity.

VIEW LIFETIME:
==============
Every async operation lives in its own OperationSlot. close() resets all
of them, so responses that arrive after the view closed change nothing.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
import logging

from ..contracts.base import ClientError, Error, ErrorCode
from ..contracts.domain import Contract, CurrentUser, SignReceipt
from ..integrity.verifier import IntegrityVerifier
from ..signing.eligibility import SigningDecision, evaluate
from ..state.operation import (
    Failed, InFlight, OperationSlot, OperationState, Succeeded,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractDetail:
    contract: Contract
    user: CurrentUser
    decision: SigningDecision


class ContractDetailController:
    """
    Collaborators:
        api: object exposing get_current_user, fetch_contract, sign_contract
        verifier: shared IntegrityVerifier
        on_contract_update: awaited after a successful signature
    """

    def __init__(
        self,
        api,
        verifier: IntegrityVerifier,
        on_contract_update: Optional[Callable[[], Awaitable[None]]] = None
    ):
        self._api = api
        self._verifier = verifier
        self._on_contract_update = on_contract_update
        self._contract_id: Optional[int] = None

        self.detail: OperationSlot[ContractDetail] = OperationSlot("detail")
        self.signing: OperationSlot[SignReceipt] = OperationSlot("sign")
        self.verification = OperationSlot("verify")

    @property
    def contract_id(self) -> Optional[int]:
        return self._contract_id

    @property
    def is_open(self) -> bool:
        return self._contract_id is not None

    # =========================================================================
    # LOAD
    # =========================================================================

    async def open(self, contract_id: int) -> OperationState:
        if self._contract_id is not None and self._contract_id != contract_id:
            self.close()
        self._contract_id = contract_id
        return await self.reload()

    async def reload(self) -> OperationState:
        contract_id = self._contract_id
        if contract_id is None:
            return self.detail.state
        request_id = self.detail.begin()
        try:
            # User first: it teaches the mapper the user's identity aliases.
            user = await self._api.get_current_user()
            contract = await self._api.fetch_contract(contract_id)
        except ClientError as e:
            logger.warning("Loading contract %s failed: %s", contract_id, e.message)
            self.detail.fail(request_id, e.to_error())
            return self.detail.state

        self.detail.succeed(
            request_id,
            ContractDetail(contract=contract, user=user, decision=evaluate(contract, user))
        )
        return self.detail.state

    # =========================================================================
    # SIGN
    # =========================================================================

    async def sign(self) -> OperationState:
        if self.signing.in_flight:
            return self.signing.state

        detail = self.detail.value
        request_id = self.signing.begin()
        if detail is None or not detail.decision.can_sign:
            reason = detail.decision.reason if detail else "not_loaded"
            self.signing.fail(request_id, Error(
                code=ErrorCode.SIGN_FAILED,
                message="Signing is not allowed for this contract"
            ).with_context("reason", reason))
            return self.signing.state

        try:
            receipt = await self._api.sign_contract(detail.contract.id)
        except ClientError as e:
            logger.warning("Signing contract %s failed: %s", detail.contract.id, e.message)
            self.signing.fail(request_id, Error(ErrorCode.SIGN_FAILED, e.message))
            return self.signing.state

        if not self.signing.succeed(request_id, receipt):
            return self.signing.state

        await self.reload()
        if self._on_contract_update is not None and self.is_open:
            await self._on_contract_update()
        return self.signing.state

    # =========================================================================
    # VERIFY
    # =========================================================================

    async def verify(self) -> OperationState:
        if self.verification.in_flight:
            return self.verification.state

        detail = self.detail.value
        version = detail.contract.current_version if detail else None
        if version is None:
            request_id = self.verification.begin()
            self.verification.fail(request_id, Error(
                ErrorCode.VERIFICATION_FAILED, "No current version to verify"
            ))
            return self.verification.state

        contract_id = detail.contract.id
        if self._verifier.is_verifying(contract_id):
            return self._verifier.state(contract_id)

        request_id = self.verification.begin()
        outcome = await self._verifier.verify(contract_id, version.version_number)
        if isinstance(outcome, Succeeded):
            self.verification.succeed(request_id, outcome.value)
        elif isinstance(outcome, Failed):
            self.verification.fail(request_id, outcome.error)
        elif not isinstance(outcome, InFlight) and self.verification.is_current(request_id):
            # verifier state was dropped while we waited
            self.verification.reset()
        return self.verification.state

    # =========================================================================
    # CLOSE
    # =========================================================================

    def close(self) -> None:
        """Discard all view state; in-flight responses become stale."""
        if self._contract_id is not None:
            self._verifier.forget(self._contract_id)
        self._contract_id = None
        self.detail.reset()
        self.signing.reset()
        self.verification.reset()
