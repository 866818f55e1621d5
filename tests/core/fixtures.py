"""
Client Core Test Fixtures

Deterministic tokens, snapshots and fake collaborators.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional
import asyncio

import httpx
import jwt

from contract_client.contracts.base import RefreshFailed
from contract_client.contracts.domain import (
    Contract, ContractStatus, CurrentUser, Participant, ParticipantRole,
    RefreshedToken, Signature, SignReceipt, UserRef, Version, VersionStatus,
)
from contract_client.contracts.verification import (
    StepStatus, VerificationResult, VerificationStep,
)
from contract_client.session.clock import ManualClock
from contract_client.session.storage import InMemoryCredentialStore


# =============================================================================
# FIXED TIMES
# =============================================================================

NOW_MS = 1_767_261_600_000  # 2026-01-01T10:00:00Z
NOW_S = NOW_MS // 1000
SIGNED_AT = datetime(2026, 1, 1, 9, 30, 0, tzinfo=timezone.utc)

JWT_SECRET = "contract-client-test-secret-0123456789abcdef"


def make_clock(epoch_ms: int = NOW_MS) -> ManualClock:
    return ManualClock(current_ms=epoch_ms)


def make_token(exp_s: Optional[float], subject: str = "user-uuid-1", **claims) -> str:
    """HS256 token; exp_s=None omits the claim."""
    payload = {"sub": subject, **claims}
    if exp_s is not None:
        payload["exp"] = exp_s
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def token_valid_for(seconds: int, now_s: int = NOW_S, **claims) -> str:
    return make_token(now_s + seconds, **claims)


# =============================================================================
# USERS AND CONTRACTS
# =============================================================================

ALICE = CurrentUser(identity="uuid-alice", email="alice@example.com", username="alice", user_id="1")
BOB = CurrentUser(identity="uuid-bob", email="bob@example.com", username="bob", user_id="2")
MALLORY = CurrentUser(identity="uuid-mallory", email="mallory@example.com", username="mallory", user_id="9")


def make_signature(user: CurrentUser) -> Signature:
    return Signature(
        signer_identity=user.identity,
        signed_at=SIGNED_AT,
        signature_hash=f"hash-{user.username}",
        signer_username=user.username
    )


def make_contract(
    status: ContractStatus = ContractStatus.OPEN,
    version_status: Optional[VersionStatus] = VersionStatus.PENDING_SIGNATURE,
    signed_by: tuple = (),
    participants: tuple = (ALICE, BOB),
    creator: CurrentUser = ALICE,
    contract_id: int = 42
) -> Contract:
    version = None
    if version_status is not None:
        version = Version(
            id=700,
            version_number=3,
            status=version_status,
            file_hash="filehash-abc",
            signatures=tuple(make_signature(u) for u in signed_by)
        )
    return Contract(
        id=contract_id,
        title="Supply agreement",
        status=status,
        created_by=UserRef(identity=creator.identity, email=creator.email, username=creator.username),
        participants=tuple(
            Participant(
                identity=u.identity,
                role=ParticipantRole.INITIATOR if u == creator else ParticipantRole.COUNTERPARTY,
                email=u.email,
                username=u.username
            )
            for u in participants
        ),
        current_version=version
    )


def make_result(
    db_status: StepStatus = StepStatus.SUCCESS,
    chain_status: StepStatus = StepStatus.SUCCESS,
    db_discrepancies: tuple = (),
    chain_discrepancies: tuple = ()
) -> VerificationResult:
    return VerificationResult.create(
        message="verification finished",
        verified_at=SIGNED_AT,
        db_step=VerificationStep(db_status, "db check", db_discrepancies),
        chain_step=VerificationStep(chain_status, "chain check", chain_discrepancies)
    )


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeRefresher:
    """
    Stand-in for the refresh endpoint.

    Set `gate` to hold every call until gate.set(); set `error` to fail.
    """

    def __init__(
        self,
        new_token: Optional[str] = None,
        error: Optional[Exception] = None,
        rotated_refresh_token: Optional[str] = None,
        expires_at_ms: Optional[int] = None
    ):
        self.new_token = new_token or token_valid_for(900)
        self.error = error
        self.rotated_refresh_token = rotated_refresh_token
        self.expires_at_ms = expires_at_ms
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[str] = []

    async def __call__(self, refresh_token: str) -> RefreshedToken:
        self.calls.append(refresh_token)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return RefreshedToken(
            access_token=self.new_token,
            expires_at_ms=self.expires_at_ms,
            refresh_token=self.rotated_refresh_token
        )


def failing_refresher(message: str = "Refresh token expired") -> FakeRefresher:
    return FakeRefresher(error=RefreshFailed(message))


class UnwritableStore(InMemoryCredentialStore):
    """Credential store whose disk has gone away once `broken` is set."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.broken = False

    def _load(self):
        if self.broken:
            raise PermissionError("credential file is not readable")
        return super()._load()

    def _save(self, data):
        if self.broken:
            raise OSError("read-only file system")
        super()._save(data)


class LogoutRecorder:
    def __init__(self, error: Optional[Exception] = None):
        self.calls = 0
        self.error = error

    async def __call__(self) -> None:
        self.calls += 1
        if self.error is not None:
            raise self.error


class FakeVerifyEndpoint:
    def __init__(self, result: Optional[VerificationResult] = None, error: Optional[Exception] = None):
        self.result = result or make_result()
        self.error = error
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[tuple] = []

    async def __call__(self, contract_id: int, version_number: int) -> VerificationResult:
        self.calls.append((contract_id, version_number))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


class FakeContractApi:
    """In-memory api collaborator for view controllers."""

    def __init__(self, user: CurrentUser, contract: Contract):
        self.user = user
        self.contract = contract
        self.after_sign: Optional[Contract] = None
        self.fetch_error: Optional[Exception] = None
        self.sign_error: Optional[Exception] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.fetch_calls = 0
        self.sign_calls: List[int] = []

    async def get_current_user(self) -> CurrentUser:
        return self.user

    async def fetch_contract(self, contract_id: int) -> Contract:
        self.fetch_calls += 1
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.contract

    async def sign_contract(self, contract_id: int) -> SignReceipt:
        self.sign_calls.append(contract_id)
        if self.sign_error is not None:
            raise self.sign_error
        if self.after_sign is not None:
            self.contract = self.after_sign
        return SignReceipt(success=True, message="signed")


class FakeServer:
    """httpx.MockTransport handler: route table keyed by (method, path)."""

    def __init__(self):
        self.routes = {}
        self.requests: List[httpx.Request] = []

    def on(self, method, path, status=200, body=None, raw=None, error=None, text=None):
        self.routes[(method, path)] = (status, body, raw, error, text)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body, raw, error, text = self.routes[(request.method, request.url.path)]
        if error is not None:
            raise error
        if text is not None:
            return httpx.Response(status, text=text)
        if raw is not None:
            return httpx.Response(status, content=raw)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)


def envelope(data=None, success=True, message=None) -> dict:
    return {"success": success, "data": data, "message": message}


async def settle(rounds: int = 5) -> None:
    """Let pending tasks run up to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)
