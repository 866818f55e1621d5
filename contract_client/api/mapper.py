"""
API Mapper
==========

Converts server JSON payloads into domain snapshots.

MAPPING BOUNDARY:
=================
This is the ONLY place where wire payloads become domain objects, and the
ONLY place where user identity representations are reconciled.

The server refers to the same user as a UUID (`uuid`, `userUuid`,
`signerUuid`) or as a numeric id (`id`) depending on the endpoint.
IdentityNormalizer learns every representation of the current user and
rewrites any of them to one canonical identity string, so downstream
code compares a single field.
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
import re

from ..contracts.domain import (
    Contract, ContractStatus, ContractSummary, CurrentUser, Participant,
    ParticipantRole, RefreshedToken, Signature, SignReceipt, UserRef,
    Version, VersionStatus,
)
from ..contracts.verification import StepStatus, VerificationResult, VerificationStep


class MalformedPayload(ValueError):
    """Payload is missing fields or has the wrong shape."""
    pass


# =============================================================================
# IDENTITY NORMALIZATION
# =============================================================================

class IdentityNormalizer:
    """
    Maps every known representation of a user to one canonical string.

    Canonical form for the current user: uuid, else userUuid, else the
    numeric id as a string. Representations of other users pass through
    unchanged (first non-empty one wins).
    """

    def __init__(self):
        self._aliases: Dict[str, str] = {}

    def learn(self, *representations: Any) -> str:
        """Register representations of one user; returns the canonical one."""
        values = _non_empty(representations)
        if not values:
            raise MalformedPayload("User payload carries no identity")
        canonical = self.canonical(*values)
        for value in values:
            self._aliases[value] = canonical
        return canonical

    def canonical(self, *representations: Any) -> str:
        values = _non_empty(representations)
        for value in values:
            if value in self._aliases:
                return self._aliases[value]
        return values[0] if values else ""

    def clear(self) -> None:
        self._aliases.clear()


def _non_empty(values: Iterable[Any]) -> List[str]:
    return [str(v) for v in values if v is not None and str(v) != ""]


# =============================================================================
# FIELD HELPERS
# =============================================================================

def _require(payload: Any, key: str) -> Any:
    if not isinstance(payload, dict):
        raise MalformedPayload(f"Expected object while reading '{key}'")
    if payload.get(key) is None:
        raise MalformedPayload(f"Missing field '{key}'")
    return payload[key]


def _parse_enum(enum_cls, raw: Any):
    try:
        return enum_cls(raw)
    except ValueError as e:
        raise MalformedPayload(f"Unknown {enum_cls.__name__}: {raw!r}") from e


_FRACTION = re.compile(r"\.(\d+)")


def _six_digit_fraction(raw: str) -> str:
    # fromisoformat before 3.11 accepts only 3 or 6 fractional digits
    return _FRACTION.sub(lambda m: "." + (m.group(1) + "000000")[:6], raw, count=1)


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """ISO-8601 to aware UTC datetime; naive server times are taken as UTC."""
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        raise MalformedPayload(f"Timestamp must be a string: {raw!r}")
    try:
        dt = datetime.fromisoformat(_six_digit_fraction(raw.replace('Z', '+00:00')))
    except ValueError as e:
        raise MalformedPayload(f"Bad timestamp: {raw!r}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# =============================================================================
# PAYLOAD MAPPERS
# =============================================================================

class PayloadMapper:
    """
    Maps payloads, normalizing identities through one IdentityNormalizer.
    """

    def __init__(self, normalizer: Optional[IdentityNormalizer] = None):
        self._normalizer = normalizer or IdentityNormalizer()

    @property
    def normalizer(self) -> IdentityNormalizer:
        return self._normalizer

    def map_current_user(self, payload: Dict[str, Any]) -> CurrentUser:
        identity = self._normalizer.learn(
            payload.get("uuid"), payload.get("userUuid"), payload.get("id")
        )
        user_id = payload.get("id")
        return CurrentUser(
            identity=identity,
            email=payload.get("email") or "",
            username=payload.get("username") or "",
            user_id=str(user_id) if user_id is not None else None
        )

    def map_contract(self, payload: Dict[str, Any]) -> Contract:
        creator = _require(payload, "createdBy")
        version_payload = payload.get("currentVersion")
        return Contract(
            id=int(_require(payload, "id")),
            title=str(payload.get("title") or ""),
            status=_parse_enum(ContractStatus, _require(payload, "status")),
            created_by=UserRef(
                identity=self._normalizer.canonical(
                    creator.get("uuid"), creator.get("userUuid"), creator.get("id")
                ),
                email=creator.get("email") or "",
                username=creator.get("username") or ""
            ),
            participants=tuple(
                self._map_participant(p) for p in payload.get("participants") or ()
            ),
            current_version=(
                self.map_version(version_payload) if version_payload else None
            ),
            description=payload.get("description") or ""
        )

    def map_version(self, payload: Dict[str, Any]) -> Version:
        try:
            return Version(
                id=int(_require(payload, "id")),
                version_number=int(_require(payload, "versionNumber")),
                status=_parse_enum(VersionStatus, _require(payload, "status")),
                file_hash=payload.get("fileHash") or "",
                signatures=tuple(
                    self._map_signature(s) for s in payload.get("signatures") or ()
                )
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, MalformedPayload):
                raise
            raise MalformedPayload(f"Bad version payload: {e}") from e

    def _map_participant(self, payload: Dict[str, Any]) -> Participant:
        return Participant(
            identity=self._normalizer.canonical(
                payload.get("userUuid"), payload.get("uuid"), payload.get("id")
            ),
            role=_parse_enum(ParticipantRole, _require(payload, "role")),
            email=payload.get("email") or "",
            username=payload.get("username") or ""
        )

    def _map_signature(self, payload: Dict[str, Any]) -> Signature:
        return Signature(
            signer_identity=self._normalizer.canonical(
                _require(payload, "signerUuid")
            ),
            signed_at=parse_timestamp(_require(payload, "signedAt")),
            signature_hash=payload.get("signatureHash") or "",
            signer_username=payload.get("signerUsername") or ""
        )

    def map_summary(self, payload: Dict[str, Any]) -> ContractSummary:
        version_number = payload.get("currentVersionNumber")
        version_id = payload.get("currentVersionId")
        return ContractSummary(
            id=int(_require(payload, "id")),
            title=str(payload.get("title") or ""),
            status=str(payload.get("status") or ""),
            created_by_username=payload.get("createdByUserName") or "",
            created_at=parse_timestamp(payload.get("createdAt")),
            current_version_number=int(version_number) if version_number is not None else None,
            current_version_id=int(version_id) if version_id is not None else None
        )


# =============================================================================
# STATELESS MAPPERS
# =============================================================================

def map_refreshed_token(payload: Any) -> RefreshedToken:
    access_token = _require(payload, "accessToken")
    if not isinstance(access_token, str):
        raise MalformedPayload("accessToken must be a string")
    expires_at = payload.get("expiresAt")
    refresh_token = payload.get("refreshToken")
    return RefreshedToken(
        access_token=access_token,
        expires_at_ms=int(expires_at) if isinstance(expires_at, (int, float)) else None,
        refresh_token=refresh_token if isinstance(refresh_token, str) else None
    )


def map_sign_receipt(payload: Any, message: Optional[str]) -> SignReceipt:
    if isinstance(payload, dict) and "success" in payload:
        return SignReceipt(success=bool(payload["success"]), message=payload.get("message") or message)
    return SignReceipt(success=True, message=message)


def map_verification_step(payload: Any) -> VerificationStep:
    if payload is None:
        return VerificationStep(status=StepStatus.NOT_CHECKED)
    discrepancies = payload.get("discrepancies") or []
    if not isinstance(discrepancies, list):
        raise MalformedPayload("discrepancies must be a list")
    return VerificationStep(
        status=_parse_enum(StepStatus, _require(payload, "status")),
        details=payload.get("details") or "",
        discrepancies=tuple(str(d) for d in discrepancies)
    )


def map_verification_result(payload: Any) -> VerificationResult:
    """
    overallSuccess from the wire is ignored; it is recomputed from steps.
    """
    if not isinstance(payload, dict):
        raise MalformedPayload("Verification result must be an object")
    return VerificationResult.create(
        message=payload.get("message") or "",
        verified_at=parse_timestamp(payload.get("verifiedAt")),
        db_step=map_verification_step(payload.get("dbVerification")),
        chain_step=map_verification_step(payload.get("blockchainVerification"))
    )
