"""
Base Contracts and Shared Error Types

Foundational error types used by every layer of the client core.

ERROR POLICY:
=============
- Every failure is enumerated in ErrorCode, never a bare string
- Token problems are raised inside the session layer only
- Fetch/sign/verify failures reach the view as displayable messages
- Errors stored inside operation states are immutable data (Error)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple


# =============================================================================
# ERROR CODES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for the client core.
    No silent fallbacks - every error state is enumerated.
    """
    # Token errors (handled inside SessionManager)
    TOKEN_MALFORMED = "token_malformed"
    TOKEN_EXPIRED = "token_expired"
    REFRESH_FAILED = "refresh_failed"
    NOT_AUTHENTICATED = "not_authenticated"

    # Collaborator errors (surfaced to views)
    FETCH_FAILED = "fetch_failed"
    SIGN_FAILED = "sign_failed"
    VERIFICATION_FAILED = "verification_failed"


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation.
    Errors are data, not exceptions - they can be stored in a Failed state.
    """
    code: ErrorCode
    message: str
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            context=self.context + ((key, value),)
        )


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ClientError(Exception):
    """Base class for every error raised by the client core."""

    code: ErrorCode = ErrorCode.FETCH_FAILED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_error(self) -> Error:
        return Error(code=self.code, message=self.message)


class TokenMalformed(ClientError):
    """Access token payload could not be decoded."""
    code = ErrorCode.TOKEN_MALFORMED


class TokenExpired(ClientError):
    """Access token expiry is at or before the current time."""
    code = ErrorCode.TOKEN_EXPIRED


class RefreshFailed(ClientError):
    """Refresh endpoint rejected the request or could not be reached."""
    code = ErrorCode.REFRESH_FAILED


class NotAuthenticated(ClientError):
    """No usable session; the user must log in again."""
    code = ErrorCode.NOT_AUTHENTICATED


class FetchFailed(ClientError):
    code = ErrorCode.FETCH_FAILED


class SignFailed(ClientError):
    code = ErrorCode.SIGN_FAILED


class VerificationFailed(ClientError):
    code = ErrorCode.VERIFICATION_FAILED
