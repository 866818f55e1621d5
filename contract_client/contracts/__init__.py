"""
Client Contracts Package

Immutable types shared by every layer of the client core.
"""

from .base import (
    ErrorCode,
    Error,
    ClientError,
    TokenMalformed,
    TokenExpired,
    RefreshFailed,
    NotAuthenticated,
    FetchFailed,
    SignFailed,
    VerificationFailed,
)
from .domain import (
    ContractStatus,
    VersionStatus,
    ParticipantRole,
    Session,
    RefreshedToken,
    CurrentUser,
    UserRef,
    Participant,
    Signature,
    Version,
    Contract,
    ContractSummary,
    SignReceipt,
)
from .verification import (
    StepStatus,
    VerificationStep,
    VerificationResult,
)
