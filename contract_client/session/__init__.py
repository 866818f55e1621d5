"""
Session Package

Token expiry arithmetic, credential storage and the refresh lifecycle.
"""

from .clock import Clock, SystemClock, ManualClock, TokenClock, describe_remaining
from .storage import (
    CredentialStore,
    InMemoryCredentialStore,
    JsonFileCredentialStore,
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
)
from .manager import SessionManager, SessionState, RefreshOutcome
