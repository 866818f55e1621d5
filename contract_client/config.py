"""
Client Configuration

Frozen settings for the HTTP collaborators and the session scheduler.
Changes require a new config instance.
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os


@dataclass(frozen=True)
class ClientConfig:
    api_base_url: str = "https://localhost:8443/api"
    auth_base_url: str = "https://localhost:8443/auth"
    timeout_seconds: float = 30.0

    # The UI re-checks token expiry on this interval
    poll_interval_seconds: float = 15.0

    # None keeps credentials in memory only
    credentials_path: Optional[Path] = None
    access_token_key: str = "token"
    refresh_token_key: str = "refreshToken"

    verify_tls: bool = True

    @classmethod
    def from_env(cls) -> ClientConfig:
        """Read CONTRACT_CLIENT_* variables; unset ones keep defaults."""
        defaults = cls()
        credentials_path = os.environ.get("CONTRACT_CLIENT_CREDENTIALS_PATH")
        return cls(
            api_base_url=os.environ.get("CONTRACT_CLIENT_API_URL", defaults.api_base_url),
            auth_base_url=os.environ.get("CONTRACT_CLIENT_AUTH_URL", defaults.auth_base_url),
            timeout_seconds=float(os.environ.get(
                "CONTRACT_CLIENT_TIMEOUT", defaults.timeout_seconds
            )),
            poll_interval_seconds=float(os.environ.get(
                "CONTRACT_CLIENT_POLL_INTERVAL", defaults.poll_interval_seconds
            )),
            credentials_path=Path(credentials_path) if credentials_path else None,
            verify_tls=os.environ.get("CONTRACT_CLIENT_VERIFY_TLS", "1") not in ("0", "false", "no"),
        )
