"""
Client Facade

Single point of integration for a UI shell: wires configuration,
credential storage, the session manager, the HTTP collaborators and the
integrity verifier together.
"""

from __future__ import annotations
from typing import Awaitable, Callable, Optional
import logging

import httpx

from .api.client import AuthApi, ContractApi
from .api.mapper import PayloadMapper
from .config import ClientConfig
from .contracts.base import ClientError
from .integrity.verifier import IntegrityVerifier
from .observability import AuditTrail
from .session.clock import Clock, SystemClock, TokenClock
from .session.manager import SessionManager
from .session.storage import (
    CredentialStore, InMemoryCredentialStore, JsonFileCredentialStore,
)
from .views.detail import ContractDetailController


logger = logging.getLogger(__name__)


class ContractClient:
    """
    Owns the shared httpx.AsyncClient; close it with aclose() or use the
    client as an async context manager.
    """

    def __init__(
        self,
        config: ClientConfig,
        http: httpx.AsyncClient,
        store: CredentialStore,
        on_logout: Optional[Callable[[], Awaitable[None]]] = None,
        clock: Optional[Clock] = None
    ):
        self.config = config
        self.audit = AuditTrail("client")
        self._http = http
        self._on_logout = on_logout
        clock = clock or SystemClock()

        self.auth = AuthApi(http, config)
        self.session = SessionManager(
            store=store,
            refresh_session=self.auth.refresh_session,
            on_logout=self._logout_hook,
            token_clock=TokenClock(clock),
            audit=self.audit
        )
        self.contracts = ContractApi(http, config, self.session, PayloadMapper())
        self.verifier = IntegrityVerifier(
            self.contracts.verify_integrity, clock=clock, audit=self.audit
        )

    def detail_view(
        self,
        on_contract_update: Optional[Callable[[], Awaitable[None]]] = None
    ) -> ContractDetailController:
        return ContractDetailController(self.contracts, self.verifier, on_contract_update)

    async def _logout_hook(self) -> None:
        self.contracts.mapper.normalizer.clear()
        try:
            await self.auth.logout()
        except ClientError as e:
            logger.warning("Server-side logout failed: %s", e.message)
        if self._on_logout is not None:
            await self._on_logout()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> ContractClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def build_client(
    config: Optional[ClientConfig] = None,
    on_logout: Optional[Callable[[], Awaitable[None]]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    store: Optional[CredentialStore] = None,
    clock: Optional[Clock] = None
) -> ContractClient:
    """Build a client; stored credentials are restored immediately."""
    config = config or ClientConfig.from_env()
    if store is None:
        keys = dict(access_key=config.access_token_key, refresh_key=config.refresh_token_key)
        if config.credentials_path is not None:
            store = JsonFileCredentialStore(config.credentials_path, **keys)
        else:
            store = InMemoryCredentialStore(**keys)
    http = httpx.AsyncClient(
        timeout=config.timeout_seconds,
        verify=config.verify_tls,
        transport=transport
    )
    client = ContractClient(config, http, store, on_logout=on_logout, clock=clock)
    client.session.restore()
    return client
