"""
HTTP Collaborators

Thin async clients for the auth and contract endpoints.

PRINCIPLES:
===========
1. One shared httpx.AsyncClient; tests inject httpx.MockTransport
2. Every failure becomes the operation's typed ClientError
3. Server envelope {success, data, message}: success=false is a failure
4. Authenticated calls get their bearer token from SessionManager only
"""

from __future__ import annotations
from typing import Any, List, Optional, Tuple, Type
import logging

import httpx

from ..config import ClientConfig
from ..contracts.base import (
    ClientError, FetchFailed, NotAuthenticated, RefreshFailed, SignFailed,
    VerificationFailed,
)
from ..contracts.domain import (
    Contract, ContractSummary, CurrentUser, RefreshedToken, SignReceipt,
)
from ..contracts.verification import VerificationResult
from ..session.manager import SessionManager
from .mapper import (
    PayloadMapper, map_refreshed_token, map_sign_receipt, map_verification_result,
)


logger = logging.getLogger(__name__)


class _ApiBase:

    def __init__(self, http: httpx.AsyncClient, config: ClientConfig):
        self._http = http
        self._config = config

    async def _call(
        self,
        method: str,
        url: str,
        error_cls: Type[ClientError],
        headers: Optional[dict] = None,
        allow_empty: bool = False,
        **kwargs
    ) -> Any:
        """
        Perform one request and unwrap the envelope.

        Returns the `data` member, or the whole body for endpoints that
        answer without an envelope.
        """
        data, _ = await self._exchange(
            method, url, error_cls, headers=headers, allow_empty=allow_empty, **kwargs
        )
        return data

    async def _exchange(
        self,
        method: str,
        url: str,
        error_cls: Type[ClientError],
        headers: Optional[dict] = None,
        allow_empty: bool = False,
        accept_text: bool = False,
        **kwargs
    ) -> Tuple[Any, Optional[str]]:
        """
        Like _call, but also returns the server's message.

        With accept_text, a 2xx plain-text reply is a success whose text
        is the message.
        """
        try:
            response = await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise error_cls("Request timed out") from e
        except httpx.HTTPError as e:
            raise error_cls(f"Network error: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message")
        elif isinstance(body, str):
            message = body.strip() or None
        else:
            message = _plain_text(response)

        if not response.is_success:
            logger.warning("%s %s -> HTTP %d", method, url, response.status_code)
            raise error_cls(message or f"HTTP {response.status_code}")
        if accept_text and not isinstance(body, dict) and message:
            return None, message
        if body is None and allow_empty:
            return None, message
        if not isinstance(body, dict):
            raise error_cls("Malformed server response")
        if "success" not in body:
            return body, message
        if not body["success"]:
            raise error_cls(message or "Request was rejected by the server")
        return body.get("data"), message


def _plain_text(response: httpx.Response) -> Optional[str]:
    """Body of a text/plain response, if non-blank."""
    if not response.headers.get("content-type", "").startswith("text/plain"):
        return None
    return response.text.strip() or None


# =============================================================================
# AUTH
# =============================================================================

class AuthApi(_ApiBase):
    """Unauthenticated endpoints used by the session layer."""

    async def refresh_session(self, refresh_token: str) -> RefreshedToken:
        data = await self._call(
            "POST",
            f"{self._config.auth_base_url}/refresh",
            RefreshFailed,
            json={"refreshToken": refresh_token}
        )
        try:
            return map_refreshed_token(data)
        except (ValueError, TypeError) as e:
            raise RefreshFailed(f"Malformed refresh response: {e}") from e

    async def logout(self) -> None:
        await self._call(
            "POST", f"{self._config.auth_base_url}/logout", FetchFailed,
            allow_empty=True
        )


# =============================================================================
# CONTRACTS
# =============================================================================

class ContractApi(_ApiBase):
    """Authenticated contract endpoints."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        config: ClientConfig,
        session: SessionManager,
        mapper: Optional[PayloadMapper] = None
    ):
        super().__init__(http, config)
        self._session = session
        self._mapper = mapper or PayloadMapper()

    @property
    def mapper(self) -> PayloadMapper:
        return self._mapper

    async def _authorized(self) -> dict:
        token = await self._session.ensure_valid()
        if token is None:
            raise NotAuthenticated("Login required")
        return {"Authorization": f"Bearer {token}"}

    async def get_current_user(self) -> CurrentUser:
        data = await self._call(
            "GET", f"{self._config.auth_base_url}/me", FetchFailed,
            headers=await self._authorized()
        )
        try:
            return self._mapper.map_current_user(data)
        except (ValueError, TypeError, AttributeError) as e:
            raise FetchFailed(f"Malformed user response: {e}") from e

    async def fetch_contract(self, contract_id: int) -> Contract:
        data = await self._call(
            "GET", f"{self._config.api_base_url}/contracts/{contract_id}", FetchFailed,
            headers=await self._authorized()
        )
        try:
            return self._mapper.map_contract(data)
        except (ValueError, TypeError, AttributeError) as e:
            raise FetchFailed(f"Malformed contract response: {e}") from e

    async def fetch_contracts_for_user(
        self,
        search_term: Optional[str] = None
    ) -> List[ContractSummary]:
        params = {}
        if search_term and search_term.strip():
            params["search"] = search_term.strip()
        data = await self._call(
            "GET", f"{self._config.api_base_url}/contracts/my", FetchFailed,
            headers=await self._authorized(),
            params=params
        )
        if not isinstance(data, list):
            raise FetchFailed("Malformed contract list response")
        try:
            return [self._mapper.map_summary(item) for item in data]
        except (ValueError, TypeError, AttributeError) as e:
            raise FetchFailed(f"Malformed contract list response: {e}") from e

    async def sign_contract(self, contract_id: int) -> SignReceipt:
        data, message = await self._exchange(
            "POST", f"{self._config.api_base_url}/contracts/{contract_id}/sign", SignFailed,
            headers=await self._authorized(),
            accept_text=True
        )
        receipt = map_sign_receipt(data, message)
        if not receipt.success:
            raise SignFailed(receipt.message or "Signing was rejected")
        return receipt

    async def verify_integrity(
        self,
        contract_id: int,
        version_number: int
    ) -> VerificationResult:
        data = await self._call(
            "GET",
            f"{self._config.api_base_url}/contracts/{contract_id}"
            f"/versions/{version_number}/verify",
            VerificationFailed,
            headers=await self._authorized()
        )
        try:
            return map_verification_result(data)
        except (ValueError, TypeError, AttributeError) as e:
            raise VerificationFailed(f"Malformed verification response: {e}") from e
