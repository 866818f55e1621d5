"""
Session Manager
===============

Owns the access/refresh token lifecycle.

STATES:
=======
NO_SESSION -> VALID -> REFRESHING -> VALID
                        REFRESHING -> LOGGED_OUT

GUARANTEES:
===========
1. At most one refresh call in flight; concurrent callers share its outcome
2. Manual and expiry-triggered refresh use the same single-flight path
3. Any refresh failure is terminal: state clears, logout collaborator runs once
4. Token errors never escape to callers; they surface only as LOGGED_OUT
5. Session.expires_at_ms is always decoded from the current access token
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Awaitable, Callable, Optional
import asyncio
import logging

from ..contracts.base import ClientError, Error, ErrorCode
from ..contracts.domain import RefreshedToken, Session
from ..observability import AuditEventType, AuditTrail
from .clock import TokenClock
from .storage import CredentialStore


logger = logging.getLogger(__name__)

RefreshSessionFn = Callable[[str], Awaitable[RefreshedToken]]
LogoutFn = Callable[[], Awaitable[None]]


class SessionState(Enum):
    NO_SESSION = "no_session"
    VALID = "valid"
    REFRESHING = "refreshing"
    LOGGED_OUT = "logged_out"


@dataclass(frozen=True)
class RefreshOutcome:
    """Result shared by every caller that joined one refresh."""
    success: bool
    session: Optional[Session] = None
    error: Optional[Error] = None

    @staticmethod
    def succeeded(session: Session) -> RefreshOutcome:
        return RefreshOutcome(success=True, session=session)

    @staticmethod
    def failed(message: str) -> RefreshOutcome:
        return RefreshOutcome(
            success=False,
            error=Error(code=ErrorCode.REFRESH_FAILED, message=message)
        )


class SessionManager:
    """
    Single owner of credentials.

    Collaborators:
        store: persistent CredentialStore (two well-known keys)
        refresh_session: async call to the refresh endpoint
        on_logout: async hook that navigates away / notifies the server
    """

    def __init__(
        self,
        store: CredentialStore,
        refresh_session: RefreshSessionFn,
        on_logout: Optional[LogoutFn] = None,
        token_clock: Optional[TokenClock] = None,
        audit: Optional[AuditTrail] = None
    ):
        self._store = store
        self._refresh_session = refresh_session
        self._on_logout = on_logout
        self._token_clock = token_clock or TokenClock()
        self._audit = audit or AuditTrail("session")

        self._state = SessionState.NO_SESSION
        self._session: Optional[Session] = None
        self._inflight: Optional[asyncio.Future] = None
        self._inflight_epoch = -1
        # Bumped by establish() and logout(); refreshes started in an older
        # epoch must not write their result.
        self._epoch = 0

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def audit(self) -> AuditTrail:
        return self._audit

    @property
    def token_clock(self) -> TokenClock:
        return self._token_clock

    def remaining(self) -> Optional[timedelta]:
        """Remaining lifetime of the current access token, if any."""
        if self._session is None:
            return None
        try:
            return self._token_clock.remaining(self._session.access_token)
        except ClientError:
            return None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def establish(self, access_token: str, refresh_token: str) -> Session:
        """
        Install credentials obtained from login.

        Raises TokenMalformed if access_token carries no readable expiry.
        """
        session = Session(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at_ms=self._token_clock.expires_at_ms(access_token)
        )
        self._epoch += 1
        self._session = session
        self._store.write(access_token, refresh_token)
        self._state = SessionState.VALID
        self._record(AuditEventType.SESSION_ESTABLISHED)
        logger.info("Session established; expires at %d", session.expires_at_ms)
        return session

    def restore(self) -> Optional[Session]:
        """
        Load persisted credentials at startup.

        An undecodable stored access token is dropped; the stored refresh
        token is still used by the next ensure_valid().
        """
        if self._state is not SessionState.NO_SESSION:
            return self._session
        try:
            access_token = self._store.read_access_token()
            refresh_token = self._store.read_refresh_token()
        except OSError:
            logger.exception("Could not read stored credentials")
            return None
        if not access_token or not refresh_token:
            return None
        try:
            expires_at_ms = self._token_clock.expires_at_ms(access_token)
        except ClientError:
            logger.warning("Stored access token is malformed; a refresh is required")
            return None
        self._session = Session(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at_ms=expires_at_ms
        )
        self._state = SessionState.VALID
        self._record(AuditEventType.SESSION_RESTORED)
        return self._session

    async def ensure_valid(self) -> Optional[str]:
        """
        Return a usable access token, refreshing if needed.

        Returns None once the session is logged out.
        """
        if self._state is SessionState.LOGGED_OUT:
            return None
        if self._state is SessionState.NO_SESSION:
            self.restore()

        if self._state is not SessionState.REFRESHING and self._session is not None:
            try:
                self._token_clock.remaining(self._session.access_token)
                return self._session.access_token
            except ClientError:
                logger.info("Access token expired; refreshing")

        outcome = await self.refresh()
        if outcome.success:
            return outcome.session.access_token
        return None

    async def poll(self) -> Optional[timedelta]:
        """
        Expiry check for an external scheduler.

        Triggers at most one refresh per detected expiry and reports the
        remaining lifetime afterwards (None when logged out).
        """
        token = await self.ensure_valid()
        if token is None:
            return None
        return self.remaining()

    async def refresh(self) -> RefreshOutcome:
        """
        Single-flight refresh.

        Callers arriving while a refresh is running await the same task.
        """
        if self._state is SessionState.LOGGED_OUT:
            return RefreshOutcome.failed("Session is logged out")
        if self._inflight is None or self._inflight_epoch != self._epoch:
            self._inflight_epoch = self._epoch
            self._inflight = asyncio.ensure_future(self._run_refresh(self._epoch))
        # shield: a cancelled waiter must not cancel the shared refresh
        return await asyncio.shield(self._inflight)

    async def logout(self, reason: str = "user request") -> None:
        """
        Clear all session state, then notify the logout collaborator.

        Idempotent: a second call while LOGGED_OUT does nothing.
        """
        if self._state is SessionState.LOGGED_OUT:
            return
        self._epoch += 1
        self._state = SessionState.LOGGED_OUT
        self._session = None
        try:
            self._store.clear()
        except OSError:
            logger.exception("Could not clear stored credentials")
        self._record(AuditEventType.LOGGED_OUT, reason)
        logger.info("Logged out: %s", reason)

        if self._on_logout is None:
            return
        try:
            await self._on_logout()
        except Exception:
            # State is already cleared; a failing hook cannot undo logout.
            logger.exception("Logout collaborator failed")

    # =========================================================================
    # REFRESH PROTOCOL
    # =========================================================================

    async def _run_refresh(self, epoch: int) -> RefreshOutcome:
        if epoch != self._epoch:
            return RefreshOutcome.failed("Session changed before refresh started")
        self._state = SessionState.REFRESHING
        self._record(AuditEventType.REFRESH_STARTED)
        try:
            try:
                refresh_token = self._current_refresh_token()
            except OSError as e:
                return await self._fail(epoch, f"Cannot read stored credentials: {e}")
            if not refresh_token:
                return await self._fail(epoch, "No refresh token stored")

            try:
                refreshed = await self._refresh_session(refresh_token)
                expires_at_ms = self._token_clock.expires_at_ms(refreshed.access_token)
                self._token_clock.remaining(refreshed.access_token)
            except ClientError as e:
                return await self._fail(epoch, e.message)
            except Exception as e:
                logger.exception("Refresh collaborator raised unexpectedly")
                return await self._fail(epoch, f"Refresh error: {e}")

            if epoch != self._epoch:
                logger.info("Discarding refresh result from a superseded session")
                return RefreshOutcome.failed("Session changed during refresh")

            session = Session(
                access_token=refreshed.access_token,
                refresh_token=refreshed.refresh_token or refresh_token,
                expires_at_ms=expires_at_ms
            )
            try:
                self._store.write(session.access_token, session.refresh_token)
            except OSError as e:
                return await self._fail(epoch, f"Cannot persist credentials: {e}")
            self._session = session
            self._state = SessionState.VALID
            self._record(AuditEventType.REFRESH_SUCCEEDED)
            logger.info("Token refreshed; expires at %d", expires_at_ms)
            return RefreshOutcome.succeeded(session)
        finally:
            if epoch == self._inflight_epoch:
                self._inflight = None
            if self._state is SessionState.REFRESHING and epoch == self._epoch:
                # Only reachable when the refresh task itself was cancelled.
                self._state = (
                    SessionState.VALID if self._session is not None
                    else SessionState.NO_SESSION
                )

    async def _fail(self, epoch: int, message: str) -> RefreshOutcome:
        if epoch == self._epoch:
            self._record(AuditEventType.REFRESH_FAILED, message)
            logger.warning("Token refresh failed: %s", message)
            await self.logout(reason=f"refresh failed: {message}")
        return RefreshOutcome.failed(message)

    def _current_refresh_token(self) -> Optional[str]:
        if self._session is not None:
            return self._session.refresh_token
        return self._store.read_refresh_token()

    def _record(self, event_type: AuditEventType, detail: str = "") -> None:
        self._audit.record(event_type, self._token_clock.clock.now_ms(), detail)
