"""
Operation State
===============

One tagged variant per asynchronous operation:

    Idle | InFlight | Succeeded(value) | Failed(error)

Replaces independent loading/error/result flags, so "loading and errored
at the same time" cannot be represented.

STALE-RESPONSE GUARD:
=====================
Each begin() takes a fresh, monotonically increasing request id.
succeed()/fail() with any other id are dropped. reset() (view closed)
invalidates every id handed out so far.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union
import logging

from ..contracts.base import Error


logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class InFlight:
    request_id: int


@dataclass(frozen=True)
class Succeeded(Generic[T]):
    value: T
    request_id: int


@dataclass(frozen=True)
class Failed:
    error: Error
    request_id: int

    @property
    def message(self) -> str:
        return self.error.message


OperationState = Union[Idle, InFlight, Succeeded, Failed]


class OperationSlot(Generic[T]):
    """
    Holder of a single operation's current state.
    """

    def __init__(self, name: str):
        self._name = name
        self._state: OperationState = Idle()
        self._last_request_id = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return isinstance(self._state, InFlight)

    @property
    def value(self) -> Optional[T]:
        if isinstance(self._state, Succeeded):
            return self._state.value
        return None

    def begin(self) -> int:
        """Start a new request; any older request becomes stale."""
        self._last_request_id += 1
        self._state = InFlight(request_id=self._last_request_id)
        return self._last_request_id

    def is_current(self, request_id: int) -> bool:
        return (
            isinstance(self._state, InFlight)
            and self._state.request_id == request_id
        )

    def succeed(self, request_id: int, value: T) -> bool:
        """Record success; returns False when the response is stale."""
        if not self.is_current(request_id):
            logger.debug("[%s] dropping stale success for request %d", self._name, request_id)
            return False
        self._state = Succeeded(value=value, request_id=request_id)
        return True

    def fail(self, request_id: int, error: Error) -> bool:
        """Record failure; returns False when the response is stale."""
        if not self.is_current(request_id):
            logger.debug("[%s] dropping stale failure for request %d", self._name, request_id)
            return False
        self._state = Failed(error=error, request_id=request_id)
        return True

    def reset(self) -> None:
        """Back to Idle; responses for earlier requests will be dropped."""
        self._last_request_id += 1
        self._state = Idle()
