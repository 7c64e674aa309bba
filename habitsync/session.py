from __future__ import annotations
from typing import Optional, Protocol
from uuid import UUID

from loguru import logger

from .errors import SessionLost


class SessionProvider(Protocol):
    def current_owner_id(self) -> Optional[UUID]: ...

    def sign_out(self) -> None: ...


class LocalSession:
    """In-process identity holder; sign-in/out is driven by the auth layer."""

    def __init__(self, owner_id: Optional[UUID] = None):
        self._owner_id = owner_id

    def current_owner_id(self) -> Optional[UUID]:
        return self._owner_id

    def sign_in(self, owner_id: UUID) -> None:
        self._owner_id = owner_id
        logger.info("Session signed in for owner {}", owner_id)

    def sign_out(self) -> None:
        logger.info("Session signed out for owner {}", self._owner_id)
        self._owner_id = None


def require_owner(session: SessionProvider, expected: Optional[UUID] = None) -> UUID:
    """
    Resolve the current owner, raising SessionLost when there is none
    or when it is no longer the owner an operation started with.
    """
    owner_id = session.current_owner_id()
    if owner_id is None:
        raise SessionLost("No signed-in owner")
    if expected is not None and owner_id != expected:
        raise SessionLost(f"Session owner changed from {expected} to {owner_id}")
    return owner_id
