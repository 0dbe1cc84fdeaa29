"""
Session identity collaborator.

The engine never authenticates anyone. It only asks whoever owns the
session which user, if any, is signed in.
"""

from typing import Protocol


class SessionProvider(Protocol):
    """Anything that can report the signed-in user."""

    def current_user_id(self) -> str | None: ...


class StaticSession:
    """
    A session holding one user id in memory.

    Used by the HTTP layer (one per request, from a header) and by tests.
    """

    def __init__(self, user_id: str | None = None) -> None:
        self._user_id = user_id or None

    def current_user_id(self) -> str | None:
        return self._user_id

    def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user_id cannot be empty")
        self._user_id = user_id

    def sign_out(self) -> None:
        self._user_id = None
