"""Abstract base class for authentication providers."""
from abc import ABC, abstractmethod
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session as DBSession

from app.models.user import User


class AuthProvider(ABC):
    """
    Abstract authentication provider interface.

    Route code only depends on this interface, so the token lookup can be
    replaced by an external identity provider without touching the API.
    """

    @abstractmethod
    async def get_user_from_request(self, db: DBSession, request: Request) -> Optional[User]:
        """
        Extract and validate user from request (bearer token or session cookie).

        Returns User if authenticated, None otherwise.
        """
        pass

    @abstractmethod
    def create_session(self, db: DBSession, user: User) -> str:
        """
        Create a new session for the user.

        Returns the session token.
        """
        pass

    @abstractmethod
    def revoke_session(self, db: DBSession, token: str) -> bool:
        """
        Revoke/invalidate a session by its token.

        Returns True if session was revoked, False if not found.
        """
        pass
