"""
Mock authentication provider for local development.
"""

from app.core.exceptions import AuthenticationError
from app.interfaces.auth_provider import IAuthProvider, User

MAX_USER_ID_LENGTH = 255


class MockAuthProvider(IAuthProvider):
    """Mock auth provider: the bearer token is the user ID."""

    def __init__(self, enabled: bool = False):
        """
        Initialize mock auth provider.

        Args:
            enabled: Whether requests must carry a token
        """
        self._enabled = enabled
        self._mock_users = {
            "dev_user": User(
                id="dev_user",
                email="dev@example.com",
                display_name="Developer",
            ),
        }

    async def verify_token(self, token: str) -> User:
        """Verify token - in mock mode, token is treated as user_id."""
        if len(token) > MAX_USER_ID_LENGTH:
            raise AuthenticationError("Token is too long to be a user ID")
        if token in self._mock_users:
            return self._mock_users[token]
        if "@" in token:
            return User(id=token, email=token, display_name=token)
        return User(id=token, email=f"{token}@example.com", display_name=token)

    def is_enabled(self) -> bool:
        return self._enabled
