"""Who is using the cart: the identity port and an in-process session."""
from typing import Optional, Protocol


class IdentityProvider(Protocol):
    def get_current_user_id(self) -> Optional[str]: ...

    def get_token(self) -> Optional[str]: ...


class SessionIdentity:
    """Holds the signed-in user id and bearer token for this process."""

    def __init__(self, user_id: Optional[str] = None, token: Optional[str] = None):
        self._user_id = user_id
        self._token = token

    def get_current_user_id(self) -> Optional[str]:
        return self._user_id

    def get_token(self) -> Optional[str]:
        return self._token

    def login(self, user_id: str, token: str) -> None:
        self._user_id = user_id
        self._token = token

    def logout(self) -> None:
        self._user_id = None
        self._token = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self._user_id)
