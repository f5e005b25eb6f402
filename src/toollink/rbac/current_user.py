"""
Current-user providers

The access guard learns who is signed in through a CurrentUserProvider. A
provider returns None when there is no session and may raise for transport
or decoding failures; the guard turns any such error into a denial.

Providers:
- StaticCurrentUserProvider: a fixed identity (tests, CLI)
- HttpCurrentUserProvider: asks the backend's ``/auth/me`` endpoint
- TokenCurrentUserProvider: reads the user from access-token claims
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import requests

from toollink.rbac.jwt_parser import decode_token, extract_user_claims
from toollink.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class User:
    """The fields of an authenticated user the RBAC layer relies on."""

    role: str
    id: Optional[Any] = None
    email: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        """
        Build a User from a backend payload.

        Raises:
            ValueError: If the payload has no role
        """
        role = data.get('role')
        if not role:
            raise ValueError("User payload has no role")
        user_id = data.get('id', data.get('_id'))
        return cls(
            role=str(role).strip().lower(),
            id=user_id,
            email=data.get('email'),
            name=data.get('name'),
        )


class CurrentUserProvider(ABC):
    """Source of the signed-in user."""

    @abstractmethod
    async def get_current_user(self) -> Optional[User]:
        """Return the current user, or None when nobody is signed in."""
        ...


class StaticCurrentUserProvider(CurrentUserProvider):
    """Always reports the same user (or nobody)."""

    def __init__(self, user: Optional[User] = None):
        self.user = user

    async def get_current_user(self) -> Optional[User]:
        return self.user


class HttpCurrentUserProvider(CurrentUserProvider):
    """
    Fetch the current user from the backend.

    Sends ``GET {base_url}{me_endpoint}`` with the bearer token and expects
    ``{"success": true, "user": {...}}``. The blocking request runs in a
    worker thread so the event loop is not held up.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str],
        me_endpoint: str = '/auth/me',
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.me_endpoint = me_endpoint if me_endpoint.startswith('/') else f"/{me_endpoint}"
        self.timeout = timeout
        # Sessions passed in belong to the caller and are left open
        self._owns_session = session is None
        self._session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.me_endpoint}"

    def close(self) -> None:
        """Close the HTTP session if this provider created it."""
        if self._owns_session:
            self._session.close()

    async def __aenter__(self) -> 'HttpCurrentUserProvider':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def get_current_user(self) -> Optional[User]:
        if not self.token:
            return None
        return await asyncio.to_thread(self._fetch_user)

    def _fetch_user(self) -> Optional[User]:
        response = self._session.get(
            self.url,
            headers={
                'Authorization': f"Bearer {self.token}",
                'Content-Type': 'application/json',
            },
            timeout=self.timeout,
        )

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"Non-JSON response from {self.url} (status {response.status_code})")
            return None

        if response.ok and isinstance(data, dict) and data.get('success') and data.get('user'):
            return User.from_dict(data['user'])

        logger.info(f"No current user from {self.url} (status {response.status_code})")
        return None


class TokenCurrentUserProvider(CurrentUserProvider):
    """
    Read the current user from an access token's claims.

    Without ``secret`` the signature is not checked; the backend does that
    on every API call.
    """

    def __init__(
        self,
        token: Optional[str],
        secret: Optional[str] = None,
        algorithms: Optional[Iterable[str]] = None,
    ):
        self.token = token
        self.secret = secret
        self.algorithms = list(algorithms) if algorithms else None

    async def get_current_user(self) -> Optional[User]:
        if not self.token:
            return None
        claims = decode_token(self.token, secret=self.secret, algorithms=self.algorithms)
        user_claims = extract_user_claims(claims)
        if user_claims is None:
            return None
        return User.from_dict(user_claims)


def http_provider_from_config(config: Dict[str, Any], token: Optional[str]) -> HttpCurrentUserProvider:
    """Build an HttpCurrentUserProvider from the ``auth`` section of rbac.yaml."""
    auth = config.get('auth') or {}
    return HttpCurrentUserProvider(
        base_url=auth.get('base_url', 'http://localhost:5000/api'),
        token=token,
        me_endpoint=auth.get('me_endpoint', '/auth/me'),
        timeout=float(auth.get('timeout', 10)),
    )
