import logging
from typing import Callable, FrozenSet, List, Optional

from ..exceptions import AuthorizationError
from ..permissions import Capability
from ..schemas.user_schema import UserRead
from .api import ExamApiClient

logger = logging.getLogger(__name__)

TokenListener = Callable[[Optional[str]], None]


class IdentityContext:
    """
    Client side authentication state for one app session.

    Created explicitly and passed to whatever needs it. start() signs in (or
    adopts an existing token) and resolves the capability set once;
    refresh_token() is fed by the identity provider whenever it rotates the
    token and notifies subscribers; close() drops the token and every
    subscription on logout or unmount.
    """

    def __init__(self, client: ExamApiClient):
        self.client = client
        self.user: Optional[UserRead] = None
        self.capabilities: FrozenSet[Capability] = frozenset()
        self._listeners: List[TokenListener] = []

    @property
    def started(self) -> bool:
        return self.user is not None

    async def start(self, email: Optional[str] = None, password: Optional[str] = None, token: Optional[str] = None):
        if token is not None:
            self.client.set_token(token)
            session = await self.client.get_session()
        elif email is not None and password is not None:
            session = await self.client.login(email, password)
            self.client.set_token(session.token)
        else:
            raise ValueError("start() needs either a token or email and password")
        self.user = session.user
        self.capabilities = frozenset(session.capabilities)
        logger.info("Session started for %s (%s)", self.user.email, self.user.role.value)
        self._notify(self.client.token)
        return self

    def subscribe(self, listener: TokenListener) -> Callable[[], None]:
        """Register a token listener. Returns the matching unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def refresh_token(self, token: str):
        if not self.started:
            raise AuthorizationError("Session has not been started")
        self.client.set_token(token)
        self._notify(token)

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability):
        if not self.can(capability):
            raise AuthorizationError(f"Missing capability: {capability.value}")

    def close(self):
        self._notify(None)
        self._listeners.clear()
        self.client.set_token(None)
        self.user = None
        self.capabilities = frozenset()

    def _notify(self, token: Optional[str]):
        for listener in list(self._listeners):
            listener(token)
