"""
ContractGate Mock Store

Session-scoped key/value storage for mock controllers. The default store
identifies a client session by cookie and keeps data in memory.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger("contractgate.store")

DEFAULT_COOKIE_NAME = 'contractgate-store'


class MockStore(Protocol):
    """Interface every mock store implements."""

    async def get(self, exchange, key: str) -> Any: ...

    async def set(self, exchange, key: str, value: Any) -> None: ...


class CookieStore:
    """
    In-memory mock store keyed by a session cookie.

    A session id is minted from the current millisecond timestamp plus a
    counter that resets whenever the timestamp advances. The cookie is set
    on the response before any data is stored. Entries are never evicted.

    Example:
        store = CookieStore()
        await store.set(exchange, 'todos', [])
        todos = await store.get(exchange, 'todos') or []
    """

    def __init__(self, cookie_name: str = DEFAULT_COOKIE_NAME, clock: Callable[[], float] = time.time):
        self.cookie_name = cookie_name
        self.clock = clock
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self._last_timestamp = 0
        self._index = 0

    def _session_id(self, exchange) -> Optional[str]:
        return exchange.cookies.get(self.cookie_name) or exchange.response_cookies.get(self.cookie_name)

    def _create_session(self, exchange) -> str:
        now = int(self.clock() * 1000)
        if now != self._last_timestamp:
            self._index = 0
            self._last_timestamp = now
        session_id = f"{now}-{self._index}"
        self._index += 1

        exchange.set_cookie(self.cookie_name, session_id)
        self.sessions[session_id] = {}
        logger.debug(f"Store created for id: {session_id}")
        return session_id

    async def get(self, exchange, key: str) -> Any:
        session_id = self._session_id(exchange)
        if not session_id:
            self._create_session(exchange)
            return None

        data = self.sessions.get(session_id)
        if data is None:
            logger.debug(f"Nothing in store for id: {session_id}")
            return None
        if key not in data:
            logger.debug(f"No data for id {session_id} at key: {key}")
            return None
        return data[key]

    async def set(self, exchange, key: str, value: Any) -> None:
        session_id = self._session_id(exchange) or self._create_session(exchange)
        data = self.sessions.setdefault(session_id, {})
        data[key] = value
        logger.debug(f"Stored data for id {session_id} at key: {key}")


def validate_mock_store(value: Any) -> str:
    message = 'Expected an object with callable get and set methods'
    if value is None:
        return message
    if not callable(getattr(value, 'get', None)) or not callable(getattr(value, 'set', None)):
        return message
    return ''
