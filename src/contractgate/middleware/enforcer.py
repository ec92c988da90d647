"""
ContractGate Request Enforcer

First stage of the pipeline: matches each exchange against the contract,
attaches the deserialized request and the validated send path, and decides
between mock and real dispatch.

Features:
- Base path aware relative path computation
- Undeclared query parameter policy (mock trigger key always allowed)
- Exchange maps enriched without overwriting native values
- Explicit mock triggers with an opt-out for operations with implemented mocks
"""

import logging
import random
import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..common.utils import has_body, merge_new_properties
from ..engine.contract import EngineProvider, EngineResult
from ..exchange import Exchange, Flow
from ..mock.resolver import MockMode, MockResolver, get_mock_mode
from .options import MiddlewareOptions
from .sender import EnforcedResponse, handle_request_error

logger = logging.getLogger("contractgate.enforcer")


class ActiveRequestRegistry:
    """
    Base path each in-flight exchange was enforced under.

    Entries are held weakly and disappear with their exchange.
    """

    def __init__(self):
        self._entries: 'weakref.WeakKeyDictionary[Exchange, str]' = weakref.WeakKeyDictionary()

    def register(self, exchange: Exchange, base_path: str) -> None:
        self._entries[exchange] = base_path

    def status(self, exchange: Exchange) -> Tuple[bool, bool]:
        """Return (initialized, base_path_match) for an exchange."""
        base_path = self._entries.get(exchange)
        if base_path is None:
            return False, True
        return True, exchange.original_url.startswith(base_path)


class BoundMockStore:
    """Mock store accessor bound to one exchange."""

    def __init__(self, store, exchange: Exchange):
        self.store = store
        self.exchange = exchange

    async def get(self, key: str) -> Any:
        return await self.store.get(self.exchange, key)

    async def set(self, key: str, value: Any) -> None:
        await self.store.set(self.exchange, key, value)


@dataclass
class EnforcedRequest:
    """
    Deserialized request data for a matched operation.

    Attributes:
        engine: Contract engine the request was matched with
        operation: Matched operation
        params: Path parameters
        response: Response builder bound to the operation
        mock_mode: Set only when a mock was requested
        mock_store: Store accessor, set only when a mock was requested
    """

    engine: Any
    operation: Any
    options: MiddlewareOptions
    exchange: Exchange = field(repr=False)
    headers: Dict[str, Any] = field(default_factory=dict)
    cookies: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    body: Any = None
    response: Any = None
    mock_mode: Optional[MockMode] = None
    mock_store: Optional[BoundMockStore] = None

    def accepts(self, code: Union[int, str]) -> EngineResult:
        """Content types of a response code acceptable to the client."""
        return self.operation.negotiate(code, self.exchange.headers.get('accept') or '*/*')


class RequestEnforcer:
    """
    Pipeline stage enforcing the contract on each inbound exchange.

    Example:
        enforcer = RequestEnforcer('openapi.yaml', {'allow_other_query_parameters': ['trace']})
        flow = await enforcer(exchange)
    """

    def __init__(self, engine: Any, options: Union[MiddlewareOptions, Mapping[str, Any], None] = None,
                 registry: Optional[ActiveRequestRegistry] = None,
                 rng: Optional[random.Random] = None):
        """
        Initialize the enforcer.

        Args:
            engine: EngineProvider, or anything an EngineProvider accepts
            options: MiddlewareOptions or a mapping of option overrides
            registry: Registry shared with the dispatcher and fallback mock
            rng: Random generator used to pick among named examples

        Raises:
            ConfigurationError: If an option is invalid
        """
        self.provider = engine if isinstance(engine, EngineProvider) else EngineProvider(engine)
        self.options = options if isinstance(options, MiddlewareOptions) else MiddlewareOptions.from_options(options)
        self.registry = registry or ActiveRequestRegistry()
        self.resolver = MockResolver(self.options, rng)

    async def __call__(self, exchange: Exchange) -> Flow:
        engine = await self.provider.get()
        options = self.options

        base_url = options.base_url if options.base_url is not None else exchange.base_url
        self.registry.register(exchange, base_url)

        relative_path = '/' + exchange.original_url[len(base_url):]
        if relative_path.startswith('//'):
            relative_path = relative_path[1:]

        descriptor: Dict[str, Any] = {
            'headers': exchange.headers,
            'method': exchange.method,
            'path': relative_path
        }
        forward_body = has_body(exchange.headers, exchange.body_present)
        if forward_body:
            descriptor['body'] = exchange.body

        match, error, _ = engine.match_request(descriptor, {'allow_other_query_parameters': options.allowed_query_parameters})
        if error is not None:
            logger.debug(f"{exchange.method} {relative_path} rejected ({error.status_code})")
            return handle_request_error(exchange, error, options)

        merge_new_properties(match.cookie, exchange.cookies)
        merge_new_properties(match.headers, exchange.headers)
        merge_new_properties(match.query, exchange.query)

        request = EnforcedRequest(
            engine=engine,
            operation=match.operation,
            options=options,
            exchange=exchange,
            headers=match.headers,
            cookies=match.cookie,
            params=match.path,
            query=match.query,
            body=match.body if forward_body else None,
            response=match.response
        )
        exchange.enforcer = request
        exchange.res_enforcer = EnforcedResponse(exchange, options)
        logger.debug(f"{exchange.method} {relative_path} matched {match.operation.op_id}")

        mock = get_mock_mode(exchange, match.operation, options)
        if mock is None:
            return Flow.CONTINUE

        request.mock_mode = mock
        request.mock_store = BoundMockStore(options.mock_store, exchange)

        if match.operation.extension(options.x_mock_implemented) and mock.source in ('implemented', ''):
            logger.debug(f"{match.operation.op_id} implements its own mock")
            return Flow.CONTINUE
        return await self.resolver.resolve(exchange, mock)
