"""
ContractGate Server

FastAPI application enforcing an OpenAPI contract in front of controller
handlers.

Features:
- Request validation against the contract (400 / 404 / 405 answers)
- Controller dispatch by x-controller and operationId
- Explicit and fallback response mocking
- Response validation and serialization
- Pluggable error handler for errors the pipeline does not answer
"""

import inspect
import logging
import random
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, List, Optional, Union

import uvicorn
from fastapi import FastAPI, Request

from . import __version__
from .common.events import EventBus
from .common.utils import DIAGNOSTIC_HEADER
from .config import GateConfig
from .engine.contract import EngineProvider
from .exchange import Exchange, Flow
from .middleware.dispatcher import RouteDispatcher
from .middleware.enforcer import ActiveRequestRegistry, RequestEnforcer
from .mock.resolver import mock_fallback

logger = logging.getLogger("contractgate.server")

HTTP_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS", "TRACE"]

Stage = Callable[[Exchange], Awaitable[Flow]]
ErrorHandler = Callable[[Exchange, Exception], Any]


def default_error_handler(exchange: Exchange, error: Exception) -> None:
    """
    Answer an error no stage handled.

    Codes below 500 are answered with the error text; anything else is
    logged and answered with a generic message.
    """
    status_code = getattr(error, 'status_code', None) or 500
    if exchange.finished:
        logger.error(f"Error after response was sent for {exchange.method} {exchange.original_url}: {error}")
        return

    if status_code >= 500:
        logger.error(f"{exchange.method} {exchange.original_url} failed: {error}", exc_info=error)
        message = 'Internal server error'
    else:
        message = str(error)

    exchange.set_header(DIAGNOSTIC_HEADER, 'error')
    exchange.send_text(status_code, message)


class ContractGate:
    """
    Contract enforcing server.

    Stages run in order: request enforcer, user stages, route dispatcher
    (when controllers are configured), fallback mock (when enabled). A
    request that no stage answers gets its deferred request error, or 404.

    Example:
        # Mock everything the contract declares
        gate = ContractGate('openapi.yaml', GateConfig(mock_fallback=True))
        gate.start(port=8080)

        # Real controllers with dependency injection
        config = GateConfig(controllers='controllers', router={'dependencies': [db]})
        app = ContractGate('openapi.yaml', config).get_app()
    """

    def __init__(
        self,
        spec: Any = None,
        config: Optional[GateConfig] = None,
        stages: Optional[List[Stage]] = None,
        error_handler: Optional[ErrorHandler] = None,
        events: Optional[EventBus] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize the server.

        Args:
            spec: Contract source (engine, document dict, file path or
                callable); defaults to config.spec
            config: Optional GateConfig
            stages: Extra stages run between the enforcer and the dispatcher
            error_handler: Called with (exchange, error) for raised errors
            events: EventBus receiving route and initialization problems
            rng: Random generator for mock values (seed it in tests)

        Raises:
            ConfigurationError: If enforcer or router options are invalid
            ValueError: If no contract source is given
        """
        self.config = config or GateConfig()
        spec = spec if spec is not None else self.config.spec
        if spec is None:
            raise ValueError("An OpenAPI document is required (spec argument or config.spec)")

        self.logger = logging.getLogger("contractgate")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper()))

        self.base_url = self.config.base_url.rstrip('/')
        self.events = events or EventBus(logger)
        self.error_handler = error_handler or default_error_handler
        self.provider = EngineProvider(spec, uses_raw_examples=self.config.uses_raw_examples, rng=rng)
        self.registry = ActiveRequestRegistry()

        enforcer_options = dict(self.config.enforcer)
        if self.base_url:
            enforcer_options.setdefault('base_url', self.base_url)
        self.enforcer = RequestEnforcer(self.provider, enforcer_options, self.registry, rng)

        self.dispatcher: Optional[RouteDispatcher] = None
        if self.config.controllers is not None:
            self.dispatcher = RouteDispatcher(self.config.controllers, self.config.router, self.events, self.registry)

        self.stages: List[Stage] = [self.enforcer, *(stages or [])]
        if self.dispatcher is not None:
            self.stages.append(self.dispatcher)
        if self.config.mock_fallback:
            self.stages.append(mock_fallback(self.enforcer.options, self.events, self.registry, rng))

        self.app = self._create_app()

    @classmethod
    def from_config(cls, config: GateConfig, **kwargs) -> 'ContractGate':
        return cls(config.spec, config, **kwargs)

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        engine = await self.provider.get()
        self.logger.info(f"Loaded contract with {len(engine.operations)} operations")
        if self.dispatcher is not None and not self.dispatcher.options.lazy_load:
            await self.dispatcher.preload(engine)
        yield

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with the catch-all route."""
        app = FastAPI(
            title="ContractGate",
            description="OpenAPI contract enforcement and mocking",
            version=__version__,
            lifespan=self._lifespan
        )

        @app.api_route(f"{self.base_url}/{{path:path}}", methods=HTTP_METHODS)
        async def enforce_request(request: Request, path: str):
            """Run every request through the pipeline."""
            exchange = await Exchange.from_request(request, base_url=self.base_url)
            await self.handle(exchange)
            return exchange.to_response()

        return app

    async def handle(self, exchange: Exchange) -> Exchange:
        """
        Run an exchange through the pipeline.

        Args:
            exchange: The inbound exchange

        Returns:
            The same exchange, with its response side filled in
        """
        logger.debug(f"Incoming: {exchange.method} {exchange.original_url}")
        try:
            for stage in self.stages:
                flow = await stage(exchange)
                if flow is Flow.DONE or exchange.finished:
                    break

            if not exchange.finished:
                if exchange.deferred_error is not None:
                    raise exchange.deferred_error
                exchange.set_header(DIAGNOSTIC_HEADER, 'not found')
                exchange.send_text(404, 'Not found')
        except Exception as e:
            result = self.error_handler(exchange, e)
            if inspect.isawaitable(result):
                await result

        if not exchange.finished:
            # error handler chose not to answer
            exchange.send_text(500, 'Internal server error')
        logger.debug(f"Served: {exchange.method} {exchange.original_url} -> {exchange.status_code}")
        return exchange

    def start(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        access_log: bool = True
    ):
        """
        Start the server.

        Args:
            host: Host to bind to (overrides config)
            port: Port to bind to (overrides config)
            access_log: Enable access logging
        """
        actual_host = host or self.config.host
        actual_port = port or self.config.port

        print("ContractGate starting...")
        print(f"   Host: {actual_host}:{actual_port}")
        print(f"   Base URL: {self.base_url or '/'}")
        print(f"   Controllers: {self.config.controllers or 'none'}")
        print(f"   Fallback mocking: {'on' if self.config.mock_fallback else 'off'}")

        uvicorn.run(
            self.app,
            host=actual_host,
            port=actual_port,
            log_level=self.config.log_level,
            access_log=access_log
        )

    def get_app(self) -> FastAPI:
        """
        Get the FastAPI app instance for testing or custom deployment.

        Returns:
            FastAPI application instance
        """
        return self.app


def create_gate(
    spec: Union[str, dict],
    controllers: Optional[Union[str, dict]] = None,
    base_url: str = "",
    host: str = "127.0.0.1",
    port: int = 8080,
    mock_fallback: bool = False,
    **enforcer_options
) -> ContractGate:
    """
    Convenience function to create and configure a ContractGate.

    Args:
        spec: OpenAPI document path or parsed document
        controllers: Controller directory or key -> factory mapping
        base_url: Mount path of the contract
        host: Host to bind to
        port: Port to bind to
        mock_fallback: Mock requests no controller answered
        **enforcer_options: MiddlewareOptions overrides

    Returns:
        Configured ContractGate instance
    """
    config = GateConfig(
        controllers=controllers,
        base_url=base_url,
        enforcer=enforcer_options,
        mock_fallback=mock_fallback,
        host=host,
        port=port
    )
    return ContractGate(spec, config)
