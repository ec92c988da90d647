"""
ContractGate Route Dispatcher

Maps enforced operations to controller handlers and invokes them.

Controllers come from a directory (`<dir>/<controller key>.py` exposing a
module-level `controller` factory) or from a mapping of controller key to
factory or ready controller. Factories receive the configured dependencies.
A controller object is a mapping or any object whose attributes are the
operation handlers.
"""

import asyncio
import importlib.util
import inspect
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Set, Tuple, Union

from ..common.errors import ErrorCode
from ..common.events import EventBus
from ..exchange import Exchange, Flow
from .options import RouterOptions

logger = logging.getLogger("contractgate.router")

ROUTE_CONTROLLER = 'CONTRACTGATE_ROUTE_CONTROLLER'
ROUTE_FACTORY = 'CONTRACTGATE_ROUTE_FACTORY'
ROUTE_NO_OP = 'CONTRACTGATE_ROUTE_NO_OP'
ROUTE_NO_MAPPING = 'CONTRACTGATE_ROUTE_NO_MAPPING'
NOT_INITIALIZED = 'CONTRACTGATE_NOT_INITIALIZED'


class RouteDispatcher:
    """
    Pipeline stage that calls the controller handler of the matched operation.

    Handlers are resolved once per operation id and cached; unmapped and
    broken routes resolve to no handler and the pipeline continues.

    Example:
        dispatcher = RouteDispatcher('controllers', {'dependencies': {'people': [db]}})
        flow = await dispatcher(exchange)
    """

    def __init__(self, controllers: Union[str, Path, Mapping[str, Any]],
                 options: Union[RouterOptions, Mapping[str, Any], None] = None,
                 events: Optional[EventBus] = None, registry=None):
        """
        Initialize the dispatcher.

        Args:
            controllers: Controller directory, or mapping of controller key to
                factory callable or controller object
            options: RouterOptions or a mapping of option overrides
            events: EventBus receiving route problems
            registry: ActiveRequestRegistry of the request enforcer

        Raises:
            ConfigurationError: If an option is invalid
            TypeError: If controllers is neither a directory nor a mapping
        """
        if isinstance(controllers, (str, Path)):
            self.directory: Optional[Path] = Path(controllers).resolve()
            self.controllers: Mapping[str, Any] = {}
        elif isinstance(controllers, Mapping):
            self.directory = None
            self.controllers = controllers
        else:
            raise TypeError(f"Expected a controller directory or mapping. Received: {controllers!r}")

        self.options = options if isinstance(options, RouterOptions) else RouterOptions.from_options(options)
        self.events = events or EventBus(logger)
        self.registry = registry

        self._controllers: Dict[str, 'asyncio.Future'] = {}
        self._handlers: Dict[str, Optional[Callable]] = {}
        self._missing_operations: Set[Tuple[str, str]] = set()

    def _keys(self, operation) -> Tuple[str, str]:
        controller_key = operation.extension(self.options.x_controller) or ''
        operation_key = operation.operation_id or operation.definition.get(self.options.x_operation) or ''
        return str(controller_key), str(operation_key)

    def _controller_path(self, controller_key: str) -> Optional[Path]:
        if self.directory is None:
            return None
        return self.directory / f"{controller_key}.py"

    async def get_handler(self, operation) -> Optional[Callable]:
        """
        Resolve the handler for an operation, or None when it has none.

        The result is cached per operation id, so repeated lookups return the
        same handler without loading the controller again.
        """
        if operation.op_id in self._handlers:
            return self._handlers[operation.op_id]

        controller_key, operation_key = self._keys(operation)
        handler = None
        if not controller_key and not operation_key:
            logger.debug(f"{operation.op_id} is not mapped to a controller")
        elif not controller_key:
            self.events.emit('warning', ErrorCode(
                f'Operation at "{operation.op_id}" not mapped because no {self.options.x_controller} has been defined.',
                ROUTE_NO_MAPPING))
        elif not operation_key:
            self.events.emit('warning', ErrorCode(
                f'Operation at "{operation.op_id}" not mapped because no operationId or {self.options.x_operation} has been defined.',
                ROUTE_NO_MAPPING))
        else:
            controller = await self._load_controller(controller_key)
            if controller is not None:
                handler = self._find_operation(controller, controller_key, operation_key)

        self._handlers[operation.op_id] = handler
        return handler

    async def _load_controller(self, controller_key: str) -> Any:
        path = self._controller_path(controller_key)
        cache_key = str(path) if path else controller_key
        future = self._controllers.get(cache_key)
        if future is None:
            future = asyncio.ensure_future(self._build_controller(controller_key, path))
            self._controllers[cache_key] = future
        return await future

    async def _build_controller(self, controller_key: str, path: Optional[Path]) -> Any:
        if path is not None:
            factory = self._import_factory(path)
        elif self.controllers.get(controller_key) is not None:
            factory = self.controllers[controller_key]
        else:
            self.events.emit('error', ErrorCode(f"Controller not defined: {controller_key}", ROUTE_CONTROLLER))
            return None

        if factory is None:
            return None
        if not callable(factory):
            # already built controller object
            return factory

        dependencies = self.options.dependencies_for(controller_key)
        try:
            controller = factory(*dependencies)
            if inspect.isawaitable(controller):
                controller = await controller
        except Exception as e:
            self.events.emit('error', ErrorCode(
                f"Controller factory failed for {controller_key}: {e}", ROUTE_FACTORY))
            return None

        logger.debug(f"Controller {controller_key} loaded with {len(dependencies)} dependencies")
        return controller

    def _import_factory(self, path: Path) -> Any:
        if not path.exists():
            self.events.emit('error', ErrorCode(f"Unable to load controller: {path}", ROUTE_CONTROLLER))
            return None

        spec = importlib.util.spec_from_file_location(f"contractgate_controllers.{path.stem}", path)
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            self.events.emit('error', ErrorCode(f"Unable to load controller: {path}: {e}", ROUTE_CONTROLLER))
            return None

        factory = getattr(module, 'controller', None)
        if not callable(factory):
            self.events.emit('error', ErrorCode(
                f"Controller file must define a callable named controller: {path}", ROUTE_CONTROLLER))
            return None
        return factory

    def _find_operation(self, controller: Any, controller_key: str, operation_key: str) -> Optional[Callable]:
        if isinstance(controller, Mapping):
            handler = controller.get(operation_key)
        else:
            handler = getattr(controller, operation_key, None)

        if callable(handler):
            return handler

        if (controller_key, operation_key) not in self._missing_operations:
            self._missing_operations.add((controller_key, operation_key))
            self.events.emit('error', ErrorCode(
                f"Controller {controller_key} missing operation: {operation_key}", ROUTE_NO_OP))
        return None

    async def preload(self, engine) -> None:
        """
        Resolve the handler of every operation ahead of the first request.

        Operations whose controller file does not exist are left for the
        first request to report.
        """
        for operation in engine.operations.values():
            controller_key, operation_key = self._keys(operation)
            path = self._controller_path(controller_key) if controller_key else None
            if path is not None and not path.exists():
                continue
            await self.get_handler(operation)
        logger.debug(f"Preloaded {len(self._handlers)} operations")

    async def __call__(self, exchange: Exchange) -> Flow:
        if self.registry is not None:
            initialized, base_path_match = self.registry.status(exchange)
        else:
            initialized, base_path_match = exchange.enforcer is not None, True

        if not base_path_match:
            logger.debug('Base path does not match registered base path')
            return Flow.CONTINUE
        if not initialized:
            self.events.emit('error', ErrorCode(
                'Request enforcer not initialized. Could not map OpenAPI operations to routes.', NOT_INITIALIZED))
            return Flow.CONTINUE
        if exchange.finished:
            return Flow.DONE
        if exchange.enforcer is None:
            return Flow.CONTINUE

        handler = await self.get_handler(exchange.enforcer.operation)
        if handler is None:
            return Flow.CONTINUE

        result = handler(exchange)
        if inspect.isawaitable(result):
            result = await result
        if exchange.finished:
            return Flow.DONE
        return result if isinstance(result, Flow) else Flow.CONTINUE
