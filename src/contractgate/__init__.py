"""
ContractGate - OpenAPI contract enforcement and mocking middleware

Validates requests against an OpenAPI contract, dispatches them to
controllers or generated mocks, and validates responses before they are
sent.
"""

__version__ = '1.0.0'

from .config import GateConfig
from .exchange import Exchange, Flow
from .engine import EngineProvider, OpenAPIEngine, validate_examples
from .middleware import MiddlewareOptions, RequestEnforcer, RouteDispatcher, RouterOptions
from .mock import CookieStore, MockMode
from .server import ContractGate, create_gate

__all__ = [
    '__version__',
    'GateConfig',
    'Exchange',
    'Flow',
    'EngineProvider',
    'OpenAPIEngine',
    'validate_examples',
    'MiddlewareOptions',
    'RequestEnforcer',
    'RouteDispatcher',
    'RouterOptions',
    'CookieStore',
    'MockMode',
    'ContractGate',
    'create_gate',
]
