"""
ContractGate Middleware

Pipeline stages: request enforcement, response sending and controller
dispatch.
"""

from .options import MiddlewareOptions, RouterOptions
from .sender import EnforcedResponse, handle_request_error
from .enforcer import ActiveRequestRegistry, EnforcedRequest, RequestEnforcer
from .dispatcher import RouteDispatcher

__all__ = [
    'MiddlewareOptions',
    'RouterOptions',
    'EnforcedResponse',
    'handle_request_error',
    'ActiveRequestRegistry',
    'EnforcedRequest',
    'RequestEnforcer',
    'RouteDispatcher',
]
