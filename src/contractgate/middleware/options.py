"""
ContractGate Middleware Options

Validated, immutable option records for the request enforcer and the route
dispatcher.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..common.errors import ConfigurationError
from ..common.utils import (
    OptionTemplate,
    normalize_options,
    validator_boolean,
    validator_non_empty_string,
    validator_query_params,
    validator_string
)
from ..mock.store import CookieStore, validate_mock_store


def _validator_base_url(value: Any) -> str:
    return '' if value is None or isinstance(value, str) else 'Expected a string or None'


ENFORCER_TEMPLATE = OptionTemplate(
    defaults={
        'allow_other_query_parameters': False,
        'base_url': None,
        'handle_bad_request': True,
        'handle_bad_response': True,
        'handle_not_found': True,
        'handle_method_not_allowed': True,
        'mock_header': 'x-mock',
        'mock_query': 'x-mock',
        'x_mock_implemented': 'x-mock-implemented',
    },
    validators={
        'allow_other_query_parameters': validator_query_params,
        'base_url': _validator_base_url,
        'handle_bad_request': validator_boolean,
        'handle_bad_response': validator_boolean,
        'handle_not_found': validator_boolean,
        'handle_method_not_allowed': validator_boolean,
        'mock_header': validator_string,
        'mock_query': validator_string,
        'mock_store': validate_mock_store,
        'x_mock_implemented': validator_non_empty_string,
    }
)

DEPENDENCIES_MESSAGE = 'Expected a list of values or a mapping whose values are lists of values'


def _validator_dependencies(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ''
    if isinstance(value, Mapping) and all(isinstance(v, (list, tuple)) for v in value.values()):
        return ''
    return DEPENDENCIES_MESSAGE


def _reject_unknown(record_type, values: Dict[str, Any]) -> None:
    known = {f.name for f in fields(record_type)}
    for key in values:
        if key not in known:
            raise ConfigurationError(f"Unknown option: {key}")


ROUTER_TEMPLATE = OptionTemplate(
    defaults={
        'common_dependency_key': 'common',
        'dependencies': (),
        'lazy_load': False,
        'x_controller': 'x-controller',
        'x_operation': 'x-operation',
    },
    validators={
        'common_dependency_key': validator_non_empty_string,
        'dependencies': _validator_dependencies,
        'lazy_load': validator_boolean,
        'x_controller': validator_non_empty_string,
        'x_operation': validator_non_empty_string,
    }
)


@dataclass(frozen=True)
class MiddlewareOptions:
    """
    Request enforcer configuration.

    Attributes:
        allow_other_query_parameters: False rejects undeclared query
            parameters, True allows all, a list allows the named ones
        base_url: Overrides the exchange's own mount path when set
        handle_bad_request: Answer 4xx request errors automatically
        handle_bad_response: Answer invalid responses with a generic 500
        handle_not_found: Answer 404 automatically
        handle_method_not_allowed: Answer 405 automatically
        mock_header: Header that triggers explicit mocking ('' disables)
        mock_query: Query parameter that triggers explicit mocking ('' disables)
        mock_store: Session store handed to mock controllers
        x_mock_implemented: Extension marking operations with implemented mocks
    """

    allow_other_query_parameters: Union[bool, Tuple[str, ...]] = False
    base_url: Optional[str] = None
    handle_bad_request: bool = True
    handle_bad_response: bool = True
    handle_not_found: bool = True
    handle_method_not_allowed: bool = True
    mock_header: str = 'x-mock'
    mock_query: str = 'x-mock'
    mock_store: Any = None
    x_mock_implemented: str = 'x-mock-implemented'

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> 'MiddlewareOptions':
        """
        Normalize user options over the defaults.

        Raises:
            ConfigurationError: If an option is invalid
        """
        values = normalize_options(options, ENFORCER_TEMPLATE)
        _reject_unknown(cls, values)
        if values.get('mock_store') is None:
            values['mock_store'] = CookieStore()
        allowed = values['allow_other_query_parameters']
        if not isinstance(allowed, bool):
            values['allow_other_query_parameters'] = tuple(allowed)
        return cls(**values)

    @property
    def allowed_query_parameters(self) -> Union[bool, List[str]]:
        """Effective extra-query policy; the mock query key is always allowed."""
        if self.allow_other_query_parameters is True:
            return True
        allowed = list(self.allow_other_query_parameters or ())
        if self.mock_query and self.mock_query not in allowed:
            allowed.append(self.mock_query)
        return allowed


@dataclass(frozen=True)
class RouterOptions:
    """Route dispatcher configuration."""

    common_dependency_key: str = 'common'
    dependencies: Any = ()
    lazy_load: bool = False
    x_controller: str = 'x-controller'
    x_operation: str = 'x-operation'

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> 'RouterOptions':
        values = normalize_options(options, ROUTER_TEMPLATE)
        _reject_unknown(cls, values)
        return cls(**values)

    def dependencies_for(self, controller_key: str) -> List[Any]:
        """Dependency list for a controller: a flat list, or its own list followed by the common list."""
        if isinstance(self.dependencies, (list, tuple)):
            return list(self.dependencies)
        return list(self.dependencies.get(controller_key, [])) + list(self.dependencies.get(self.common_dependency_key, []))
