"""
ContractGate Common Utilities

Shared errors, event reporting and option helpers used across ContractGate
modules.
"""

from .errors import ConfigurationError, StatusError, ErrorCode, error_from_exception
from .events import EventBus
from .utils import (
    DIAGNOSTIC_HEADER,
    OptionTemplate,
    normalize_options,
    validator_boolean,
    validator_string,
    validator_non_empty_string,
    validator_query_params,
    copy_value,
    has_body,
    merge_new_properties,
    parse_cookie_header,
    DocumentLoader
)

__all__ = [
    'DIAGNOSTIC_HEADER',
    'ConfigurationError',
    'StatusError',
    'ErrorCode',
    'error_from_exception',
    'EventBus',
    'OptionTemplate',
    'normalize_options',
    'validator_boolean',
    'validator_string',
    'validator_non_empty_string',
    'validator_query_params',
    'copy_value',
    'has_body',
    'merge_new_properties',
    'parse_cookie_header',
    'DocumentLoader'
]
