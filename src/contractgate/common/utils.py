"""
ContractGate Common Utilities

Option normalization, value copying, and small request helpers shared by
the middleware components.
"""

import copy
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.parse import unquote

import yaml

from .errors import ConfigurationError


DIAGNOSTIC_HEADER = 'x-contractgate'

Validator = Callable[[Any], str]


@dataclass
class OptionTemplate:
    """Defaults, required keys and per-key validators for a set of options."""

    defaults: Dict[str, Any] = field(default_factory=dict)
    required: List[str] = field(default_factory=list)
    validators: Dict[str, Validator] = field(default_factory=dict)


def normalize_options(options: Optional[Mapping[str, Any]], template: OptionTemplate) -> Dict[str, Any]:
    """
    Merge user options over template defaults and validate the result.

    Args:
        options: User supplied options (may be None)
        template: Defaults, required keys and validators

    Returns:
        New dictionary with the merged options

    Raises:
        ConfigurationError: If a required key is missing or a validator fails
    """
    result = {**template.defaults, **(options or {})}

    for key in template.required:
        if key not in result:
            raise ConfigurationError(f"Missing required option: {key}")

    for key, validator in template.validators.items():
        if key in result:
            error = validator(result[key])
            if error:
                raise ConfigurationError(f'Invalid option "{key}". {error}. Received: {result[key]!r}')

    return result


def validator_boolean(value: Any) -> str:
    return '' if isinstance(value, bool) else 'Expected a boolean'


def validator_string(value: Any) -> str:
    return '' if isinstance(value, str) else 'Expected a string'


def validator_non_empty_string(value: Any) -> str:
    return '' if isinstance(value, str) and value else 'Expected a non-empty string'


def validator_query_params(value: Any) -> str:
    if isinstance(value, bool):
        return ''
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return ''
    return 'Expected a boolean or a list of strings'


def copy_value(value: Any) -> Any:
    """Deep copy plain JSON-like data (dicts and lists), keeping shared references shared."""
    return copy.deepcopy(value)


def has_body(headers: Mapping[str, Any], body_present: bool = True) -> bool:
    """
    Determine whether a request carries a body worth forwarding.

    A body is present when the request declares `transfer-encoding` or a
    positive numeric `content-length`.

    Args:
        headers: Lower-cased request headers
        body_present: Whether the host framework produced a body at all

    Returns:
        True if the body should be forwarded for validation
    """
    if not body_present:
        return False
    if headers.get('transfer-encoding') is not None:
        return True

    content_length = headers.get('content-length')
    try:
        return content_length is not None and float(content_length) > 0
    except (TypeError, ValueError):
        return False


def merge_new_properties(source: Mapping[str, Any], destination: Dict[str, Any]) -> None:
    """Copy keys from source into destination without overwriting existing keys."""
    for key, value in source.items():
        if key not in destination:
            destination[key] = value


def parse_cookie_header(header: Optional[str]) -> Dict[str, str]:
    """
    Parse a `Cookie` header into a name -> value dictionary.

    Example:
        parse_cookie_header('a=1; contractgate-store=17-0')
        # {'a': '1', 'contractgate-store': '17-0'}
    """
    cookies = {}
    if not header:
        return cookies

    for part in unquote(header).split(';'):
        part = part.strip()
        if not part or '=' not in part:
            continue
        name, value = part.split('=', 1)
        cookies[name.strip()] = value.strip()
    return cookies


class DocumentLoader:
    """
    Loader for OpenAPI documents stored as JSON or YAML.

    Example:
        loader = DocumentLoader("openapi.yaml")
        document = loader.load()
    """

    def __init__(self, file_path: str):
        self.file_path = Path(file_path)

    def load(self) -> Dict[str, Any]:
        """
        Load the document.

        Returns:
            Parsed document dictionary

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the content is not a mapping
        """
        if not self.file_path.exists():
            raise FileNotFoundError(f"OpenAPI document not found: {self.file_path}")

        with open(self.file_path, 'r', encoding='utf-8') as f:
            if self.file_path.suffix.lower() == '.json':
                data = json.load(f)
            else:
                data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(
                f"Unexpected document format in {self.file_path}. "
                f"Expected a mapping at the top level, found {type(data).__name__}"
            )
        return data
