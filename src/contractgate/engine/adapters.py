"""
ContractGate openapi-core Adapters

Request and response objects in the shape openapi-core's unmarshallers
consume, built from the middleware's framework-neutral descriptors, plus
helpers turning openapi-core errors into readable messages.
"""

import json
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from openapi_core.datatypes import RequestParameters
from werkzeug.datastructures import Headers, ImmutableMultiDict

from .negotiation import media_base

HOST_URL = 'http://contractgate.local'

# body media types openapi-core deserializes the way the gate serializes them
NATIVE_MEDIA_TYPES = ('application/json', 'text/plain')


class ContractRequest:
    """Request protocol object for openapi-core."""

    def __init__(
        self,
        *,
        method: str,
        path: str,
        parameters: RequestParameters,
        content_type: str = 'application/json',
        body: Optional[bytes] = None,
        path_pattern: Optional[str] = None,
    ) -> None:
        self.host_url = HOST_URL
        self.path = path
        self.path_pattern = path_pattern
        self.method = method.lower()
        self.parameters = parameters
        self.content_type = content_type.lower()
        self.body = body

    @property
    def full_url_pattern(self) -> str:
        return f"{self.host_url}{self.path_pattern or self.path}"


class ContractResponse:
    """Response protocol object for openapi-core."""

    def __init__(self, *, status_code: int, headers: Headers, content_type: str, data: Optional[bytes]) -> None:
        self.status_code = status_code
        self.headers = headers
        self.content_type = content_type.lower()
        self.data = data


def build_parameters(
    query: Iterable[tuple],
    headers: Mapping[str, Any],
    cookies: Mapping[str, str],
    path: Optional[Dict[str, str]] = None,
) -> RequestParameters:
    header_values = Headers()
    for name, value in headers.items():
        for item in value if isinstance(value, (list, tuple)) else [value]:
            header_values.add(name, str(item))
    return RequestParameters(
        query=ImmutableMultiDict(list(query)),
        header=header_values,
        cookie=ImmutableMultiDict(list(cookies.items())),
        path=dict(path or {}),
    )


def _json_default(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_body(content_type: Optional[str], value: Any) -> bytes:
    """Serialize a parsed body for validation: JSON for structured values, text as-is."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, str) and media_base(content_type or '') != 'application/json':
        return value.encode('utf-8')
    return json.dumps(value, default=_json_default).encode('utf-8')


def is_native_media_type(content_type: Optional[str]) -> bool:
    return media_base(content_type or '') in NATIVE_MEDIA_TYPES


def header_text(value: Any) -> str:
    """Wire form of a response header value."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (list, tuple)):
        return ','.join(header_text(item) for item in value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def describe_error(error: BaseException) -> str:
    """
    Readable detail for an openapi-core error.

    Follows the exception chain down to the schema validation errors when
    there are any, otherwise reports the innermost cause.
    """
    cause = error
    while True:
        schema_errors = getattr(cause, 'schema_errors', None)
        if schema_errors:
            return '; '.join(_schema_error_text(item) for item in schema_errors)
        if cause.__cause__ is None:
            return str(cause)
        cause = cause.__cause__


def _schema_error_text(error: Any) -> str:
    path = '/'.join(str(part) for part in getattr(error, 'absolute_path', []))
    message = getattr(error, 'message', str(error))
    return f"/{path}: {message}" if path else message


def join_errors(title: str, lines: List[str]) -> str:
    return title + '\n  ' + '\n  '.join(lines)
