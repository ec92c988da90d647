"""
ContractGate Specification Engine

Contract-aware collaborator the middleware talks to: request matching,
response building, random value generation, deserialization and content
negotiation for Swagger 2.0 and OpenAPI 3.x documents.

Features:
- Document checks with openapi-spec-validator at load time
- Request and response validation through openapi-core
- Swagger 2.0 documents upgraded to OpenAPI 3.0 before use
- Stable operation ids assigned at load time
- Three-level extension lookup (operation > path item > document root)
"""

import asyncio
import copy
import functools
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Protocol, Union
from urllib.parse import parse_qsl, unquote, urlsplit

from openapi_core import Config, OpenAPI
from openapi_core.exceptions import OpenAPIError
from openapi_core.templating.paths.exceptions import OperationNotFound, PathNotFound, ServerNotFound
from openapi_core.templating.paths.finders import APICallPathFinder
from openapi_core.validation.request.exceptions import (
    MissingRequiredParameter,
    MissingRequiredRequestBody,
    ParameterValidationError,
)
from openapi_core.validation.response.exceptions import HeaderValidationError, MissingData
from openapi_spec_validator import validate as validate_document
from openapi_spec_validator.validation.exceptions import OpenAPIValidationError
from werkzeug.datastructures import Headers

from ..common.errors import StatusError
from ..common.utils import DocumentLoader, parse_cookie_header
from . import schema as schema_util
from .adapters import (
    HOST_URL,
    ContractRequest,
    ContractResponse,
    build_parameters,
    describe_error,
    encode_body,
    header_text,
    is_native_media_type,
    join_errors,
)
from .negotiation import match_content_types, media_base
from .refs import dereference
from .swagger2 import HTTP_METHODS, merge_parameters, upgrade

logger = logging.getLogger("contractgate.engine")


class EngineResult(NamedTuple):
    """Value / error / warning triple returned by every engine call."""

    value: Any
    error: Optional[StatusError] = None
    warning: Optional[str] = None


@dataclass
class RequestMatch:
    """Deserialized request data for a matched operation."""

    operation: 'Operation'
    path: Dict[str, Any]
    query: Dict[str, Any]
    headers: Dict[str, Any]
    cookie: Dict[str, Any]
    response: Callable[..., EngineResult]
    body: Any = None
    has_body: bool = False


@dataclass
class ResponseRepresentation:
    """Serialized, validated response produced by `build_response`."""

    status_code: int
    headers: Dict[str, Any] = field(default_factory=dict)
    body: Any = None
    has_body: bool = False
    schema: Optional[Dict[str, Any]] = None


class ResponseSpec:
    """A declared response (one status code key) of an operation."""

    def __init__(self, code: str, definition: Dict[str, Any]):
        self.code = code
        self.definition = definition or {}

    @property
    def content(self) -> Dict[str, Any]:
        return self.definition.get('content') or {}

    @property
    def header_definitions(self) -> Dict[str, Any]:
        return self.definition.get('headers') or {}

    def content_types(self) -> List[str]:
        return list(self.content.keys())

    def schema_for(self, content_type: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Response body schema for a content type (the first declared type when omitted)."""
        content = self.content
        if not content:
            return None
        if content_type not in content:
            matches = match_content_types(content_type or '*/*', list(content.keys()))
            if not matches:
                return None
            content_type = matches[0]
        return (content.get(content_type) or {}).get('schema')


class Operation:
    """
    A single (path, method) declared in the contract.

    Attributes:
        op_id: Stable identifier, e.g. "GET /people/{id}"
        path: Path template
        method: Lower-case HTTP method
        definition: Dereferenced operation object (OpenAPI 3 shape)
        responses: Declared responses keyed by status code string
    """

    def __init__(self, engine: 'OpenAPIEngine', path: str, method: str, path_item: Dict[str, Any], definition: Dict[str, Any]):
        self.engine = engine
        self.path = path
        self.method = method
        self.op_id = f"{method.upper()} {path}"
        self.definition = definition
        self.operation_id = definition.get('operationId')

        self.parameters = merge_parameters(path_item.get('parameters'), definition.get('parameters'))
        self.query_names = {p.get('name') for p in self.parameters if p.get('in') == 'query'}
        self.request_body = definition.get('requestBody')
        self.responses = {
            str(code): ResponseSpec(str(code), response)
            for code, response in (definition.get('responses') or {}).items()
            if not str(code).startswith('x-')
        }

        self._extension_levels = (definition, path_item, engine.document)
        self._extensions: Dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"<Operation {self.op_id}>"

    @property
    def response_codes(self) -> List[str]:
        return list(self.responses.keys())

    def extension(self, name: str) -> Any:
        """
        Resolve an extension property, most specific level first.

        The first non-empty value found on the operation, then the path
        item, then the document root wins. Results are cached per name.
        """
        if name not in self._extensions:
            value = None
            for node in self._extension_levels:
                candidate = node.get(name)
                if candidate not in (None, ''):
                    value = candidate
                    break
            self._extensions[name] = value
        return self._extensions[name]

    def get_response(self, code: Union[int, str]) -> Optional[ResponseSpec]:
        code = str(code)
        return self.responses.get(code) or self.responses.get(f"{code[:1]}XX") or self.responses.get('default')

    def build_response(self, code: Union[int, str], body: Any = None, headers: Optional[Dict[str, Any]] = None) -> EngineResult:
        return self.engine.build_response(self, code, body, headers)

    def negotiate(self, code: Union[int, str], accept: str = '*/*') -> EngineResult:
        return self.engine.negotiate_content_types(self, code, accept)


class SpecificationEngine(Protocol):
    """Interface the middleware requires from a contract engine."""

    version: int
    uses_raw_examples: bool

    def match_request(self, descriptor: Dict[str, Any], policy: Dict[str, Any]) -> EngineResult: ...

    def build_response(self, operation: Operation, code: Union[int, str], body: Any, headers: Optional[Dict[str, Any]]) -> EngineResult: ...

    def randomize(self, schema: Dict[str, Any]) -> EngineResult: ...

    def deserialize(self, schema: Dict[str, Any], value: Any) -> EngineResult: ...

    def negotiate_content_types(self, operation: Operation, code: Union[int, str], accept: str) -> EngineResult: ...

    def wrap(self, value: Any) -> schema_util.SchemaValue: ...


def check_document(document: Dict[str, Any]) -> None:
    """
    Check a Swagger 2.0 / OpenAPI 3.x document against its meta-schema.

    Raises:
        ValueError: With the first problem found
    """
    try:
        validate_document(document)
    except OpenAPIValidationError as e:
        raise ValueError(f"Invalid OpenAPI document: {e.message}") from e


def _runtime_document(document: Dict[str, Any]) -> Dict[str, Any]:
    # matched relative to the mount point; security requirements are not enforced
    runtime = copy.deepcopy(document)
    runtime.pop('security', None)
    runtime['servers'] = [{'url': '/'}]
    for path_item in (runtime.get('paths') or {}).values():
        if not isinstance(path_item, dict):
            continue
        path_item.pop('servers', None)
        for method in HTTP_METHODS:
            if isinstance(path_item.get(method), dict):
                path_item[method].pop('servers', None)
                path_item[method].pop('security', None)
    return runtime


def _request_problem(error: BaseException) -> str:
    if isinstance(error, MissingRequiredParameter):
        return f"Missing required {error.location} parameter: {error.name}"
    if isinstance(error, ParameterValidationError):
        return f'Invalid value for {error.location} parameter "{error.name}": {describe_error(error)}'
    if isinstance(error, MissingRequiredRequestBody):
        return "Missing required request body"
    return f"Invalid request body:\n    {describe_error(error)}"


def _response_problem(error: BaseException) -> str:
    if isinstance(error, HeaderValidationError):
        return f'Invalid response header "{error.name}": {describe_error(error)}'
    return f"Invalid response body: {describe_error(error)}"


class OpenAPIEngine:
    """
    Contract engine for Swagger 2.0 and OpenAPI 3.x documents.

    Example:
        engine = OpenAPIEngine.from_file('openapi.yaml')
        match, error, _ = engine.match_request(
            {'method': 'GET', 'path': '/people?limit=5', 'headers': {}},
            {'allow_other_query_parameters': False}
        )
        if error:
            print(error.status_code, error)
    """

    def __init__(self, document: Dict[str, Any], uses_raw_examples: bool = True, rng: Optional[random.Random] = None):
        """
        Initialize the engine.

        Args:
            document: Parsed OpenAPI document
            uses_raw_examples: If False, mocked examples must be copied and
                deserialized against their schema before use
            rng: Random generator used for mock values (seed it in tests)

        Raises:
            ValueError: If the document is not a valid Swagger 2.0 / OpenAPI 3.x document
        """
        if 'swagger' in document:
            self.version = 2
            self.schema_version = 30
        elif 'openapi' in document:
            version_text = str(document['openapi'])
            self.version = int(version_text.split('.')[0])
            self.schema_version = 31 if version_text.startswith('3.1') else 30
        else:
            raise ValueError("Document is neither Swagger 2.0 nor OpenAPI 3.x (missing 'swagger'/'openapi' key)")

        if self.version not in (2, 3):
            raise ValueError(f"Unsupported OpenAPI version: {self.version}")

        self.raw_document = document
        self.source_document = dereference(document)
        check_document(document)

        contract = upgrade(document) if self.version == 2 else document
        self.document = dereference(contract) if self.version == 2 else self.source_document
        self.uses_raw_examples = uses_raw_examples
        self.randomizer = schema_util.RandomValueGenerator(rng)

        # checked by check_document already
        self.openapi = OpenAPI.from_dict(_runtime_document(contract), config=Config(spec_validator_cls=None))
        self._finder = APICallPathFinder(self.openapi.spec, base_url=None)

        self.operations: Dict[str, Operation] = {}
        self._build_operations()

    @classmethod
    def from_file(cls, file_path: str, **kwargs) -> 'OpenAPIEngine':
        return cls(DocumentLoader(file_path).load(), **kwargs)

    def _build_operations(self) -> None:
        for path, path_item in (self.document.get('paths') or {}).items():
            for method, definition in path_item.items():
                if method.lower() not in HTTP_METHODS:
                    continue
                operation = Operation(self, path, method.lower(), path_item, definition)
                self.operations[operation.op_id] = operation
        logger.debug(f"Loaded {len(self.operations)} operations (OpenAPI v{self.version})")

    def wrap(self, value: Any) -> schema_util.SchemaValue:
        return schema_util.SchemaValue(value)

    def match_request(self, descriptor: Dict[str, Any], policy: Optional[Dict[str, Any]] = None) -> EngineResult:
        """
        Match and deserialize a request.

        Args:
            descriptor: {'method', 'path' (may include query string),
                'headers', and optionally 'body'}
            policy: {'allow_other_query_parameters': bool or list of names}

        Returns:
            EngineResult with a RequestMatch, or an error whose status_code
            is 404 (no path), 405 (no method) or 400 (invalid request)
        """
        policy = policy or {}
        allow_other = policy.get('allow_other_query_parameters', False)
        method = str(descriptor.get('method', 'GET')).lower()
        parts = urlsplit(descriptor.get('path') or '/')
        path = unquote(parts.path or '/')
        # a templated segment must not match an empty trailing one
        path = path.rstrip('/') or '/'

        try:
            found = self._finder.find(method, f"{HOST_URL}{path}")
        except OperationNotFound:
            return EngineResult(None, StatusError(f"Method not allowed: {method.upper()}", 405))
        except (PathNotFound, ServerNotFound):
            return EngineResult(None, StatusError(f"Path not found: {path}", 404))

        operation = self.operations.get(f"{method.upper()} {found.path_result.pattern}")
        if operation is None:
            return EngineResult(None, StatusError(f"Method not allowed: {method.upper()}", 405))

        headers = {str(k).lower(): v for k, v in (descriptor.get('headers') or {}).items()}
        cookies = parse_cookie_header(headers.get('cookie'))
        raw_query = parse_qsl(parts.query, keep_blank_values=True)
        body_present = 'body' in descriptor
        content_type = str(headers.get('content-type') or 'application/json')

        request = ContractRequest(
            method=method,
            path=path,
            parameters=build_parameters(raw_query, headers, cookies, found.path_result.variables),
            content_type=content_type,
            body=encode_body(content_type, descriptor.get('body')) if body_present else None,
        )
        try:
            result = self.openapi.unmarshal_request(request)
            problems = list(result.errors)
        except OpenAPIError as e:
            result, problems = None, [e]

        errors = [_request_problem(problem) for problem in problems]
        for name, _ in raw_query:
            if name in operation.query_names or _allowed(name, allow_other):
                continue
            message = f"Received unexpected parameter: {name}"
            if message not in errors:
                errors.append(message)

        if errors:
            return EngineResult(None, StatusError(join_errors('Request has one or more errors', errors), 400))

        values = result.parameters
        query = {name: value for name, value in raw_query if name not in operation.query_names}
        query.update(values.query)
        header_values = dict(headers)
        header_values.update({str(k).lower(): v for k, v in values.header.items()})
        cookie_values = dict(cookies)
        cookie_values.update(values.cookie)
        _apply_defaults(operation, {'query': query, 'header': header_values, 'cookie': cookie_values})

        body = descriptor.get('body')
        if operation.request_body and body_present:
            body = result.body

        return EngineResult(RequestMatch(
            operation=operation,
            path=dict(values.path),
            query=query,
            headers=header_values,
            cookie=cookie_values,
            response=functools.partial(self.build_response, operation),
            body=body,
            has_body=body_present
        ))

    def build_response(self, operation: Operation, code: Union[int, str], body: Any = None, headers: Optional[Dict[str, Any]] = None) -> EngineResult:
        """
        Validate and serialize a response for an operation.

        Args:
            operation: The matched operation
            code: HTTP status code being sent
            body: Response body (optionally wrapped in a SchemaValue)
            headers: Response headers already set on the exchange

        Returns:
            EngineResult with a ResponseRepresentation, or an error (500)
        """
        response = operation.get_response(code)
        if response is None:
            return EngineResult(None, StatusError(f"No response defined for status code {code}", 500))

        headers = {str(k).lower(): v for k, v in (headers or {}).items()}
        value = schema_util.extract_value(body)
        status_code = int(code) if str(code).isdigit() else 200

        content_type = headers.get('content-type')
        declared = response.content_types()
        if declared and content_type:
            base_type = media_base(content_type)
            if not match_content_types(base_type, declared):
                return EngineResult(None, StatusError(join_errors(
                    'Response has one or more errors', [f"Content type not allowed for status code {code}: {base_type}"]), 500))
        body_schema = response.schema_for(content_type)
        checked_type = content_type or (declared[0] if declared else 'application/json')

        has_body = value is not None
        if has_body and body_schema:
            value = schema_util.serialize(body_schema, value)

        computed: Dict[str, Any] = dict(headers)
        wire_headers = Headers()
        for name in response.header_definitions:
            key = name.lower()
            if key in headers:
                text = header_text(schema_util.extract_value(headers[key]))
                wire_headers.add(name, text)
                computed[key] = self.wrap(text)

        errors = self._check_response(operation, status_code, checked_type, value if has_body else None, body_schema, wire_headers)
        if errors:
            return EngineResult(None, StatusError(join_errors('Response has one or more errors', errors), 500))

        return EngineResult(ResponseRepresentation(
            status_code=status_code,
            headers=computed,
            body=value,
            has_body=has_body,
            schema=body_schema
        ))

    def _check_response(self, operation: Operation, status_code: int, content_type: str, value: Any,
                        body_schema: Optional[Dict[str, Any]], headers: Headers) -> List[str]:
        # openapi-core reads text/plain bodies as strings only
        native = is_native_media_type(content_type) and (media_base(content_type) == 'application/json' or isinstance(value, str))
        data = encode_body(content_type, value) if value is not None and native else None

        request = ContractRequest(
            method=operation.method,
            path=operation.path,
            path_pattern=operation.path,
            parameters=build_parameters([], {}, {}),
        )
        response = ContractResponse(status_code=status_code, headers=headers, content_type=content_type, data=data)
        try:
            problems = list(self.openapi.unmarshal_response(request, response).errors)
        except OpenAPIError as e:
            problems = [e]

        errors = [_response_problem(problem) for problem in problems if not isinstance(problem, MissingData)]
        if value is not None and not native and body_schema:
            errors.extend(f"Invalid response body: {message}" for message in schema_util.validate(body_schema, value, self.schema_version))
        return errors

    def randomize(self, schema: Dict[str, Any]) -> EngineResult:
        value, error, warning = self.randomizer.generate(schema)
        return EngineResult(value, StatusError(error, 422) if error else None, warning)

    def deserialize(self, schema: Dict[str, Any], value: Any) -> EngineResult:
        result, error = schema_util.deserialize(schema, value, self.schema_version)
        return EngineResult(result, StatusError(error, 422) if error else None)

    def negotiate_content_types(self, operation: Operation, code: Union[int, str], accept: str = '*/*') -> EngineResult:
        """
        Determine which declared content types satisfy an Accept header.

        Error codes: NO_CODE (no such response), NO_TYPES_SPECIFIED (response
        declares no content types), NO_MATCH (nothing acceptable).
        """
        response = operation.get_response(code)
        if response is None:
            return EngineResult([], StatusError(f"Response code not defined: {code}", 422, code='NO_CODE'))

        available = response.content_types()
        if not available:
            return EngineResult([], StatusError(f"No content types specified for response code: {code}", 422, code='NO_TYPES_SPECIFIED'))

        matches = match_content_types(accept or '*/*', available)
        if not matches:
            return EngineResult([], StatusError('Not acceptable', 406, code='NO_MATCH'))
        return EngineResult(matches)


def _allowed(name: str, allow_other: Any) -> bool:
    return allow_other is True or (isinstance(allow_other, (list, tuple)) and name in allow_other)


def _apply_defaults(operation: Operation, values: Dict[str, Dict[str, Any]]) -> None:
    for parameter in operation.parameters:
        location = parameter.get('in')
        if location not in values:
            continue
        key = parameter['name'].lower() if location == 'header' else parameter['name']
        schema = parameter.get('schema') or {}
        if key not in values[location] and 'default' in schema:
            values[location][key] = schema['default']


class EngineProvider:
    """
    Builds the engine once, on first use, and shares it with every request.

    Args:
        source: An engine instance, a parsed document, a path to a JSON/YAML
            document, or a zero-argument callable returning any of those
            (or an awaitable of them)
        engine_options: Keyword arguments passed to OpenAPIEngine
    """

    def __init__(self, source: Any, **engine_options):
        self.source = source
        self.engine_options = engine_options
        self._engine: Optional[OpenAPIEngine] = source if isinstance(source, OpenAPIEngine) else None
        self._lock: Optional[asyncio.Lock] = None

    async def get(self) -> OpenAPIEngine:
        if self._engine is not None:
            return self._engine
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self._engine is None:
                self._engine = await self._build()
        return self._engine

    async def _build(self) -> OpenAPIEngine:
        source = self.source
        if callable(source):
            source = source()
            if asyncio.iscoroutine(source) or isinstance(source, asyncio.Future):
                source = await source
        if isinstance(source, OpenAPIEngine):
            return source
        if isinstance(source, dict):
            return OpenAPIEngine(source, **self.engine_options)

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(OpenAPIEngine.from_file, str(source), **self.engine_options))
