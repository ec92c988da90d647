"""
ContractGate Mock Resolver

Synthesizes responses for matched operations from declared examples or
schema-driven random values.

Features:
- Mock triggers from a query parameter or a header (`200,example,name`)
- Named, randomly selected, content level and schema level examples
- Random values generated from the response schema
- Swagger 2.0 and OpenAPI 3.x response shapes
- Fallback mock stage for operations that no controller answered
"""

import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..common.errors import ErrorCode, StatusError
from ..common.events import EventBus
from ..common.utils import DIAGNOSTIC_HEADER, copy_value
from ..exchange import Exchange, Flow

logger = logging.getLogger("contractgate.mock")

MOCK_SOURCES = ('', 'example', 'random', 'implemented')

RESPONSE_EXAMPLE = 'mock: response example'
SCHEMA_EXAMPLE = 'mock: schema example'
RANDOM_VALUE = 'mock: random value'


@dataclass
class MockMode:
    """
    How a response should be mocked.

    Attributes:
        origin: 'query', 'header' or 'fallback'
        source: '', 'example', 'random' or 'implemented'
        specified: Whether the caller asked for a mock explicitly
        status_code: Response code key to mock (first declared code by default)
        name: Named example to use (only with source 'example')
    """

    origin: str
    source: str = ''
    specified: bool = False
    status_code: str = ''
    name: str = ''


def parse_mock_value(origin: str, response_codes: List[str], value: Any) -> MockMode:
    """
    Parse a `statusCode[,source[,name]]` mock trigger value.

    An empty value keeps the defaults: unspecified, first declared
    response code, no source.
    """
    value = str(value).strip()
    mode = MockMode(
        origin=origin,
        specified=value != '',
        status_code=response_codes[0] if response_codes else ''
    )
    if value:
        parts = [part.strip() for part in value.split(',')]
        mode.status_code = parts[0]
        if len(parts) > 1:
            mode.source = parts[1]
        if mode.source == 'example' and len(parts) > 2:
            mode.name = parts[2]
    return mode


def get_mock_mode(exchange: Exchange, operation, options) -> Optional[MockMode]:
    """Read the mock trigger from the query string first, then the headers."""
    response_codes = operation.response_codes

    if options.mock_query and options.mock_query in exchange.query:
        value = exchange.query[options.mock_query]
        if isinstance(value, list):
            value = value[0] if value else ''
        return parse_mock_value('query', response_codes, value)

    header_key = options.mock_header.lower()
    if header_key and header_key in exchange.headers:
        value = exchange.headers[header_key]
        if isinstance(value, list):
            value = value[0] if value else ''
        return parse_mock_value('header', response_codes, value)

    return None


class MockResolver:
    """
    Produces a mocked response for an enforced exchange.

    The resolved value is sent through `exchange.res_enforcer`, so mocks are
    validated against the response schema just like controller output.

    Example:
        resolver = MockResolver(options)
        mode = MockMode(origin='header', status_code='200', source='example')
        await resolver.resolve(exchange, mode)
    """

    def __init__(self, options, rng: Optional[random.Random] = None):
        self.options = options
        self.rng = rng or random.Random()

    async def resolve(self, exchange: Exchange, mock: MockMode) -> Flow:
        request = exchange.enforcer
        operation = request.operation
        engine = request.engine
        code = mock.status_code
        logger.debug(f"Mocking {operation.op_id} with {mock}")

        if mock.source not in MOCK_SOURCES:
            return self._unable_to_mock(exchange, f"Unknown mock source: {mock.source}", 422)

        content_types, negotiation_error, _ = request.accepts(code)
        if negotiation_error is not None:
            if negotiation_error.code == 'NO_CODE':
                return self._unable_to_mock(
                    exchange, f"Unable to mock response code. The spec does not define this response code: {code}", 422)
            if negotiation_error.code == 'NO_TYPES_SPECIFIED':
                return self._unable_to_mock(
                    exchange, f"Unable to mock response. No content types are specified for response code: {code}", 422)
            return self._unable_to_mock(exchange, 'Not acceptable', 406)
        if not content_types:
            return self._unable_to_mock(exchange, 'Not acceptable', 406)

        content_type = content_types[0]
        response = operation.get_response(code)
        media = response.content.get(content_type) or {}
        schema = media.get('schema')
        source = '' if mock.source == 'implemented' else mock.source

        if source in ('', 'example'):
            named = media.get('examples') or {}
            if mock.name:
                example = named.get(mock.name)
                if not isinstance(example, dict) or 'value' not in example:
                    return self._unable_to_mock(
                        exchange, f"There is no example value with the name specified: {mock.name}", 422)
                return self._send_example(exchange, mock, content_type, example['value'], schema, RESPONSE_EXAMPLE)

            names = [name for name, example in named.items() if isinstance(example, dict) and 'value' in example]
            if names:
                name = self.rng.choice(names)
                logger.debug(f"Selected example {name} of {len(names)}")
                return self._send_example(exchange, mock, content_type, named[name]['value'], schema, RESPONSE_EXAMPLE)

            if 'example' in media:
                return self._send_example(exchange, mock, content_type, media['example'], schema, RESPONSE_EXAMPLE)

            if isinstance(schema, dict) and 'example' in schema:
                return self._send(exchange, mock, content_type, copy_value(schema['example']), SCHEMA_EXAMPLE)

            if source:
                return self._unable_to_mock(
                    exchange, f"A mock example is not defined for status code {code}.", 422)

        if not schema:
            return self._unable_to_mock(
                exchange, 'Unable to generate a random value when no schema associated with response', 422)

        value, error, warning = engine.randomize(schema)
        if error is not None:
            return self._unable_to_mock(exchange, str(error), 422)
        if warning:
            return self._unable_to_mock(exchange, str(warning), 422)
        return self._send(exchange, mock, content_type, value, RANDOM_VALUE)

    def _send_example(self, exchange: Exchange, mock: MockMode, content_type: str, example: Any,
                      schema: Optional[Dict[str, Any]], strategy: str) -> Flow:
        engine = exchange.enforcer.engine
        if engine.uses_raw_examples:
            return self._send(exchange, mock, content_type, example, strategy)

        example = copy_value(example)
        if schema:
            example, error, _ = engine.deserialize(schema, example)
            if error is not None:
                return self._unable_to_mock(exchange, str(error), 422)
        return self._send(exchange, mock, content_type, example, strategy)

    def _send(self, exchange: Exchange, mock: MockMode, content_type: str, value: Any, strategy: str) -> Flow:
        # 'default' is a response key, not a status code
        if mock.status_code != 'default' and mock.status_code.isdigit():
            exchange.status(int(mock.status_code))
        exchange.set_header(DIAGNOSTIC_HEADER, strategy)
        if exchange.get_header('content-type') is None:
            exchange.set_header('content-type', content_type)
        exchange.res_enforcer.send(value)
        return Flow.DONE

    def _unable_to_mock(self, exchange: Exchange, message: str, status_code: int) -> Flow:
        logger.debug(f"Unable to mock {exchange.method} {exchange.original_url}: {message}")
        if self.options.handle_bad_request:
            exchange.set_header(DIAGNOSTIC_HEADER, 'error')
            exchange.send_text(status_code, message)
            return Flow.DONE
        raise StatusError(message, status_code)


def mock_fallback(options, events: Optional[EventBus] = None, registry=None, rng: Optional[random.Random] = None):
    """
    Build the catch-all mock stage placed after the route dispatcher.

    Mocks the first declared response of any enforced exchange that reached
    it without a response. Requires that the request enforcer ran first.

    Args:
        options: MiddlewareOptions of the enforcer
        events: EventBus receiving the not-initialized report
        registry: ActiveRequestRegistry of the enforcer
        rng: Random generator used to pick among named examples
    """
    resolver = MockResolver(options, rng)
    events = events or EventBus(logger)

    async def stage(exchange: Exchange) -> Flow:
        if exchange.finished:
            return Flow.DONE
        initialized = exchange.enforcer is not None
        if registry is not None:
            initialized, _ = registry.status(exchange)
        if not initialized:
            events.emit('error', ErrorCode(
                'Mock fallback requires the request enforcer to run first', 'CONTRACTGATE_NOT_INITIALIZED'))
            return Flow.CONTINUE
        if exchange.enforcer is None:
            return Flow.CONTINUE

        codes = exchange.enforcer.operation.response_codes
        mock = MockMode(origin='fallback', source='', specified=False, status_code=codes[0] if codes else '')
        exchange.enforcer.mock_mode = mock
        return await resolver.resolve(exchange, mock)

    return stage
