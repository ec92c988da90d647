"""
ContractGate Response Sender

Validated send path attached to every enforced exchange, plus the shared
policy for answering request errors.
"""

import logging
from typing import Any

from ..common.errors import StatusError, error_from_exception
from ..common.utils import DIAGNOSTIC_HEADER
from ..engine.schema import extract_value
from ..exchange import Exchange, Flow

logger = logging.getLogger("contractgate.enforcer")


def handle_request_error(exchange: Exchange, error: StatusError, options) -> Flow:
    """
    Answer or defer a request error according to the handling toggles.

    404 and 405 follow their own toggles, every other code below 500 (or a
    missing code, answered as 400) follows `handle_bad_request`. A deferred
    error is kept on the exchange and the pipeline continues.

    Raises:
        StatusError: For codes of 500 and above, which are never answered here
    """
    status_code = getattr(error, 'status_code', None)
    if status_code == 404:
        handle = options.handle_not_found
    elif status_code == 405:
        handle = options.handle_method_not_allowed
    elif not status_code or status_code < 500:
        handle = options.handle_bad_request
        status_code = status_code or 400
    else:
        raise error_from_exception(error)

    if handle:
        exchange.set_header(DIAGNOSTIC_HEADER, 'error')
        exchange.send_text(status_code, str(error))
        return Flow.DONE

    logger.debug(f"Deferring {status_code} for {exchange.method} {exchange.original_url}")
    exchange.deferred_error = error_from_exception(error)
    return Flow.CONTINUE


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


class EnforcedResponse:
    """
    Response side of an enforced exchange.

    `send()` validates and serializes the body against the declared response
    before it reaches the client.

    Example:
        exchange.res_enforcer.status(201).send({'id': 7, 'name': 'Bob'})
    """

    def __init__(self, exchange: Exchange, options):
        self.exchange = exchange
        self.options = options

    def status(self, code: int) -> 'EnforcedResponse':
        self.exchange.status(code)
        return self

    def set_header(self, name: str, value: Any) -> 'EnforcedResponse':
        self.exchange.set_header(name, value)
        return self

    def send(self, body: Any = None) -> None:
        """
        Validate and send a response body.

        Raises:
            StatusError: If the body does not conform and automatic bad
                response handling is disabled
        """
        exchange = self.exchange
        request = exchange.enforcer
        operation = request.operation
        engine = request.engine

        code = exchange.status_code or 200
        headers = dict(exchange.response_headers)

        # Swagger 2.0 tolerates a missing content type
        if 'content-type' not in headers and engine.version != 2:
            types, error, _ = operation.negotiate(code, exchange.headers.get('accept') or '*/*')
            if error is None and types:
                exchange.set_header('content-type', types[0])
                headers['content-type'] = types[0]

        representation, error, _ = operation.build_response(code, engine.wrap(body), headers)
        if error is not None:
            exchange.status(500)
            if self.options.handle_bad_response:
                logger.error(f"Invalid response for {operation.op_id}: {error}")
                exchange.set_header(DIAGNOSTIC_HEADER, 'error')
                exchange.send_text(500, 'Internal server error')
                return
            raise error_from_exception(error)

        for name, value in representation.headers.items():
            exchange.set_header(name, extract_value(value))
        if exchange.get_header(DIAGNOSTIC_HEADER) is None:
            exchange.set_header(DIAGNOSTIC_HEADER, 'response')

        if not representation.has_body:
            exchange.send()
            return

        schema_type = (representation.schema or {}).get('type')
        if isinstance(schema_type, list):
            structured = 'array' in schema_type or 'object' in schema_type
        elif schema_type:
            structured = schema_type in ('array', 'object')
        else:
            structured = isinstance(representation.body, (dict, list))
        exchange.send(representation.body if structured else _as_text(representation.body))
