"""
ContractGate Exchange

One inbound HTTP request paired with its outbound response, flowing through
the middleware pipeline as a single mutable object.
"""

import json
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlsplit

from fastapi import Request, Response

from .common.utils import parse_cookie_header


class Flow(Enum):
    """Decision returned by every pipeline stage."""

    CONTINUE = 'continue'
    DONE = 'done'


@dataclass(eq=False)
class Exchange:
    """
    Framework-neutral request/response pair.

    Request side fields are populated from the host framework; response side
    fields are written by the pipeline and converted back with
    `to_response()`. `enforcer` and `res_enforcer` are attached by the
    request enforcer once the request matched an operation; a request
    error that was not answered automatically is kept in `deferred_error`.

    Example:
        exchange = Exchange(method='GET', original_url='/people?limit=5',
                            headers={'accept': 'application/json'})
        exchange.status(201).set_header('x-trace', 'abc')
        exchange.send({'id': 1})
    """

    method: str = 'GET'
    original_url: str = '/'
    base_url: str = ''
    headers: Dict[str, Any] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    cookies: Dict[str, Any] = field(default_factory=dict)
    body: Any = None
    body_present: bool = False

    status_code: Optional[int] = None
    response_headers: Dict[str, Any] = field(default_factory=dict)
    response_body: Any = None
    response_cookies: Dict[str, str] = field(default_factory=dict)
    finished: bool = False

    enforcer: Any = None
    res_enforcer: Any = None
    deferred_error: Optional[Exception] = None

    def __post_init__(self):
        self.method = self.method.upper()
        self.headers = {str(k).lower(): v for k, v in self.headers.items()}

        if not self.query:
            raw_query = urlsplit(self.original_url).query
            for name, values in parse_qs(raw_query, keep_blank_values=True).items():
                self.query[name] = values[0] if len(values) == 1 else values

        if not self.cookies:
            self.cookies = parse_cookie_header(self.headers.get('cookie'))

    @property
    def path(self) -> str:
        return urlsplit(self.original_url).path

    def status(self, code: int) -> 'Exchange':
        self.status_code = code
        return self

    def set_header(self, name: str, value: Any) -> 'Exchange':
        self.response_headers[name.lower()] = value
        return self

    def get_header(self, name: str) -> Any:
        return self.response_headers.get(name.lower())

    def set_cookie(self, name: str, value: str) -> 'Exchange':
        self.response_cookies[name] = value
        return self

    def send(self, body: Any = None) -> None:
        """
        Send the response without any contract validation.

        Raises:
            RuntimeError: If a response was already sent for this exchange
        """
        if self.finished:
            raise RuntimeError(f"Response already sent for {self.method} {self.original_url}")
        if self.status_code is None:
            self.status_code = 200
        self.response_body = body
        self.finished = True

    def send_text(self, status_code: int, message: str) -> None:
        """Send a plain text response with the given status."""
        self.status(status_code).set_header('content-type', 'text/plain')
        self.send(message)

    @classmethod
    async def from_request(cls, request: 'Request', base_url: str = '') -> 'Exchange':
        """
        Build an Exchange from a Starlette/FastAPI request.

        JSON bodies are decoded; other bodies are kept as text (or bytes
        when they are not valid UTF-8).
        """
        raw = await request.body()
        headers = {k.lower(): v for k, v in request.headers.items()}
        content_type = headers.get('content-type', '')

        body: Any = None
        if raw:
            if 'json' in content_type:
                try:
                    body = json.loads(raw)
                except (json.JSONDecodeError, UnicodeDecodeError):
                    body = raw.decode('utf-8', errors='replace')
            else:
                try:
                    body = raw.decode('utf-8')
                except UnicodeDecodeError:
                    body = raw

        url = request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"

        return cls(
            method=request.method,
            original_url=url,
            base_url=base_url,
            headers=headers,
            cookies=dict(request.cookies),
            body=body,
            body_present=bool(raw)
        )

    def to_response(self) -> 'Response':
        """Convert the response side of the exchange into a Starlette Response."""
        headers = {k: str(v) for k, v in self.response_headers.items()}
        body = self.response_body

        if isinstance(body, (dict, list)):
            content = json.dumps(body, default=_json_default).encode('utf-8')
            headers.setdefault('content-type', 'application/json')
        elif body is None:
            content = b''
        elif isinstance(body, bytes):
            content = body
        else:
            content = str(body).encode('utf-8')
            headers.setdefault('content-type', 'text/plain; charset=utf-8')

        response = Response(content=content, status_code=self.status_code or 200, headers=headers)
        for name, value in self.response_cookies.items():
            response.set_cookie(name, value)
        return response


def _json_default(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return str(value)
