"""
Shared fixtures for ContractGate tests.

Provides small Swagger 2.0 and OpenAPI 3.0 contracts and a helper that runs
an exchange through the request enforcer.
"""

import asyncio
import copy
import random

import pytest

from contractgate.engine import OpenAPIEngine
from contractgate.exchange import Exchange
from contractgate.middleware import RequestEnforcer


PEOPLE_V3 = {
    'openapi': '3.0.3',
    'info': {'title': 'People API', 'version': '1.0.0'},
    'x-controller': 'people',
    'paths': {
        '/people': {
            'get': {
                'operationId': 'listPeople',
                'parameters': [
                    {'name': 'limit', 'in': 'query', 'schema': {'type': 'integer', 'minimum': 1, 'maximum': 100}},
                    {'name': 'sort', 'in': 'query', 'schema': {'type': 'string', 'enum': ['asc', 'desc']}},
                    {'name': 'x-tenant', 'in': 'header', 'schema': {'type': 'string', 'enum': ['acme', 'globex']}},
                ],
                'responses': {
                    '200': {
                        'description': 'People',
                        'content': {
                            'application/json': {
                                'schema': {'type': 'array', 'items': {'$ref': '#/components/schemas/Person'}},
                                'examples': {
                                    'one': {'value': [{'id': 1, 'name': 'Alice'}]},
                                    'two': {'value': [{'id': 1, 'name': 'Alice'}, {'id': 2, 'name': 'Bob'}]},
                                    'broken': {'summary': 'no value here'},
                                }
                            }
                        }
                    }
                }
            },
            'post': {
                'operationId': 'addPerson',
                'requestBody': {
                    'required': True,
                    'content': {'application/json': {'schema': {'$ref': '#/components/schemas/NewPerson'}}}
                },
                'responses': {
                    '201': {
                        'description': 'Created',
                        'content': {'application/json': {'schema': {'$ref': '#/components/schemas/Person'}}}
                    }
                }
            }
        },
        '/people/{id}': {
            'parameters': [{'name': 'id', 'in': 'path', 'required': True, 'schema': {'type': 'integer'}}],
            'get': {
                'operationId': 'getPerson',
                'responses': {
                    '200': {
                        'description': 'Person',
                        'headers': {'x-rate-limit': {'schema': {'type': 'integer'}}},
                        'content': {
                            'application/json': {
                                'schema': {'$ref': '#/components/schemas/Person'},
                                'example': {'id': 7, 'name': 'Grace'}
                            }
                        }
                    },
                    '404': {
                        'description': 'Not found',
                        'content': {'text/plain': {'schema': {'type': 'string'}}}
                    }
                }
            }
        },
        '/status': {
            'get': {
                'responses': {
                    'default': {
                        'description': 'Status',
                        'content': {
                            'application/json': {
                                'schema': {
                                    'type': 'object',
                                    'required': ['ok'],
                                    'properties': {'ok': {'type': 'boolean'}},
                                    'example': {'ok': True}
                                }
                            }
                        }
                    }
                }
            }
        },
        '/counter': {
            'get': {
                'operationId': 'getCounter',
                'x-controller': 'counters',
                'responses': {
                    '200': {
                        'description': 'Counter',
                        'content': {
                            'application/json': {
                                'schema': {
                                    'type': 'object',
                                    'required': ['count'],
                                    'properties': {'count': {'type': 'integer', 'minimum': 0, 'maximum': 10}}
                                }
                            }
                        }
                    },
                    '204': {'description': 'Nothing'}
                }
            }
        },
        '/codes': {
            'get': {
                'operationId': 'getCode',
                'responses': {
                    '200': {
                        'description': 'Code',
                        'content': {'text/plain': {'schema': {'type': 'string', 'pattern': '^[A-Z]{3}$'}}}
                    }
                }
            }
        }
    },
    'components': {
        'schemas': {
            'Person': {
                'type': 'object',
                'required': ['id', 'name'],
                'properties': {'id': {'type': 'integer'}, 'name': {'type': 'string'}}
            },
            'NewPerson': {
                'type': 'object',
                'required': ['name'],
                'properties': {'name': {'type': 'string', 'minLength': 1}},
                'additionalProperties': False
            }
        }
    }
}

PEOPLE_V2 = {
    'swagger': '2.0',
    'info': {'title': 'People API', 'version': '1.0.0'},
    'paths': {
        '/people': {
            'get': {
                'responses': {
                    '200': {
                        'description': 'People',
                        'schema': {'type': 'object', 'example': {'a': 1}}
                    }
                }
            }
        },
        '/teams': {
            'get': {
                'produces': ['application/json', 'application/xml'],
                'responses': {
                    '200': {
                        'description': 'Teams',
                        'schema': {'type': 'array', 'items': {'type': 'string'}},
                        'examples': {'application/json': ['red', 'blue']}
                    }
                }
            }
        },
        '/ping': {
            'get': {
                'responses': {'200': {'description': 'Pong'}}
            }
        }
    }
}


@pytest.fixture
def v3_document():
    """Fresh copy of the OpenAPI 3 people contract."""
    return copy.deepcopy(PEOPLE_V3)


@pytest.fixture
def v2_document():
    """Fresh copy of the Swagger 2 people contract."""
    return copy.deepcopy(PEOPLE_V2)


@pytest.fixture
def v3_engine(v3_document):
    return OpenAPIEngine(v3_document, rng=random.Random(7))


@pytest.fixture
def v2_engine(v2_document):
    return OpenAPIEngine(v2_document, rng=random.Random(7))


def make_exchange(url, method='GET', headers=None, body=None, base_url=''):
    """Build an exchange the way the FastAPI bridge does."""
    headers = dict(headers or {})
    if body is not None:
        headers.setdefault('content-type', 'application/json')
        headers.setdefault('content-length', '1')
    return Exchange(
        method=method,
        original_url=url,
        base_url=base_url,
        headers=headers,
        body=body,
        body_present=body is not None
    )


def enforce(engine, url, method='GET', headers=None, body=None, options=None, rng=None, base_url=''):
    """Run a new exchange through a new RequestEnforcer; returns (exchange, flow, enforcer)."""
    enforcer = RequestEnforcer(engine, options, rng=rng or random.Random(3))
    exchange = make_exchange(url, method, headers, body, base_url)
    flow = asyncio.run(enforcer(exchange))
    return exchange, flow, enforcer
