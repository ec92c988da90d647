"""
ContractGate Specification Engine

Contract loading, request matching and response validation used by the
middleware.
"""

from .contract import (
    EngineProvider,
    EngineResult,
    OpenAPIEngine,
    Operation,
    RequestMatch,
    ResponseRepresentation,
    ResponseSpec,
    SpecificationEngine,
    check_document
)
from .examples import validate_examples
from .negotiation import match_content_types, parse_accept
from .refs import LocalReferences, dereference
from .schema import RandomValueGenerator, SchemaValue, extract_value
from .swagger2 import upgrade

__all__ = [
    'EngineProvider',
    'EngineResult',
    'OpenAPIEngine',
    'Operation',
    'RequestMatch',
    'ResponseRepresentation',
    'ResponseSpec',
    'SpecificationEngine',
    'check_document',
    'LocalReferences',
    'dereference',
    'upgrade',
    'validate_examples',
    'match_content_types',
    'parse_accept',
    'RandomValueGenerator',
    'SchemaValue',
    'extract_value',
]
