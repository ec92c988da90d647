"""
ContractGate Mock Module

Mock response resolution and the session store handed to mock controllers.
"""

from .store import CookieStore, MockStore, validate_mock_store
from .resolver import MockMode, MockResolver, get_mock_mode, mock_fallback, parse_mock_value

__all__ = [
    'CookieStore',
    'MockStore',
    'validate_mock_store',
    'MockMode',
    'MockResolver',
    'get_mock_mode',
    'mock_fallback',
    'parse_mock_value',
]
