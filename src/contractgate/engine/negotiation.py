"""
ContractGate Content Negotiation

Matches an `Accept` header against the content types an operation declares,
using werkzeug's `MIMEAccept` for parsing, quality and specificity rules.
"""

from typing import Dict, List

from werkzeug.datastructures import MIMEAccept
from werkzeug.http import parse_accept_header


def media_base(content_type: str) -> str:
    """Media type without parameters, lower-cased ("text/plain; charset=utf-8" -> "text/plain")."""
    return str(content_type or '').split(';')[0].strip().lower()


def parse_accept(accept: str) -> MIMEAccept:
    """
    Parse an Accept header. An empty header accepts anything.

    Example:
        ranges = parse_accept('text/html;q=0.5, application/json')
        ranges.best  # 'application/json'
        ranges.quality('text/html')  # 0.5
    """
    return parse_accept_header(str(accept or '').strip() or '*/*', MIMEAccept)


def match_content_types(accept: str, available: List[str]) -> List[str]:
    """
    Order the available content types by the client's preference.

    A type whose most specific matching range has q=0 is excluded even when
    a wildcard range would otherwise admit it.

    Args:
        accept: Raw Accept header value (empty means anything)
        available: Content types declared by the contract

    Returns:
        Acceptable content types, best match first (may be empty)
    """
    ranges = parse_accept(accept)

    offers: Dict[str, str] = {}
    for candidate in available:
        base = media_base(candidate)
        if '/' not in base or (base.startswith('*/') and base != '*/*'):
            continue
        if base not in offers and ranges.quality(base) > 0:
            offers[base] = candidate

    ordered: List[str] = []
    remaining = list(offers)
    while remaining:
        best = ranges.best_match(remaining)
        if best is None:
            break
        ordered.append(offers[best])
        remaining.remove(best)
    return ordered
