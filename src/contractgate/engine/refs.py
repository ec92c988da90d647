"""
ContractGate Reference Resolution

Local `$ref` lookup and full dereferencing of contract documents, backed by
the `referencing` library's JSON pointer resolution.
"""

from typing import Any, Dict

from referencing import Registry, Resource
from referencing.exceptions import Unresolvable


class LocalReferences:
    """
    Resolves local references ("#/components/schemas/Person") in one document.

    Example:
        refs = LocalReferences(document)
        person = refs.lookup('#/definitions/Person')
    """

    def __init__(self, document: Dict[str, Any]):
        self.document = document
        self._resolver = Registry().with_resource('', Resource.opaque(document)).resolver()

    def lookup(self, ref: str) -> Any:
        """
        Return the node a reference points at.

        Raises:
            ValueError: If the reference is not local or cannot be resolved
        """
        if not ref.startswith('#'):
            raise ValueError(f"Only local references are supported: {ref}")
        try:
            return self._resolver.lookup(ref).contents
        except (Unresolvable, ValueError, TypeError):
            raise ValueError(f"Unable to resolve reference: {ref}")


def dereference(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Resolve every local `$ref` in a document.

    Each referenced target is resolved once and shared, so recursive
    schemas become cyclic structures rather than infinite expansions.

    Raises:
        ValueError: If a reference is not local or cannot be resolved
    """
    refs = LocalReferences(document)
    resolved: Dict[str, Any] = {}

    def walk(node: Any) -> Any:
        if isinstance(node, list):
            return [walk(item) for item in node]
        if not isinstance(node, dict):
            return node

        ref = node.get('$ref')
        if isinstance(ref, str):
            if ref in resolved:
                return resolved[ref]
            placeholder: Dict[str, Any] = {}
            resolved[ref] = placeholder
            target = walk(refs.lookup(ref))
            if isinstance(target, dict):
                placeholder.update(target)
                return placeholder
            resolved[ref] = target
            return target

        return {key: walk(value) for key, value in node.items()}

    return walk(document)
