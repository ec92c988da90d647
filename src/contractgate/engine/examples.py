"""
ContractGate Example Validation

Checks that every example declared in a contract conforms to the schema it
sits beside. Used by the `validate` CLI command.
"""

from typing import Any, Dict, List

from . import schema as schema_util


def collect_examples(node: Any, path: str = '', seen: set = None) -> List[Dict[str, Any]]:
    """
    Walk a dereferenced document collecting (example, schema, path) records.

    An example is collected when it sits in the same object as a `schema`
    (media type objects, v2 responses, v3 parameters) or directly on a
    schema as `example`.
    """
    if seen is None:
        seen = set()
    results: List[Dict[str, Any]] = []
    if not isinstance(node, (dict, list)) or id(node) in seen:
        return results
    seen.add(id(node))

    if isinstance(node, list):
        for index, item in enumerate(node):
            results.extend(collect_examples(item, f"{path}/{index}", seen))
        return results

    schema = node.get('schema')
    if isinstance(schema, dict):
        examples = node.get('examples')
        if isinstance(examples, dict):
            for name, example in examples.items():
                # v2 examples are keyed by mime type, v3 example objects wrap the value
                if '/' not in name:
                    if not isinstance(example, dict) or 'value' not in example:
                        continue
                    example = example['value']
                results.append({'example': example, 'schema': schema, 'path': f"{path}/examples/{name}"})
        if 'example' in node:
            results.append({'example': node['example'], 'schema': schema, 'path': f"{path}/example"})
        if 'example' in schema and id(schema) not in seen:
            results.append({'example': schema['example'], 'schema': schema, 'path': f"{path}/schema/example"})

    for key, value in node.items():
        if key not in ('example', 'examples'):
            results.extend(collect_examples(value, f"{path}/{key}", seen))
    return results


def validate_examples(engine) -> List[str]:
    """
    Validate every example in the engine's document.

    Args:
        engine: A loaded OpenAPIEngine

    Returns:
        One warning string per example that fails its schema
    """
    warnings = []
    for record in collect_examples(engine.source_document):
        errors = schema_util.validate(record['schema'], record['example'], engine.schema_version)
        if errors:
            warnings.append(f"WARNING: Errors with example at: {record['path']}:\n  " + '\n  '.join(errors))
    return warnings
