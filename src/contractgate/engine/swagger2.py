"""
ContractGate Swagger 2.0 Support

Upgrades a Swagger 2.0 document to an equivalent OpenAPI 3.0 document in
memory so a single validation path (openapi-core) serves both versions.

Only what request matching, validation and mocking need is carried over:
- `definitions` become `components/schemas` (references rewritten)
- shared `#/parameters/` and `#/responses/` references are inlined
- non-body parameters get a `schema`; `collectionFormat` maps to style/explode
- `body` / `formData` parameters become a `requestBody` per `consumes` type
- response schemas become `content` per `produces` type, with mime-keyed
  `examples` moved onto the matching media type as `example`
- extension (`x-`) keys on the root, path items and operations are kept

Security definitions, `host`, `basePath` and `schemes` are not carried over.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from .refs import LocalReferences

HTTP_METHODS = ('get', 'put', 'post', 'delete', 'options', 'head', 'patch', 'trace')

SCHEMA_KEYS = (
    'type', 'format', 'default', 'enum', 'multipleOf',
    'maximum', 'exclusiveMaximum', 'minimum', 'exclusiveMinimum',
    'maxLength', 'minLength', 'pattern', 'maxItems', 'minItems', 'uniqueItems',
)

FORM_TYPES = ('application/x-www-form-urlencoded', 'multipart/form-data')

logger = logging.getLogger("contractgate.engine.swagger2")


def merge_parameters(path_level: Optional[List[Dict[str, Any]]], operation_level: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Merge path-item and operation parameters; operation definitions override by (name, in)."""
    merged: Dict[tuple, Dict[str, Any]] = {}
    for definition in (path_level or []) + (operation_level or []):
        merged[(definition.get('name'), definition.get('in'))] = definition
    return list(merged.values())


def _extensions(node: Dict[str, Any]) -> Dict[str, Any]:
    return {key: copy.deepcopy(value) for key, value in node.items() if str(key).startswith('x-')}


def _rewrite_refs(node: Any) -> Any:
    if isinstance(node, list):
        return [_rewrite_refs(item) for item in node]
    if not isinstance(node, dict):
        return node
    result = {}
    for key, value in node.items():
        if key == '$ref' and isinstance(value, str) and value.startswith('#/definitions/'):
            result[key] = '#/components/schemas/' + value[len('#/definitions/'):]
        else:
            result[key] = _rewrite_refs(value)
    return result


def _simple_schema(node: Dict[str, Any]) -> Dict[str, Any]:
    """Schema for a non-body parameter, header or items object."""
    if node.get('type') == 'file':
        return {'type': 'string', 'format': 'binary'}
    schema = {key: copy.deepcopy(node[key]) for key in SCHEMA_KEYS if key in node}
    if isinstance(node.get('items'), dict):
        schema['items'] = _simple_schema(node['items'])
    return schema


def _collection_style(collection_format: str, location: str) -> Dict[str, Any]:
    if collection_format == 'multi':
        return {'style': 'form', 'explode': True}
    if collection_format == 'ssv':
        return {'style': 'spaceDelimited', 'explode': False}
    if collection_format == 'pipes':
        return {'style': 'pipeDelimited', 'explode': False}
    if collection_format == 'tsv':
        logger.warning("collectionFormat tsv has no OpenAPI 3 style, treating it as csv")
    return {'style': 'form' if location in ('query', 'cookie') else 'simple', 'explode': False}


def _header(header: Dict[str, Any]) -> Dict[str, Any]:
    result = {'schema': _simple_schema(header)}
    if 'description' in header:
        result['description'] = header['description']
    return result


class SwaggerUpgrade:
    """
    One-shot conversion of a Swagger 2.0 document.

    Example:
        document = SwaggerUpgrade(swagger_document).upgrade()
        document['openapi']  # '3.0.3'
    """

    def __init__(self, document: Dict[str, Any]):
        self.document = document
        self.refs = LocalReferences(document)
        self.consumes = document.get('consumes') or ['application/json']
        self.produces = document.get('produces') or ['application/json']

    def upgrade(self) -> Dict[str, Any]:
        document = self.document
        result: Dict[str, Any] = {
            'openapi': '3.0.3',
            'info': copy.deepcopy(document.get('info') or {'title': '', 'version': ''}),
        }
        for key in ('tags', 'externalDocs'):
            if key in document:
                result[key] = copy.deepcopy(document[key])
        result.update(_extensions(document))

        paths: Dict[str, Any] = {}
        for path, path_item in (document.get('paths') or {}).items():
            paths[path] = self._path_item(self._inline(path_item))
        result['paths'] = paths

        if document.get('definitions'):
            result['components'] = {'schemas': copy.deepcopy(document['definitions'])}

        logger.debug(f"Upgraded Swagger 2.0 document with {len(paths)} paths")
        return _rewrite_refs(result)

    def _inline(self, node: Any) -> Any:
        # shared parameters and responses live outside components in v2
        while isinstance(node, dict) and isinstance(node.get('$ref'), str) and not node['$ref'].startswith('#/definitions/'):
            node = self.refs.lookup(node['$ref'])
        return node

    def _path_item(self, path_item: Dict[str, Any]) -> Dict[str, Any]:
        result = _extensions(path_item)
        shared = [self._inline(p) for p in path_item.get('parameters') or []]
        for method, definition in path_item.items():
            if method.lower() in HTTP_METHODS and isinstance(definition, dict):
                result[method.lower()] = self._operation(definition, shared)
        return result

    def _operation(self, definition: Dict[str, Any], shared: List[Dict[str, Any]]) -> Dict[str, Any]:
        result = {
            key: copy.deepcopy(value)
            for key, value in definition.items()
            if key not in ('parameters', 'responses', 'consumes', 'produces', 'schemes', 'security')
        }
        consumes = definition.get('consumes') or self.consumes
        produces = definition.get('produces') or self.produces

        own = [self._inline(p) for p in definition.get('parameters') or []]
        parameters, form = [], []
        for parameter in merge_parameters(shared, own):
            location = parameter.get('in')
            if location == 'body':
                result['requestBody'] = self._body(parameter, consumes)
            elif location == 'formData':
                form.append(parameter)
            else:
                parameters.append(self._parameter(parameter))
        if form and 'requestBody' not in result:
            result['requestBody'] = self._form(form, consumes)
        if parameters:
            result['parameters'] = parameters

        responses = {}
        for code, response in (definition.get('responses') or {}).items():
            if str(code).startswith('x-'):
                responses[str(code)] = copy.deepcopy(response)
            else:
                responses[str(code)] = self._response(self._inline(response), produces)
        result['responses'] = responses
        return result

    def _parameter(self, parameter: Dict[str, Any]) -> Dict[str, Any]:
        location = parameter.get('in', 'query')
        result = {
            'name': parameter['name'],
            'in': location,
            'required': bool(parameter.get('required', location == 'path')),
        }
        if 'description' in parameter:
            result['description'] = parameter['description']
        if location == 'query' and 'allowEmptyValue' in parameter:
            result['allowEmptyValue'] = parameter['allowEmptyValue']
        result.update(_extensions(parameter))

        schema = _simple_schema(parameter)
        result['schema'] = schema
        if schema.get('type') == 'array':
            result.update(_collection_style(parameter.get('collectionFormat', 'csv'), location))
        return result

    def _body(self, parameter: Dict[str, Any], consumes: List[str]) -> Dict[str, Any]:
        schema = parameter.get('schema') or {}
        result = {
            'required': bool(parameter.get('required', False)),
            'content': {content_type: {'schema': copy.deepcopy(schema)} for content_type in consumes},
        }
        if 'description' in parameter:
            result['description'] = parameter['description']
        return result

    def _form(self, parameters: List[Dict[str, Any]], consumes: List[str]) -> Dict[str, Any]:
        schema: Dict[str, Any] = {
            'type': 'object',
            'properties': {p['name']: _simple_schema(p) for p in parameters},
        }
        required = [p['name'] for p in parameters if p.get('required')]
        if required:
            schema['required'] = required
        content_types = [t for t in consumes if t in FORM_TYPES] or ['application/x-www-form-urlencoded']
        return {
            'required': bool(required),
            'content': {content_type: {'schema': copy.deepcopy(schema)} for content_type in content_types},
        }

    def _response(self, response: Dict[str, Any], produces: List[str]) -> Dict[str, Any]:
        result = {'description': response.get('description', '')}
        result.update(_extensions(response))

        schema = response.get('schema')
        if schema is not None:
            examples = response.get('examples') or {}
            content = {}
            for content_type in produces:
                media = {'schema': copy.deepcopy(schema)}
                if content_type in examples:
                    media['example'] = copy.deepcopy(examples[content_type])
                content[content_type] = media
            result['content'] = content

        headers = response.get('headers') or {}
        if headers:
            result['headers'] = {name: _header(header) for name, header in headers.items()}
        return result


def upgrade(document: Dict[str, Any]) -> Dict[str, Any]:
    """Return the OpenAPI 3.0 equivalent of a Swagger 2.0 document."""
    return SwaggerUpgrade(document).upgrade()
