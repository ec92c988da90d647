"""
Tests for ContractGate Specification Engine

Tests the contract engine including:
- Request matching (404 / 405 / 400)
- Parameter coercion (openapi-core unmarshalling)
- Request and response body validation
- Content negotiation
- Random value generation
- Swagger 2.0 upgrade, $ref resolution and extension lookup
- Example validation
"""

import asyncio
import json
import random

import pytest

from contractgate.engine import (
    EngineProvider,
    OpenAPIEngine,
    SchemaValue,
    dereference,
    match_content_types,
    parse_accept,
    upgrade,
    validate_examples
)
from contractgate.engine.schema import RandomValueGenerator, validate


def match(engine, path, method='GET', headers=None, body=None, allow=False, with_body=False):
    descriptor = {'method': method, 'path': path, 'headers': headers or {}}
    if with_body or body is not None:
        descriptor['body'] = body
    return engine.match_request(descriptor, {'allow_other_query_parameters': allow})


class TestRequestMatching:
    """Test operation lookup."""

    def test_matches_static_path(self, v3_engine):
        result, error, _ = match(v3_engine, '/people')

        assert error is None
        assert result.operation.op_id == 'GET /people'
        assert result.operation.operation_id == 'listPeople'

    def test_matches_templated_path(self, v3_engine):
        result, error, _ = match(v3_engine, '/people/42')

        assert error is None
        assert result.operation.op_id == 'GET /people/{id}'
        assert result.path == {'id': 42}

    def test_trailing_slash_matches(self, v3_engine):
        result, error, _ = match(v3_engine, '/people/')
        assert error is None

    def test_unknown_path_is_404(self, v3_engine):
        result, error, _ = match(v3_engine, '/planets')

        assert result is None
        assert error.status_code == 404
        assert '/planets' in str(error)

    def test_unknown_method_is_405(self, v3_engine):
        result, error, _ = match(v3_engine, '/people', method='DELETE')

        assert result is None
        assert error.status_code == 405

    def test_invalid_path_parameter_is_400(self, v3_engine):
        result, error, _ = match(v3_engine, '/people/abc')

        assert error.status_code == 400
        assert 'Invalid value for path parameter "id"' in str(error)
        assert 'abc' in str(error)

    def test_response_builder_bound_to_operation(self, v3_engine):
        result, _, _ = match(v3_engine, '/people/1')
        representation, error, _ = result.response(200, {'id': 1, 'name': 'Ada'})

        assert error is None
        assert representation.body == {'id': 1, 'name': 'Ada'}


class TestQueryParameters:
    """Test query parameter coercion and the undeclared parameter policy."""

    def test_integer_coerced(self, v3_engine):
        result, error, _ = match(v3_engine, '/people?limit=5')

        assert error is None
        assert result.query == {'limit': 5}

    def test_out_of_range_rejected(self, v3_engine):
        _, error, _ = match(v3_engine, '/people?limit=500')
        assert error.status_code == 400
        assert 'limit' in str(error)

    def test_enum_violation_rejected(self, v3_engine):
        _, error, _ = match(v3_engine, '/people?sort=up')

        assert error.status_code == 400
        assert 'Invalid value for query parameter "sort"' in str(error)

    def test_unexpected_parameter_rejected(self, v3_engine):
        _, error, _ = match(v3_engine, '/people?foo=bar')

        assert error.status_code == 400
        assert 'Received unexpected parameter: foo' in str(error)

    def test_allowed_list_passes_named_parameter(self, v3_engine):
        result, error, _ = match(v3_engine, '/people?trace=1', allow=['trace'])

        assert error is None
        assert result.query['trace'] == '1'

    def test_allowed_list_rejects_other_parameters(self, v3_engine):
        _, error, _ = match(v3_engine, '/people?trace=1&foo=2', allow=['trace'])

        assert 'foo' in str(error)
        assert 'trace' not in str(error)

    def test_allow_all(self, v3_engine):
        result, error, _ = match(v3_engine, '/people?anything=1', allow=True)

        assert error is None
        assert result.query['anything'] == '1'

    def test_exploded_array(self):
        engine = OpenAPIEngine({
            'openapi': '3.0.0',
            'info': {'title': 't', 'version': '1'},
            'paths': {'/items': {'get': {
                'parameters': [{'name': 'ids', 'in': 'query', 'schema': {'type': 'array', 'items': {'type': 'integer'}}}],
                'responses': {'200': {'description': 'ok'}}
            }}}
        })
        result, error, _ = match(engine, '/items?ids=1&ids=2')

        assert error is None
        assert result.query['ids'] == [1, 2]

    def test_v2_pipe_delimited_array(self):
        engine = OpenAPIEngine({
            'swagger': '2.0',
            'info': {'title': 't', 'version': '1'},
            'paths': {'/items': {'get': {
                'parameters': [{
                    'name': 'tags', 'in': 'query', 'type': 'array',
                    'items': {'type': 'string'}, 'collectionFormat': 'pipes'
                }],
                'responses': {'200': {'description': 'ok'}}
            }}}
        })
        result, error, _ = match(engine, '/items?tags=a|b')

        assert error is None
        assert result.query['tags'] == ['a', 'b']

    @pytest.fixture
    def multi_engine(self):
        return OpenAPIEngine({
            'swagger': '2.0',
            'info': {'title': 't', 'version': '1'},
            'paths': {'/items': {'get': {
                'parameters': [{
                    'name': 'tag', 'in': 'query', 'type': 'array',
                    'items': {'type': 'string'}, 'collectionFormat': 'multi'
                }],
                'responses': {'200': {'description': 'ok'}}
            }}}
        })

    def test_v2_multi_single_value_not_split(self, multi_engine):
        result, error, _ = match(multi_engine, '/items?tag=a,b')

        assert error is None
        assert result.query['tag'] == ['a,b']

    def test_v2_multi_repeated_values(self, multi_engine):
        result, error, _ = match(multi_engine, '/items?tag=a&tag=b')

        assert error is None
        assert result.query['tag'] == ['a', 'b']

    def test_v2_csv_array_split(self):
        engine = OpenAPIEngine({
            'swagger': '2.0',
            'info': {'title': 't', 'version': '1'},
            'paths': {'/items': {'get': {
                'parameters': [{'name': 'ids', 'in': 'query', 'type': 'array', 'items': {'type': 'integer'}}],
                'responses': {'200': {'description': 'ok'}}
            }}}
        })
        result, error, _ = match(engine, '/items?ids=1,2')

        assert error is None
        assert result.query['ids'] == [1, 2]

    def test_default_applied_for_missing_parameter(self):
        engine = OpenAPIEngine({
            'openapi': '3.0.0',
            'info': {'title': 't', 'version': '1'},
            'paths': {'/items': {'get': {
                'parameters': [{'name': 'page', 'in': 'query', 'schema': {'type': 'integer', 'default': 1}}],
                'responses': {'200': {'description': 'ok'}}
            }}}
        })
        result, _, _ = match(engine, '/items')
        assert result.query == {'page': 1}


class TestHeaderParameters:
    """Test header parameter handling."""

    def test_header_names_are_case_insensitive(self, v3_engine):
        result, error, _ = match(v3_engine, '/people', headers={'X-Tenant': 'acme'})

        assert error is None
        assert result.headers['x-tenant'] == 'acme'

    def test_header_enum_enforced(self, v3_engine):
        _, error, _ = match(v3_engine, '/people', headers={'x-tenant': 'initech'})

        assert error.status_code == 400
        assert 'x-tenant' in str(error)

    def test_undeclared_headers_pass_through(self, v3_engine):
        result, _, _ = match(v3_engine, '/people', headers={'x-request-id': 'abc'})
        assert result.headers['x-request-id'] == 'abc'


class TestRequestBody:
    """Test request body validation."""

    def test_valid_body(self, v3_engine):
        result, error, _ = match(v3_engine, '/people', method='POST',
                                 headers={'content-type': 'application/json'}, body={'name': 'Ada'})

        assert error is None
        assert result.body == {'name': 'Ada'}
        assert result.has_body is True

    def test_missing_required_body(self, v3_engine):
        _, error, _ = match(v3_engine, '/people', method='POST')

        assert error.status_code == 400
        assert 'Missing required request body' in str(error)

    def test_invalid_body(self, v3_engine):
        _, error, _ = match(v3_engine, '/people', method='POST',
                            headers={'content-type': 'application/json'}, body={'name': ''})

        assert error.status_code == 400
        assert 'Invalid request body' in str(error)

    def test_additional_property_rejected(self, v3_engine):
        _, error, _ = match(v3_engine, '/people', method='POST',
                            headers={'content-type': 'application/json'}, body={'name': 'Ada', 'age': 3})
        assert error.status_code == 400

    def test_unsupported_content_type(self, v3_engine):
        _, error, _ = match(v3_engine, '/people', method='POST',
                            headers={'content-type': 'text/csv'}, body='name\nAda')

        assert error.status_code == 400
        assert 'text/csv' in str(error)


class TestBuildResponse:
    """Test response validation and serialization."""

    def test_valid_body(self, v3_engine):
        operation = v3_engine.operations['GET /people/{id}']
        representation, error, _ = operation.build_response(
            200, SchemaValue({'id': 1, 'name': 'Ada'}), {'content-type': 'application/json'})

        assert error is None
        assert representation.status_code == 200
        assert representation.has_body is True
        assert representation.schema['type'] == 'object'

    def test_invalid_body_is_500(self, v3_engine):
        operation = v3_engine.operations['GET /people/{id}']
        _, error, _ = operation.build_response(200, {'id': 'one'}, {'content-type': 'application/json'})

        assert error.status_code == 500
        assert 'Invalid response body' in str(error)

    def test_undeclared_code_is_500(self, v3_engine):
        operation = v3_engine.operations['GET /people/{id}']
        _, error, _ = operation.build_response(503, None)

        assert error.status_code == 500
        assert '503' in str(error)

    def test_default_response_covers_any_code(self, v3_engine):
        operation = v3_engine.operations['GET /status']
        representation, error, _ = operation.build_response(200, {'ok': True}, {'content-type': 'application/json'})

        assert error is None
        assert representation.status_code == 200

    def test_content_type_must_be_declared(self, v3_engine):
        operation = v3_engine.operations['GET /people/{id}']
        _, error, _ = operation.build_response(200, {'id': 1, 'name': 'Ada'}, {'content-type': 'text/html'})

        assert 'Content type not allowed' in str(error)

    def test_response_header_serialized(self, v3_engine):
        operation = v3_engine.operations['GET /people/{id}']
        representation, error, _ = operation.build_response(
            200, {'id': 1, 'name': 'Ada'}, {'content-type': 'application/json', 'x-rate-limit': 10})

        assert error is None
        assert representation.headers['x-rate-limit'].value == '10'

    def test_invalid_response_header(self, v3_engine):
        operation = v3_engine.operations['GET /people/{id}']
        _, error, _ = operation.build_response(
            200, {'id': 1, 'name': 'Ada'}, {'content-type': 'application/json', 'x-rate-limit': 'many'})

        assert error.status_code == 500
        assert 'x-rate-limit' in str(error)

    def test_dates_serialized(self):
        from datetime import date

        engine = OpenAPIEngine({
            'openapi': '3.0.0',
            'info': {'title': 't', 'version': '1'},
            'paths': {'/born': {'get': {'responses': {'200': {
                'description': 'ok',
                'content': {'application/json': {'schema': {
                    'type': 'object', 'properties': {'born': {'type': 'string', 'format': 'date'}}
                }}}
            }}}}}
        })
        operation = engine.operations['GET /born']
        representation, error, _ = operation.build_response(200, {'born': date(2000, 1, 2)})

        assert error is None
        assert representation.body == {'born': '2000-01-02'}


class TestNegotiation:
    """Test content negotiation."""

    def test_parse_accept_orders_by_quality(self):
        ranges = parse_accept('text/html;q=0.5, application/json')

        assert ranges.best == 'application/json'
        assert ranges.quality('text/html') == 0.5

    def test_empty_accept_takes_anything(self):
        assert parse_accept('').quality('image/png') == 1

    def test_specific_range_wins_tie(self):
        assert match_content_types('*/*, application/json', ['text/plain', 'application/json']) == [
            'application/json', 'text/plain'
        ]

    def test_quality_orders_matches(self):
        assert match_content_types('text/plain;q=0.4, application/json;q=0.8', ['text/plain', 'application/json']) == [
            'application/json', 'text/plain'
        ]

    def test_wildcard_subtype(self):
        assert match_content_types('application/*', ['text/plain', 'application/json']) == ['application/json']

    def test_zero_quality_excluded(self):
        assert match_content_types('application/json;q=0', ['application/json']) == []

    def test_zero_quality_not_readmitted_by_wildcard(self):
        assert match_content_types('application/json;q=0, */*', ['application/json']) == []

    def test_zero_quality_keeps_other_types(self):
        assert match_content_types('application/json;q=0, */*', ['application/json', 'text/plain']) == ['text/plain']

    def test_declared_parameters_ignored(self):
        assert match_content_types('text/plain', ['text/plain; charset=utf-8']) == ['text/plain; charset=utf-8']

    def test_operation_negotiation(self, v3_engine):
        operation = v3_engine.operations['GET /people/{id}']

        assert operation.negotiate(200, 'application/json').value == ['application/json']
        assert operation.negotiate(404, '*/*').value == ['text/plain']

    def test_no_code(self, v3_engine):
        _, error, _ = v3_engine.operations['GET /people/{id}'].negotiate(500)
        assert error.code == 'NO_CODE'

    def test_no_types_specified(self, v3_engine):
        _, error, _ = v3_engine.operations['GET /counter'].negotiate(204)
        assert error.code == 'NO_TYPES_SPECIFIED'

    def test_no_match(self, v3_engine):
        _, error, _ = v3_engine.operations['GET /people/{id}'].negotiate(200, 'application/xml')

        assert error.code == 'NO_MATCH'
        assert error.status_code == 406

    def test_v2_schema_defaults_to_json(self, v2_engine):
        assert v2_engine.operations['GET /people'].negotiate(200).value == ['application/json']

    def test_v2_produces(self, v2_engine):
        operation = v2_engine.operations['GET /teams']
        assert operation.negotiate(200, 'application/xml').value == ['application/xml']

    def test_v2_without_schema_has_no_types(self, v2_engine):
        _, error, _ = v2_engine.operations['GET /ping'].negotiate(200)
        assert error.code == 'NO_TYPES_SPECIFIED'


class TestRandomValues:
    """Test schema driven random values."""

    def test_object_with_required_properties(self):
        generator = RandomValueGenerator(random.Random(1))
        schema = {
            'type': 'object',
            'required': ['id', 'tags'],
            'properties': {
                'id': {'type': 'integer', 'minimum': 1, 'maximum': 9},
                'tags': {'type': 'array', 'items': {'type': 'string', 'enum': ['a', 'b']}, 'minItems': 1}
            }
        }
        value, error, warning = generator.generate(schema)

        assert error is None
        assert warning is None
        assert 1 <= value['id'] <= 9
        assert value['tags'] and set(value['tags']) <= {'a', 'b'}
        assert validate(schema, value) == []

    def test_same_seed_same_value(self):
        schema = {'type': 'object', 'properties': {'name': {'type': 'string'}, 'score': {'type': 'number'}}}
        first = RandomValueGenerator(random.Random(5)).generate(schema)
        second = RandomValueGenerator(random.Random(5)).generate(schema)
        assert first == second

    @pytest.mark.parametrize('fmt', ['date', 'date-time', 'uuid', 'email'])
    def test_formats_validate(self, fmt):
        schema = {'type': 'string', 'format': fmt}
        value, error, _ = RandomValueGenerator(random.Random(2)).generate(schema)

        assert error is None
        assert validate(schema, value) == []

    def test_exclusive_bounds(self):
        schema = {'type': 'integer', 'minimum': 1, 'maximum': 3, 'exclusiveMinimum': True, 'exclusiveMaximum': True}
        value, _, _ = RandomValueGenerator(random.Random(2)).generate(schema)
        assert value == 2

    def test_pattern_gives_warning(self):
        _, error, warning = RandomValueGenerator().generate({'type': 'string', 'pattern': '^[A-Z]+$'})

        assert error is None
        assert 'pattern' in warning

    def test_impossible_bounds_give_error(self, v3_engine):
        _, error, _ = v3_engine.randomize({'type': 'integer', 'minimum': 5, 'maximum': 1})

        assert error is not None
        assert error.status_code == 422

    def test_zero_max_length_gives_empty_string(self):
        value, error, _ = RandomValueGenerator(random.Random(3)).generate({'type': 'string', 'maxLength': 0})

        assert error is None
        assert value == ''

    def test_min_length_respected(self):
        value, error, _ = RandomValueGenerator(random.Random(3)).generate({'type': 'string', 'minLength': 4, 'maxLength': 4})

        assert error is None
        assert len(value) == 4

    def test_untyped_schema_gives_warning(self):
        _, _, warning = RandomValueGenerator().generate({'description': 'anything'})
        assert 'Unable to determine data type' in warning


class TestDereference:
    """Test $ref resolution."""

    def test_references_resolved(self, v3_engine):
        schema = v3_engine.operations['GET /people/{id}'].get_response(200).schema_for('application/json')
        assert schema['properties']['name'] == {'type': 'string'}

    def test_recursive_schema_becomes_cycle(self):
        document = dereference({
            'paths': {'/tree': {'get': {'responses': {'200': {'schema': {'$ref': '#/definitions/Node'}}}}}},
            'definitions': {'Node': {
                'type': 'object',
                'properties': {'children': {'type': 'array', 'items': {'$ref': '#/definitions/Node'}}}
            }}
        })
        schema = document['paths']['/tree']['get']['responses']['200']['schema']
        assert schema['properties']['children']['items'] is schema

    def test_recursive_schema_validates(self):
        node = {
            'type': 'object',
            'required': ['name'],
            'properties': {'name': {'type': 'string'}}
        }
        node['properties']['children'] = {'type': 'array', 'items': node}

        assert validate(node, {'name': 'root', 'children': [{'name': 'leaf', 'children': []}]}) == []
        assert validate(node, {'name': 'root', 'children': [{'children': []}]}) != []

    def test_missing_reference_rejected(self):
        with pytest.raises(ValueError, match='Unable to resolve reference'):
            dereference({'schema': {'$ref': '#/definitions/Missing'}})

    def test_remote_reference_rejected(self):
        with pytest.raises(ValueError, match='Only local references'):
            dereference({'schema': {'$ref': 'other.yaml#/Thing'}})


class TestSchemaValidation:
    """Test OpenAPI schema dialects."""

    def test_nullable(self):
        assert validate({'type': 'string', 'nullable': True}, None) == []
        assert validate({'type': 'string'}, None) != []

    def test_boolean_exclusive_minimum(self):
        schema = {'type': 'integer', 'minimum': 1, 'exclusiveMinimum': True}

        assert validate(schema, 1) != []
        assert validate(schema, 2) == []

    def test_example_keyword_ignored(self):
        assert validate({'type': 'object', 'example': {'a': 1}}, {}) == []

    def test_error_path_reported(self):
        schema = {'type': 'object', 'properties': {'id': {'type': 'integer'}}}

        assert validate(schema, {'id': 'x'}) == ["/id: 'x' is not of type 'integer'"]

    def test_openapi_31_type_lists(self):
        assert validate({'type': ['string', 'null']}, None, version=31) == []


class TestSwaggerUpgrade:
    """Test the in-memory Swagger 2.0 to OpenAPI 3.0 upgrade."""

    @pytest.fixture
    def document(self):
        return {
            'swagger': '2.0',
            'info': {'title': 't', 'version': '1'},
            'consumes': ['application/json'],
            'x-controller': 'root',
            'parameters': {'Limit': {'name': 'limit', 'in': 'query', 'type': 'integer', 'maximum': 10}},
            'paths': {'/things/{id}': {
                'x-controller': 'things',
                'parameters': [{'name': 'id', 'in': 'path', 'required': True, 'type': 'integer'}],
                'put': {
                    'parameters': [
                        {'$ref': '#/parameters/Limit'},
                        {'name': 'thing', 'in': 'body', 'required': True, 'schema': {'$ref': '#/definitions/Thing'}}
                    ],
                    'responses': {'200': {
                        'description': 'ok',
                        'schema': {'$ref': '#/definitions/Thing'},
                        'headers': {'x-count': {'type': 'integer'}},
                        'examples': {'application/json': {'name': 'lamp'}}
                    }}
                }
            }},
            'definitions': {'Thing': {'type': 'object', 'properties': {'name': {'type': 'string'}}}}
        }

    def test_definitions_become_components(self, document):
        upgraded = upgrade(document)

        assert upgraded['openapi'] == '3.0.3'
        assert 'Thing' in upgraded['components']['schemas']
        body = upgraded['paths']['/things/{id}']['put']['requestBody']
        assert body['content']['application/json']['schema'] == {'$ref': '#/components/schemas/Thing'}
        assert body['required'] is True

    def test_parameters_merged_and_inlined(self, document):
        parameters = upgrade(document)['paths']['/things/{id}']['put']['parameters']

        assert {(p['name'], p['in']) for p in parameters} == {('id', 'path'), ('limit', 'query')}
        limit = next(p for p in parameters if p['name'] == 'limit')
        assert limit['schema'] == {'type': 'integer', 'maximum': 10}

    def test_response_content_headers_and_examples(self, document):
        response = upgrade(document)['paths']['/things/{id}']['put']['responses']['200']

        assert response['content']['application/json']['example'] == {'name': 'lamp'}
        assert response['headers']['x-count'] == {'schema': {'type': 'integer'}}

    def test_extensions_kept(self, document):
        upgraded = upgrade(document)

        assert upgraded['x-controller'] == 'root'
        assert upgraded['paths']['/things/{id}']['x-controller'] == 'things'

    def test_form_parameters_become_body(self):
        upgraded = upgrade({
            'swagger': '2.0',
            'info': {'title': 't', 'version': '1'},
            'paths': {'/login': {'post': {
                'consumes': ['application/x-www-form-urlencoded'],
                'parameters': [
                    {'name': 'user', 'in': 'formData', 'type': 'string', 'required': True},
                    {'name': 'remember', 'in': 'formData', 'type': 'boolean'}
                ],
                'responses': {'204': {'description': 'ok'}}
            }}}
        })
        schema = upgraded['paths']['/login']['post']['requestBody']['content']['application/x-www-form-urlencoded']['schema']

        assert schema['required'] == ['user']
        assert schema['properties']['remember'] == {'type': 'boolean'}

    def test_upgraded_engine_validates_body(self, document):
        engine = OpenAPIEngine(document)
        result, error, _ = match(engine, '/things/3?limit=2', method='PUT',
                                 headers={'content-type': 'application/json'}, body={'name': 'lamp'})

        assert error is None
        assert result.path == {'id': 3}
        assert result.body == {'name': 'lamp'}

        _, error, _ = match(engine, '/things/3', method='PUT',
                            headers={'content-type': 'application/json'}, body={'name': 5})
        assert error.status_code == 400


class TestExtensions:
    """Test extension lookup across levels."""

    @pytest.fixture
    def engine(self):
        return OpenAPIEngine({
            'openapi': '3.0.0',
            'info': {'title': 't', 'version': '1'},
            'x-controller': 'root',
            'paths': {
                '/a': {
                    'x-controller': 'path',
                    'get': {'x-controller': 'operation', 'responses': {'200': {'description': 'ok'}}},
                    'put': {'responses': {'200': {'description': 'ok'}}}
                },
                '/b': {'get': {'responses': {'200': {'description': 'ok'}}}}
            }
        })

    def test_operation_level_wins(self, engine):
        assert engine.operations['GET /a'].extension('x-controller') == 'operation'

    def test_path_level_second(self, engine):
        assert engine.operations['PUT /a'].extension('x-controller') == 'path'

    def test_root_level_last(self, engine):
        assert engine.operations['GET /b'].extension('x-controller') == 'root'

    def test_missing_extension(self, engine):
        assert engine.operations['GET /b'].extension('x-mock-implemented') is None


class TestDocumentLoading:
    """Test engine construction."""

    def test_rejects_unknown_document(self):
        with pytest.raises(ValueError, match='neither Swagger 2.0 nor OpenAPI 3.x'):
            OpenAPIEngine({'info': {}})

    def test_rejects_invalid_document(self):
        with pytest.raises(ValueError, match="Invalid OpenAPI document"):
            OpenAPIEngine({'openapi': '3.0.3', 'paths': {}})

    def test_rejects_invalid_swagger_document(self):
        with pytest.raises(ValueError, match="Invalid OpenAPI document"):
            OpenAPIEngine({'swagger': '2.0', 'info': {'title': 't', 'version': '1'}, 'paths': {'/a': {'get': {}}}})

    def test_versions(self, v2_engine, v3_engine):
        assert v2_engine.version == 2
        assert v3_engine.version == 3

    def test_openapi_31_schema_version(self):
        engine = OpenAPIEngine({'openapi': '3.1.0', 'info': {'title': 't', 'version': '1'}, 'paths': {}})
        assert engine.schema_version == 31

    def test_from_yaml_file(self, tmp_path):
        spec_file = tmp_path / 'openapi.yaml'
        spec_file.write_text(
            "openapi: 3.0.0\n"
            "info: {title: t, version: '1'}\n"
            "paths:\n"
            "  /ping:\n"
            "    get:\n"
            "      responses:\n"
            "        '200': {description: ok}\n"
        )
        engine = OpenAPIEngine.from_file(str(spec_file))
        assert 'GET /ping' in engine.operations

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            OpenAPIEngine.from_file(str(tmp_path / 'missing.yaml'))


class TestEngineProvider:
    """Test lazy engine construction."""

    def test_engine_instance_returned_as_is(self, v3_engine):
        provider = EngineProvider(v3_engine)
        assert asyncio.run(provider.get()) is v3_engine

    def test_document_built_once(self, v3_document):
        provider = EngineProvider(v3_document)

        async def twice():
            return await provider.get(), await provider.get()

        first, second = asyncio.run(twice())
        assert first is second
        assert isinstance(first, OpenAPIEngine)

    def test_async_callable_source(self, v3_document):
        async def load():
            return v3_document

        engine = asyncio.run(EngineProvider(load).get())
        assert 'GET /people' in engine.operations

    def test_json_file_source(self, tmp_path, v2_document):
        spec_file = tmp_path / 'swagger.json'
        spec_file.write_text(json.dumps(v2_document))

        engine = asyncio.run(EngineProvider(str(spec_file), uses_raw_examples=False).get())

        assert engine.version == 2
        assert engine.uses_raw_examples is False


class TestValidateExamples:
    """Test example validation."""

    def test_valid_document_has_no_warnings(self, v3_engine, v2_engine):
        assert validate_examples(v3_engine) == []
        assert validate_examples(v2_engine) == []

    def test_invalid_examples_reported(self):
        engine = OpenAPIEngine({
            'openapi': '3.0.0',
            'info': {'title': 't', 'version': '1'},
            'paths': {'/people': {'get': {'responses': {'200': {
                'description': 'ok',
                'content': {'application/json': {
                    'schema': {'type': 'object', 'required': ['id'], 'properties': {'id': {'type': 'integer'}}},
                    'example': {'id': 'seven'},
                    'examples': {'good': {'value': {'id': 7}}, 'bad': {'value': {}}}
                }}
            }}}}}
        })
        warnings = validate_examples(engine)

        assert len(warnings) == 2
        assert any('/examples/bad' in w for w in warnings)
        assert any(w.endswith("'seven' is not of type 'integer'") for w in warnings)
