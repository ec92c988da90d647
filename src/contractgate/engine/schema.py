"""
ContractGate Schema Support

Validation, (de)serialization and random value generation for OpenAPI
schema objects.

Features:
- openapi-schema-validator backed validation with readable error paths
- date / date-time deserialization and serialization
- Schema-driven random values for mocking
"""

import random
import string
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from openapi_schema_validator import OAS30Validator, OAS31Validator, oas30_format_checker, oas31_format_checker


@dataclass
class SchemaValue:
    """Wrapper marking a value that should be serialized against a schema."""

    value: Any


def extract_value(value: Any) -> Any:
    """Unwrap a SchemaValue (nested wrappers included); other values pass through."""
    while isinstance(value, SchemaValue):
        value = value.value
    return value


def schema_validator(schema: Dict[str, Any], version: int = 30):
    """Build the OpenAPI schema validator for a document version (31 for 3.1, otherwise 3.0 rules)."""
    if version == 31:
        return OAS31Validator(schema, format_checker=oas31_format_checker)
    return OAS30Validator(schema, format_checker=oas30_format_checker)


def validate(schema: Dict[str, Any], value: Any, version: int = 30, location: str = '') -> List[str]:
    """
    Validate a value against an OpenAPI schema.

    Args:
        schema: Dereferenced OpenAPI schema object
        value: Value to check (already serialized, e.g. dates as strings)
        version: 31 for OpenAPI 3.1 documents, anything else uses 3.0 rules
        location: Prefix for error messages

    Returns:
        List of error messages (empty when valid)
    """
    if not schema:
        return []

    validator = schema_validator(schema, version)
    messages = []
    for error in sorted(validator.iter_errors(value), key=lambda e: list(e.absolute_path)):
        path = '/'.join(str(p) for p in error.absolute_path)
        where = f"{location}/{path}" if path else location
        messages.append(f"{where}: {error.message}" if where else error.message)
    return messages


def merge_all_of(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten `allOf` into a single schema (properties and required are merged)."""
    if not isinstance(schema, dict) or 'allOf' not in schema:
        return schema

    merged: Dict[str, Any] = {k: v for k, v in schema.items() if k != 'allOf'}
    for part in schema['allOf']:
        part = merge_all_of(part)
        for key, value in part.items():
            if key == 'properties':
                merged.setdefault('properties', {}).update(value)
            elif key == 'required':
                merged['required'] = list(dict.fromkeys(merged.get('required', []) + list(value)))
            else:
                merged.setdefault(key, value)
    return merged


def _schema_type(schema: Dict[str, Any]) -> Optional[str]:
    schema_type = schema.get('type')
    if isinstance(schema_type, list):
        schema_type = next((t for t in schema_type if t != 'null'), None)
    if schema_type:
        return schema_type
    if 'properties' in schema or 'additionalProperties' in schema:
        return 'object'
    if 'items' in schema:
        return 'array'
    return None


def _parse_datetime(value: str) -> datetime:
    if value.endswith('Z') or value.endswith('z'):
        value = value[:-1] + '+00:00'
    return datetime.fromisoformat(value)


def deserialize(schema: Dict[str, Any], value: Any, version: int = 30) -> Tuple[Any, Optional[str]]:
    """
    Validate a serialized value and convert it into its Python form.

    Strings with `format: date` / `date-time` become date / datetime
    objects; everything else is returned as a copy.

    Returns:
        Tuple of (value, error message or None)
    """
    errors = validate(schema, value, version)
    if errors:
        return None, '\n'.join(errors)
    try:
        return _convert(schema, value, _deserialize_scalar), None
    except ValueError as e:
        return None, str(e)


def serialize(schema: Dict[str, Any], value: Any) -> Any:
    """Convert Python values (dates, datetimes) into their serialized form."""
    return _convert(schema, value, _serialize_scalar)


def _deserialize_scalar(schema: Dict[str, Any], value: Any) -> Any:
    if isinstance(value, str) and _schema_type(schema) == 'string':
        fmt = schema.get('format')
        if fmt == 'date':
            return date.fromisoformat(value)
        if fmt == 'date-time':
            return _parse_datetime(value)
    return value


def _serialize_scalar(schema: Dict[str, Any], value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def _convert(schema: Any, value: Any, scalar) -> Any:
    if not isinstance(schema, dict):
        schema = {}
    schema = merge_all_of(schema)

    if isinstance(value, dict):
        properties = schema.get('properties', {})
        additional = schema.get('additionalProperties')
        result = {}
        for key, item in value.items():
            sub = properties.get(key, additional if isinstance(additional, dict) else {})
            result[key] = _convert(sub, item, scalar)
        return result
    if isinstance(value, list):
        items = schema.get('items', {})
        return [_convert(items, item, scalar) for item in value]
    return scalar(schema, value)


class RandomValueGenerator:
    """
    Generates random values that conform to an OpenAPI schema.

    Example:
        generator = RandomValueGenerator()
        value, error, warning = generator.generate({'type': 'integer', 'minimum': 1})
    """

    def __init__(self, rng: Optional[random.Random] = None, max_depth: int = 8):
        self.rng = rng or random.Random()
        self.max_depth = max_depth

    def generate(self, schema: Dict[str, Any]) -> Tuple[Any, Optional[str], Optional[str]]:
        """
        Generate a value.

        Returns:
            Tuple of (value, error, warning)
        """
        if not isinstance(schema, dict):
            return None, 'Unable to generate a random value without a schema', None

        warnings: List[str] = []
        try:
            value = self._generate(schema, warnings, 0, '')
        except ValueError as e:
            return None, str(e), None
        return value, None, '\n'.join(warnings) if warnings else None

    def _generate(self, schema: Dict[str, Any], warnings: List[str], depth: int, location: str) -> Any:
        if depth > self.max_depth * 2:
            raise ValueError(f"{location or '/'}: Schema nesting is too deep to generate a random value")
        schema = merge_all_of(schema)

        if 'enum' in schema and schema['enum']:
            return self.rng.choice(schema['enum'])
        if 'oneOf' in schema or 'anyOf' in schema:
            options = schema.get('oneOf') or schema.get('anyOf')
            return self._generate(self.rng.choice(options), warnings, depth, location)

        schema_type = _schema_type(schema)
        if schema_type == 'object':
            return self._generate_object(schema, warnings, depth, location)
        if schema_type == 'array':
            return self._generate_array(schema, warnings, depth, location)
        if schema_type == 'string':
            return self._generate_string(schema, warnings, location)
        if schema_type == 'integer':
            return int(self._generate_number(schema, integer=True))
        if schema_type == 'number':
            return self._generate_number(schema, integer=False)
        if schema_type == 'boolean':
            return self.rng.random() < 0.5

        warnings.append(f"{location or '/'}: Unable to determine data type for random value generation")
        return None

    def _generate_object(self, schema, warnings, depth, location) -> Dict[str, Any]:
        result = {}
        required = set(schema.get('required', []))
        for name, sub in schema.get('properties', {}).items():
            if sub.get('readOnly') is True and name not in required:
                continue
            # optional properties are included while the nesting stays shallow
            if name in required or (depth < self.max_depth and self.rng.random() < 0.7):
                result[name] = self._generate(sub, warnings, depth + 1, f"{location}/{name}")

        min_props = schema.get('minProperties', 0)
        additional = schema.get('additionalProperties')
        index = 0
        while len(result) < min_props:
            sub = additional if isinstance(additional, dict) else {'type': 'string'}
            result[f"additionalProperty{index}"] = self._generate(sub, warnings, depth + 1, location)
            index += 1
        return result

    def _generate_array(self, schema, warnings, depth, location) -> List[Any]:
        low = schema.get('minItems', 0)
        high = schema.get('maxItems', max(low, 3 if depth < self.max_depth else low))
        if high < low:
            raise ValueError(f"{location or '/'}: maxItems is lower than minItems")
        count = self.rng.randint(low, high)
        items = schema.get('items', {})
        values = []
        attempts = 0
        while len(values) < count:
            value = self._generate(items, warnings, depth + 1, f"{location}/{len(values)}")
            attempts += 1
            if schema.get('uniqueItems') and value in values:
                if attempts > count * 20:
                    raise ValueError(f"{location or '/'}: Unable to generate enough unique items")
                continue
            values.append(value)
        return values

    def _generate_string(self, schema, warnings, location) -> str:
        fmt = schema.get('format')
        if fmt == 'date':
            return (date(2000, 1, 1) + timedelta(days=self.rng.randint(0, 10000))).isoformat()
        if fmt == 'date-time':
            moment = datetime(2000, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=self.rng.randint(0, 10 ** 9))
            return moment.isoformat().replace('+00:00', 'Z')
        if fmt == 'uuid':
            return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))
        if fmt == 'email':
            return f"{self._word(6)}@example.com"
        if fmt in ('uri', 'url'):
            return f"https://example.com/{self._word(8)}"
        if fmt == 'byte':
            return 'Y29udHJhY3RnYXRl'

        if 'pattern' in schema:
            warnings.append(f"{location or '/'}: Cannot generate random value that matches pattern {schema['pattern']}")

        low = schema.get('minLength', min(1, schema.get('maxLength', 1)))
        high = schema.get('maxLength', max(low, 12))
        if high < low:
            raise ValueError(f"{location or '/'}: maxLength is lower than minLength")
        return self._word(self.rng.randint(low, high))

    def _generate_number(self, schema, integer: bool) -> float:
        low = schema.get('minimum')
        high = schema.get('maximum')
        exclusive_low = schema.get('exclusiveMinimum')
        exclusive_high = schema.get('exclusiveMaximum')

        # JSON Schema style numeric exclusive bounds
        if not isinstance(exclusive_low, bool) and exclusive_low is not None:
            low, exclusive_low = exclusive_low, True
        if not isinstance(exclusive_high, bool) and exclusive_high is not None:
            high, exclusive_high = exclusive_high, True

        if low is None and high is None:
            low, high = 0, 1000
        elif low is None:
            low = high - 1000
        elif high is None:
            high = low + 1000

        multiple = schema.get('multipleOf')
        if integer:
            low = int(low) + 1 if exclusive_low else int(-(-low // 1))
            high = int(high) - 1 if exclusive_high and float(high).is_integer() else int(high // 1)
            if high < low:
                raise ValueError('Unable to generate an integer within the given bounds')
            if multiple:
                first = -(-low // multiple) * multiple
                if first > high:
                    raise ValueError(f"No multiple of {multiple} between {low} and {high}")
                return first + multiple * self.rng.randint(0, int((high - first) // multiple))
            return self.rng.randint(low, high)

        if multiple:
            first = -(-low // multiple) * multiple
            steps = int((high - first) // multiple)
            return first + multiple * self.rng.randint(0, max(steps, 0))
        value = self.rng.uniform(low, high)
        if (exclusive_low and value == low) or (exclusive_high and value == high):
            value = (low + high) / 2
        return round(value, 4)

    def _word(self, length: int) -> str:
        return ''.join(self.rng.choice(string.ascii_lowercase) for _ in range(length))
