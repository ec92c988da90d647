"""
ContractGate Configuration

Process level configuration for the ContractGate server, loadable from YAML.

Example config.yaml:
    spec: openapi.yaml
    controllers: controllers
    base_url: /api
    port: 8080
    mock_fallback: true
    enforcer:
      allow_other_query_parameters: [trace]
      handle_bad_response: false
    router:
      dependencies:
        people: []
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


@dataclass
class GateConfig:
    """Configuration for the ContractGate server."""

    # Contract and controllers
    spec: Optional[str] = None  # path to the OpenAPI document
    controllers: Optional[Union[str, Dict[str, Any]]] = None  # directory or key -> factory mapping
    base_url: str = ""

    # Middleware options (see MiddlewareOptions / RouterOptions)
    enforcer: Dict[str, Any] = field(default_factory=dict)
    router: Dict[str, Any] = field(default_factory=dict)

    # Mock every enforced request that no controller answered
    mock_fallback: bool = False
    # False copies and deserializes examples before mocking with them
    uses_raw_examples: bool = True

    # Server options
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "info"

    @classmethod
    def from_yaml(cls, yaml_path: str) -> 'GateConfig':
        """
        Load configuration from a YAML file.

        Relative `spec` and `controllers` paths are resolved against the
        directory holding the file.
        """
        with open(yaml_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        base_dir = Path(yaml_path).resolve().parent
        for key in ('spec', 'controllers'):
            value = data.get(key)
            if isinstance(value, str) and not Path(value).is_absolute():
                data[key] = str(base_dir / value)

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GateConfig':
        """Create configuration from dictionary."""
        return cls(
            spec=data.get('spec'),
            controllers=data.get('controllers'),
            base_url=str(data.get('base_url', '')).rstrip('/'),
            enforcer=data.get('enforcer') or {},
            router=data.get('router') or {},
            mock_fallback=bool(data.get('mock_fallback', False)),
            uses_raw_examples=bool(data.get('uses_raw_examples', True)),
            host=data.get('host', '127.0.0.1'),
            port=int(data.get('port', 8080)),
            log_level=data.get('log_level', 'info')
        )
