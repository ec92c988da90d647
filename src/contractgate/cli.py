"""
ContractGate CLI

Command-line interface for the ContractGate server and contract tooling.

Commands:
    serve       - Start the contract enforcing server
    validate    - Check a contract document and every example in it

Examples:
    # Mock every operation of a contract
    contractgate serve openapi.yaml --mock-fallback --port 8080

    # Real controllers under /api
    contractgate serve openapi.yaml --controllers ./controllers --base-url /api

    # Start from a YAML configuration file
    contractgate serve --config gate.yaml

    # Check examples
    contractgate validate openapi.yaml
"""

import argparse
import logging
import sys
from typing import List, Optional

import yaml

from .common.errors import ConfigurationError
from .common.utils import DocumentLoader
from .config import GateConfig
from .engine import OpenAPIEngine, validate_examples
from .server import ContractGate


def cmd_serve(args):
    """
    Start the contract enforcing server.

    Args:
        args: Parsed command-line arguments
    """
    print("ContractGate Server")

    if args.config:
        config = GateConfig.from_yaml(args.config)
    else:
        config = GateConfig()

    # command line values override the configuration file
    if args.spec:
        config.spec = args.spec
    if args.controllers:
        config.controllers = args.controllers
    if args.base_url is not None:
        config.base_url = args.base_url.rstrip('/')
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.log_level:
        config.log_level = args.log_level
    if args.mock_fallback:
        config.mock_fallback = True
    if args.allow_query:
        config.enforcer['allow_other_query_parameters'] = list(args.allow_query)

    if not config.spec:
        print("Error: an OpenAPI document is required (positional spec or 'spec' in --config)")
        sys.exit(1)

    logging.basicConfig(level=getattr(logging, config.log_level.upper()), format='%(levelname)s %(name)s: %(message)s')

    try:
        gate = ContractGate.from_config(config)
    except (ConfigurationError, ValueError, TypeError) as e:
        print(f"Error: invalid configuration: {e}")
        sys.exit(1)

    gate.start()


def cmd_validate(args):
    """
    Validate a contract document and every example in it.

    The document is checked against the Swagger 2.0 / OpenAPI 3.x
    meta-schema first (openapi-spec-validator). Exits with status 1 on the
    first stage that reports a problem.

    Args:
        args: Parsed command-line arguments
    """
    print(f"Validating {args.spec}")

    try:
        document = DocumentLoader(args.spec).load()
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error: failed to load contract: {e}")
        sys.exit(1)

    try:
        engine = OpenAPIEngine(document)
    except ValueError as e:
        print(f"Error: contract is not valid: {e}")
        sys.exit(1)
    print("Document is a valid OpenAPI document")

    warnings = validate_examples(engine)
    for warning in warnings:
        print(warning)

    if warnings:
        print(f"\n{len(warnings)} example(s) failed validation")
        sys.exit(1)

    print("All examples are valid")


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='contractgate',
        description='OpenAPI contract enforcement and mocking',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Serve command
    serve_parser = subparsers.add_parser('serve', help='Start the contract enforcing server')
    serve_parser.add_argument('spec', nargs='?', help='OpenAPI document (JSON or YAML)')
    serve_parser.add_argument('-c', '--config', help='YAML configuration file')
    serve_parser.add_argument('--controllers', help='Directory holding controller modules')
    serve_parser.add_argument('--base-url', help='Mount path of the contract (default: /)')
    serve_parser.add_argument('--host', help='Host to bind (default: 127.0.0.1)')
    serve_parser.add_argument('-p', '--port', type=int, help='Port to bind (default: 8080)')
    serve_parser.add_argument('--mock-fallback', action='store_true', help='Mock every request no controller answered')
    serve_parser.add_argument('--allow-query', nargs='+', help='Undeclared query parameters to accept')
    serve_parser.add_argument('--log-level', choices=['debug', 'info', 'warning', 'error'],
                              help='Log level (default: info)')

    # Validate command
    validate_parser = subparsers.add_parser('validate', help='Validate contract examples against their schemas')
    validate_parser.add_argument('spec', help='OpenAPI document (JSON or YAML)')

    args = parser.parse_args(argv)

    # Dispatch to command handler
    if args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'validate':
        cmd_validate(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
