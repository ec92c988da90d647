#!/usr/bin/env python3
"""
ContractGate CLI

Run ContractGate from a source checkout without installing it.

Examples:
    python3 contractgate-cli.py serve openapi.yaml --mock-fallback
    python3 contractgate-cli.py validate openapi.yaml
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from contractgate.cli import main


if __name__ == '__main__':
    main()
