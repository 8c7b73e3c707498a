#!/usr/bin/env python3
"""
Mocker - configuration-driven HTTP mock server

This is a convenience wrapper that calls the packaged CLI.
The actual implementation is in src/mocker/cli.py

Usage:
    python mocker-serve.py serve mocker.yaml --port 8080

For more information, see README.md
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from mocker.cli import main

if __name__ == '__main__':
    main()
