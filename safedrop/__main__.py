#!/usr/bin/env python3
"""
SafeDrop CLI entry point for `python -m safedrop`.

Usage:
    python -m safedrop scan crate.mir.json
    python -m safedrop scan dumps/ --format sarif -o results.sarif
    python -m safedrop cfg crate.mir.json --function main
"""

import sys
from safedrop.cli import main

if __name__ == "__main__":
    sys.exit(main())
