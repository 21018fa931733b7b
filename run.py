#!/usr/bin/env python
"""
Launcher script for the Timber Ledger command line.

This script ensures the correct Python path is set before launching the CLI.
"""

import sys
from pathlib import Path

# Add the src directory to the Python path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from timber_ledger.cli import main

if __name__ == "__main__":
    sys.exit(main())
