#!/usr/bin/env python3
"""
reStrike Simulation Mode

Quick launcher for testing without a PSS console.
Equivalent to: python run.py --simulate --debug
"""

import sys
from pathlib import Path

# Add restrike package to path
sys.path.insert(0, str(Path(__file__).parent))

# Import and run with simulation flags
sys.argv.extend(["--simulate", "--debug"])

from restrike.main import main

if __name__ == "__main__":
    sys.exit(main())
