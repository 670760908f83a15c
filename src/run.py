#!/usr/bin/env python3
"""
reStrike VTA - PSS UDP ingest

Launcher for running from a source checkout.
Equivalent to: restrike [options]
"""

import sys
from pathlib import Path

# Add restrike package to path
sys.path.insert(0, str(Path(__file__).parent))

from restrike.main import main

if __name__ == "__main__":
    sys.exit(main())
