"""
CLI entry point for the indicators module.

Allows running as: python -m strategylab.indicators
"""

import sys

from strategylab.indicators.main import main

if __name__ == "__main__":
    sys.exit(main())
