"""
CLI entry point for the backtest engine.

Allows running as: python -m strategylab.engine
"""

import sys

from strategylab.engine.runner import main

if __name__ == "__main__":
    sys.exit(main())
