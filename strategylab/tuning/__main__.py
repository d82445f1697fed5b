"""
CLI entry point for parameter tuning.

Allows running as: python -m strategylab.tuning
"""

import sys

from strategylab.tuning.optimizer import main

if __name__ == "__main__":
    sys.exit(main())
