"""
Entry point.

Run: python -m orderflow --help
"""

import sys

from orderflow.cli import main


if __name__ == "__main__":
    sys.exit(main())
