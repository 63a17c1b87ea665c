"""
Module entry point.

Allows execution via: python -m batch_export
"""

import sys

from batch_export.cli import main

if __name__ == "__main__":
    sys.exit(main())
