#!/usr/bin/env python3
"""Main entry point for locsquash when run as python -m locsquash."""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
