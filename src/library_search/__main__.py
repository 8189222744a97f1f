"""
Allow running the CLI as module: python -m library_search
"""

from __future__ import annotations

import sys

from .presentation.cli import main

if __name__ == "__main__":
    sys.exit(main())
