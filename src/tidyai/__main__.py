"""Main entry point for Tidy AI.

Usage:
    python -m tidyai scan <dir>     # Build a manifest
    python -m tidyai --help         # Show help
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main() or 0)
