"""
Main entry point for running the package as a module.

Usage:
    python -m imgconv status
    python -m imgconv import -l library.json --root /srv/uploads
    python -m imgconv batch convert -l library.json
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
