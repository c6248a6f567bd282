"""
Entry point for running squeezeclip as a module: python -m squeezeclip

This allows the package to be executed directly:
    python -m squeezeclip clip.mp4 -o out -s 8
    python -m squeezeclip --help
"""

import sys

from squeezeclip.cli import main

if __name__ == "__main__":
    sys.exit(main())
