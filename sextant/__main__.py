"""
Sextant Module Entry Point
===========================

Allows running the Sextant CLI via: python -m sextant
"""

from sextant.cli import main

if __name__ == "__main__":
    main()
