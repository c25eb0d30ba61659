"""
Imphash Module Entry Point
===========================

Allows running the CLI via: python -m imphash
"""

from imphash.cli import main

if __name__ == "__main__":
    main()
