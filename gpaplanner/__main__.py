"""
Package entry point.

Allows running the application via:

    python -m gpaplanner

This simply forwards execution to gpaplanner.cli.main().
"""

from gpaplanner.cli import main

if __name__ == "__main__":
    main()
