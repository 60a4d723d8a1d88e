"""CLI entry point for petsanta.cli module.

Enables execution via: python -m petsanta.cli <command>
"""

from petsanta.cli.commands import main

if __name__ == "__main__":
    raise SystemExit(main())
