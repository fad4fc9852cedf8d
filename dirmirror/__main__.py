"""Entry point for Dir Mirror.

Usage:
    python -m dirmirror --source DIR --destination DIR --interval 60
    python -m dirmirror --once        Run a single pass and exit
"""

import sys


def main() -> None:
    """Delegate to the headless service CLI."""
    from dirmirror.service import main as service_main

    sys.exit(service_main())


if __name__ == "__main__":
    main()
