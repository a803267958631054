"""Console-script entry point: `container-deployer [--cleanup] [--config PATH]`."""

from __future__ import annotations

import sys
from typing import Optional, Sequence

from .cli import run_cli


def app_main(argv: Optional[Sequence[str]] = None) -> None:
    """Run the CLI and exit with its status (0 success, 1 failure)."""
    sys.exit(run_cli(list(argv) if argv is not None else None))


if __name__ == "__main__":  # pragma: no cover
    app_main()
