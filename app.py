"""Entrypoint for running the packaged Streamlit app from a source checkout."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Sequence


def _ensure_src_on_path() -> None:
    """Add the local ``src`` directory to ``sys.path`` when running from source."""

    src_path = Path(__file__).resolve().parent / "src"
    if src_path.exists() and str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


def main(argv: Sequence[str] | None = None) -> None:
    """Delegate to the CLI so ``python app.py`` behaves like ``rad-progression``."""

    _ensure_src_on_path()
    from rad_progression.cli import main as cli_main

    cli_main(argv)


if __name__ == "__main__":  # pragma: no cover
    main(sys.argv[1:])
