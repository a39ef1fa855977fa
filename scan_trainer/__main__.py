"""Launch the scan drill window.

Supports both ``python -m scan_trainer`` and running this file directly.
"""

from __future__ import annotations

import sys
from pathlib import Path


def _add_repo_root_to_path() -> None:
    # Direct execution puts scan_trainer/ itself on sys.path, not its parent.
    repo_root = str(Path(__file__).resolve().parents[1])
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


try:
    from .app import run  # type: ignore[attr-defined]
except ImportError:
    _add_repo_root_to_path()
    from scan_trainer.app import run  # type: ignore[attr-defined]


def main() -> int:
    """Open the settings screen and run until the window is closed."""
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
