#!/usr/bin/env python3
"""
CLI entrypoint wrapper for the school choice matching implementation.
"""

from __future__ import annotations

if __package__ is None:
    from pathlib import Path
    import sys

    sys.path.append(str(Path(__file__).resolve().parents[1]))
    from SCM.scm_api import run_matching
    from SCM.scm_cli import main
else:
    from .scm_api import run_matching
    from .scm_cli import main

__all__ = ["run_matching"]


if __name__ == "__main__":
    raise SystemExit(main())
