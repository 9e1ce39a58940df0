#!/usr/bin/env python3
"""
CLI entrypoint wrapper for the school choice matching implementation.
"""

from __future__ import annotations

from SCM.scm_api import run_matching
from SCM.scm_cli import main

__all__ = ["run_matching"]


if __name__ == "__main__":
    raise SystemExit(main())
