"""Entry point for `python -m kubesource`.

Usage:
    python -m kubesource
    kubesource
"""

from __future__ import annotations

from kubesource.app import run_cli

run_cli()
