"""Entry point for `python -m kubewatch`.

Usage:
    python -m kubewatch watch /api/v1/pods
    uv run python -m kubewatch watch /api/v1/pods
"""

from __future__ import annotations

from kubewatch.cli import cli

cli()
