"""kubewatch command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``kubewatch`` script).
"""

from kubewatch.cli.main import cli

__all__ = ["cli"]
