"""kubeapp command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``kubeapp`` script).
"""

from kubeapp.cli.main import cli

__all__ = ["cli"]
