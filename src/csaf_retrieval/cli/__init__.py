from __future__ import annotations

from csaf_retrieval.cli.cli import cli


def run() -> None:
    cli()
