"""Allow ``python -m mcfetcher``."""

from mcfetcher.cli import app

app()
