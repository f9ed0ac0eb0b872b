"""Allow running as `python -m wghub`."""

from wghub.cli.main import app

app()
