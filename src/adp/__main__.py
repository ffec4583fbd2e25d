"""Allow running adp as ``python -m adp``."""

from .cli import app

app(prog_name="adp")
