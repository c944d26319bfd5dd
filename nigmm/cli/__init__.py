"""Command-line tools."""
from .cli import cli, commands, main
from . import mixture
