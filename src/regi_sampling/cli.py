# src/regi_sampling/cli.py
from .commands.root import cli

from .commands import sample_single_view

if __name__ == "__main__":
    cli()
