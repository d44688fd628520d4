"""Entry point when run as a module: ``python -m mentor_match --help``."""

from mentor_match.cli import cli

if __name__ == "__main__":
    cli()
