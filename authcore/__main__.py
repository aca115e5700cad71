"""CLI entry point.

Usage:
    python -m authcore <command> [OPTIONS]

Commands:
    migrate          Apply SQL migrations
    create-admin     Create an admin username/password account
    sweep-sessions   Delete expired sessions
    health           Check database and Redis connectivity
"""

from authcore.cli import cli


def main() -> None:
    """Entry point for ``python -m authcore``."""
    cli()


if __name__ == "__main__":
    main()
