"""Entry point for ecs_hosting."""

from .cli import cli


def main() -> None:
    """Entry point for the hosting CLI."""
    cli()


if __name__ == "__main__":
    main()
