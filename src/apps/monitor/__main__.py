"""Console entry point for the overlay monitor."""

from apps.monitor.app import app


def main() -> None:
    """Invoke the monitor Typer application."""

    app()


if __name__ == "__main__":
    main()
