"""Entry point for auditnav."""

import logging
import sys

from .app import run_app
from .config import Config


def setup_logging(config: Config) -> None:
    """Send log records to the log file; the terminal belongs to the TUI."""
    log_path = config.get_log_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_path,
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for auditnav."""
    args = sys.argv[1:] if argv is None else argv
    try:
        # Load configuration
        config = Config.load()
        setup_logging(config)

        # An explicit topic on the command line overrides the configured one
        start_topic = args[0] if args else None

        # Run the application
        run_app(config, start_topic=start_topic)

        return 0
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
