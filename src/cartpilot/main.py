"""
CartPilot entry point.

This file handles startup concerns (arg-parsing, logging) and launches the appropriate interface
(API, or API plus the CLI client).
"""

import argparse
import logging
import sys

from cartpilot.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Keep per-request transport logs out of the way
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the CartPilot application.

    This function sets up the command-line interface, initializes logging, and starts the
    application in either API or CLI mode.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Run the CartPilot shopping assistant")
    parser.add_argument(
        "--mode",
        choices=["api", "cli"],
        type=str.lower,
        default="api",
        help="Launch the REST API, or the API plus an interactive CLI (default: api)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Model id sent to the LLM gateway (default from env: %s)" % settings.MODEL,
    )
    args = parser.parse_args(argv)

    # Override settings with command-line arguments
    settings.LOG_LEVEL = args.log_level
    if args.model:
        settings.MODEL = args.model

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting CartPilot [%s mode]", args.mode)
    secrets = {"OPENROUTER_API_KEY", "OPENAI_API_KEY", "BESTBUY_API_KEY"}
    logger.debug("Settings: %s", settings.model_dump(exclude=secrets))

    # Lazy import so settings overrides above are applied before the app is built
    from cartpilot.api.app import run_api  # pylint: disable=import-outside-toplevel

    if args.mode == "api":
        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return

    import threading  # pylint: disable=import-outside-toplevel

    # Start API server in a separate thread
    api_thread = threading.Thread(
        target=run_api,
        kwargs={
            "host": "127.0.0.1",
            "port": settings.API_PORT,
            "reload": False,  # Reload doesn't work well with threading
            "log_level": "warning",
        },
        daemon=True,
    )
    api_thread.start()

    from cartpilot.client.cli import run_cli  # pylint: disable=import-outside-toplevel

    # Run CLI in main thread
    run_cli()


if __name__ == "__main__":
    main()
