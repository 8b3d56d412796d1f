"""CLI entry point."""

import os
import sys

from common.logging_config import setup_logging, setup_package_logging
from cli.repl import repl_loop

LOGGED_PACKAGES = ('uploader', 'relay', 'common')


def main() -> None:
    """Entry point for CLI."""
    debug = '--debug' in sys.argv
    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level)
    setup_package_logging(LOGGED_PACKAGES, log_level=log_level)

    if debug:
        logger.info("Debug logging enabled")
        sys.argv.remove('--debug')

    logger.info("CLI starting...")
    try:
        repl_loop()
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        logger.info("CLI exiting")


if __name__ == "__main__":
    main()
