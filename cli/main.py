"""CLI entry point."""

import os
import sys

from common.logging_config import setup_logging
from cli.repl import repl_loop


def main() -> None:
    """Entry point for the vault CLI."""
    debug = '--debug' in sys.argv
    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'WARNING')

    # Handlers for the packages the CLI drives
    logger = setup_logging('cli', log_level=log_level)
    setup_logging('vault', log_level=log_level)

    if debug:
        logger.info("Debug logging enabled")
        sys.argv.remove('--debug')

    logger.info("Vault CLI starting...")
    try:
        repl_loop()
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        logger.info("Vault CLI exiting")


if __name__ == "__main__":
    main()
