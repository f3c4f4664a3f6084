"""CLI entry point."""

import os
import shlex
import sys

from common.logging_config import setup_logging
from cli.repl import repl_loop, run_line


def main() -> None:
    """
    Entry point for CLI.

    With arguments (``mediasync-cli stats``) a single command runs and the
    process exits; without arguments the interactive REPL starts.
    """
    debug = '--debug' in sys.argv
    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level)

    if debug:
        logger.info("Debug logging enabled")
        sys.argv.remove('--debug')

    args = sys.argv[1:]
    try:
        if args:
            logger.info(f"Running one-shot command: {args[0]}")
            print(run_line(shlex.join(args)))
        else:
            logger.info("CLI starting...")
            repl_loop()
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        logger.info("CLI exiting")


if __name__ == "__main__":
    main()
