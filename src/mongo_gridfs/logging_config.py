import logging
import sys

PACKAGE_LOGGER = "mongo_gridfs"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Route the package's log records to stderr.

    Called once per CLI invocation. --verbose shows progress (DEBUG); the
    default only shows warnings. Library users configure logging themselves.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False

    # Silence noisy libraries
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    return logger
