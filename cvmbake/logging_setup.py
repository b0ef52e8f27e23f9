"""CLI logging setup."""

import logging
import sys

from cvmbake.redact import SecretRedactingFilter


def setup_cli_logging(verbose=False):
    """Configure the root logger for CLI commands.

    The default is a plain ``%(message)s`` format at INFO. ``verbose``
    switches to DEBUG and prefixes each line with the logger name, which
    also shows every API call made.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    fmt = "[%(name)s] %(message)s" if verbose else "%(message)s"
    handler.setFormatter(logging.Formatter(fmt))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)
    if not verbose:
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
