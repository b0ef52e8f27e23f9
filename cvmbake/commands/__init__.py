"""CLI subcommands."""

import logging
import sys

from cvmbake.cloud.errors import ConfigError
from cvmbake.config import load_config
from cvmbake.redact import register_secret

logger = logging.getLogger(__name__)


def load_config_or_exit(config_path):
    """Load and validate *config_path*, exiting with status 1 on any problem."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    register_secret(config.secret_key)
    register_secret(config.security_token)
    register_secret(config.ssh_password)
    return config
