"""The 'validate' command: check a config file without touching the cloud."""

import logging

from cvmbake.commands import load_config_or_exit

logger = logging.getLogger(__name__)


def handle_validate(args):
    """CLI handler for 'validate'."""
    config = load_config_or_exit(args.config)
    logger.info(f"Config OK: image '{config.image_name}' from {config.source_image_id or config.source_image_name} "
                f"on {config.instance_type} in {config.region}")


def register_validate_command(subparsers):
    """Register the 'validate' command."""
    parser = subparsers.add_parser("validate", help="Validate a build config file")
    parser.add_argument("config", help="Path to the build config YAML")
    parser.set_defaults(func=handle_validate)
