"""The 'build' command: run the full image pipeline."""

import asyncio
import logging
import sys

from cvmbake.build import run_build
from cvmbake.commands import load_config_or_exit

logger = logging.getLogger(__name__)


def handle_build(args):
    """CLI handler for 'build'."""
    config = load_config_or_exit(args.config)
    if args.force_delete:
        config.force_delete = True

    state = asyncio.run(run_build(config, timeout=args.timeout))

    for err in state.cleanup_errors:
        logger.warning(f"Cleanup error: {err}")
    if state.error is not None:
        logger.error(f"Build failed: {state.error}")
        sys.exit(1)

    logger.info(f"Build finished. Image: {config.image_name} ({state.image_id}) in {config.region}")


def register_build_command(subparsers):
    """Register the 'build' command."""
    parser = subparsers.add_parser("build", help="Build a custom CVM image from a config file")
    parser.add_argument("config", help="Path to the build config YAML")
    parser.add_argument("--force-delete", action="store_true", help="Delete an existing image with the same name first")
    parser.add_argument("--timeout", type=int, default=None, help="Overall build deadline in seconds (default: build_timeout from config, or none)")
    parser.set_defaults(func=handle_build)
