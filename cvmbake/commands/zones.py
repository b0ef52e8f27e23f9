"""The 'zones' command: list zones that currently offer an instance type."""

import asyncio
import logging
import os
import sys

from cvmbake.cloud.client import Credentials, CvmClient
from cvmbake.cloud.errors import CvmbakeError
from cvmbake.cloud.zones import DEFAULT_CHARGE_TYPE, candidate_zones

logger = logging.getLogger(__name__)


def _resolve_credentials():
    """Read credentials from ``TENCENTCLOUD_*`` env vars, exiting if unset."""
    secret_id = os.environ.get("TENCENTCLOUD_SECRET_ID", "")
    secret_key = os.environ.get("TENCENTCLOUD_SECRET_KEY", "")
    if not secret_id or not secret_key:
        logger.error("Error: set TENCENTCLOUD_SECRET_ID and TENCENTCLOUD_SECRET_KEY.")
        sys.exit(1)
    return Credentials(secret_id, secret_key, os.environ.get("TENCENTCLOUD_SESSION_TOKEN", ""))


def handle_zones(args):
    """CLI handler for 'zones'."""
    asyncio.run(_handle_zones(args))


async def _handle_zones(args):
    region = args.region or os.environ.get("TENCENTCLOUD_REGION", "")
    if not region:
        logger.error("Error: --region is required (or set TENCENTCLOUD_REGION).")
        sys.exit(1)
    client = CvmClient(_resolve_credentials(), region)
    try:
        zones = await candidate_zones(client, args.instance_type, args.charge_type)
    except CvmbakeError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    for zone in zones:
        print(zone)


def register_zones_command(subparsers):
    """Register the 'zones' command."""
    parser = subparsers.add_parser("zones", help="List zones offering an instance type")
    parser.add_argument("--instance-type", required=True, help="Instance type (e.g. S5.MEDIUM4)")
    parser.add_argument("--region", default=None, help="Region (fallback: TENCENTCLOUD_REGION env var)")
    parser.add_argument("--charge-type", default=DEFAULT_CHARGE_TYPE, help=f"Instance charge type (default: {DEFAULT_CHARGE_TYPE})")
    parser.set_defaults(func=handle_zones)
