#!/usr/bin/env python3
"""CVM image builder: CLI entrypoint."""

import argparse

from cvmbake.commands.build import register_build_command
from cvmbake.commands.validate import register_validate_command
from cvmbake.commands.zones import register_zones_command
from cvmbake.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(description="Build custom Tencent Cloud CVM images")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging, including every API call")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_build_command(subparsers)
    register_validate_command(subparsers)
    register_zones_command(subparsers)

    args = parser.parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
