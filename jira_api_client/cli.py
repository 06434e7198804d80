"""
Command line entry point.

    jira-api-client fetch KAN-1 [--config config.properties] [--out DIR] [--no-xml]
    jira-api-client init-config config.properties
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

from jira_api_client.core.config import load, write_default_config
from jira_api_client.core.errors import ApiError, ConfigError
from jira_api_client.services.export import export_issue
from jira_api_client.services.jira_client import JiraClient
from jira_api_client.utils.logging import configure_logging, logger

EXIT_OK = 0
EXIT_JIRA_ERROR = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jira-api-client", description="Typed JIRA REST client")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    fetch = sub.add_parser("fetch", help="Save an issue summary (and XML view) to files")
    fetch.add_argument("issue_key", help="Issue key, e.g. KAN-1")
    fetch.add_argument("--config", type=Path, default=None, help="Properties file; environment is used when omitted")
    fetch.add_argument("--out", type=Path, default=Path("."), help="Output directory")
    fetch.add_argument("--no-xml", dest="xml", action="store_false", help="Skip the XML view")

    init = sub.add_parser("init-config", help="Write a configuration template")
    init.add_argument("path", type=Path)
    return parser


async def _fetch(args: argparse.Namespace) -> int:
    config = load(args.config)
    async with JiraClient(config) as client:
        if not await client.test_connection():
            print(
                "Error: failed to connect to JIRA. Check the username, API token and base URL.",
                file=sys.stderr,
            )
            return EXIT_JIRA_ERROR
        written = await export_issue(client, args.issue_key, args.out, include_xml=args.xml)
    for path in written:
        print(f"Saved {path}")
    return EXIT_OK


# PUBLIC_INTERFACE
def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, stream=sys.stderr)

    try:
        if args.command == "init-config":
            path = write_default_config(args.path)
            print(f"Wrote configuration template to {path}")
            return EXIT_OK
        return asyncio.run(_fetch(args))
    except ConfigError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except ApiError as exc:
        logger.debug("cli_failed", extra={"request_id": exc.request_id, "kind": exc.kind.value})
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_JIRA_ERROR


if __name__ == "__main__":
    sys.exit(main())
