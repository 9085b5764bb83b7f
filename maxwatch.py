#!/usr/bin/env python3
# maxwatch/maxwatch.py
"""
MaxScale admin channel and maxinfo command-line tool
Lists servers, dumps the JSON server state, and looks up a server by address
"""

import argparse
import logging
import sys
from typing import List, Optional

from maxtools.errors import MaxScaleError
from maxtools.maxscale_client import (
    MaxScaleClient,
    DEFAULT_PORT,
    DEFAULT_USER,
    DEFAULT_PASSWORD,
    DEFAULT_TIMEOUT,
)
from watcher.maxinfo_monitor import MaxInfoMonitor
from watcher.lookup import ServerLookup

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Configure root logging for the command-line run"""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='a'))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers
    )


def make_client(args) -> MaxScaleClient:
    conn_str = f"maxscale://{args.host}:{args.port}:{args.user}:{args.password}"
    return MaxScaleClient(conn_str, timeout=args.timeout, read_timeout=args.timeout)


def cmd_list(args) -> int:
    with make_client(args) as client:
        servers = client.list_servers()
    for server in servers:
        print(f"{server.name}\t{server.address}")
    return 0


def cmd_show(args) -> int:
    with make_client(args) as client:
        payload = client.show_servers()
    print(payload.decode("utf-8", errors="replace"))
    return 0


def cmd_monitor(args) -> int:
    if not args.maxinfo_url:
        logger.error("--maxinfo-url is required for monitor")
        return 2

    monitor = MaxInfoMonitor(args.maxinfo_url, timeout=args.timeout)
    for server in monitor.fetch():
        print(f"{server.name}\t{server.address}:{server.port}\t"
              f"{server.connections}\t{server.status}")
    return 0


def cmd_lookup(args) -> int:
    lookup = ServerLookup()

    if args.maxinfo_url and args.lookup_port is not None:
        lookup.monitor = MaxInfoMonitor(args.maxinfo_url, timeout=args.timeout)
        lookup.monitor.fetch()
        found = lookup.find_server(args.address, args.lookup_port)
        if found is None:
            print("not found")
            return 1
        name, status, connections = found
        print(f"{name}\t{status}\t{connections}")
        return 0

    with make_client(args) as client:
        lookup.update_table(client.list_servers())
    name = lookup.find_address(args.address)
    if name is None:
        print("not found")
        return 1
    print(name)
    return 0


def parse_args(argv: Optional[List[str]] = None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="MaxScale admin channel and maxinfo client"
    )

    parser.add_argument(
        '--host',
        type=str,
        default='127.0.0.1',
        help='MaxScale host (default: 127.0.0.1)'
    )

    parser.add_argument(
        '--port',
        type=int,
        default=DEFAULT_PORT,
        help=f'MaxScale admin port (default: {DEFAULT_PORT})'
    )

    parser.add_argument(
        '--user',
        type=str,
        default=DEFAULT_USER,
        help=f'Admin user (default: {DEFAULT_USER})'
    )

    parser.add_argument(
        '--password',
        type=str,
        default=DEFAULT_PASSWORD,
        help='Admin password'
    )

    parser.add_argument(
        '--timeout',
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f'Dial, read and HTTP timeout in seconds (default: {DEFAULT_TIMEOUT})'
    )

    parser.add_argument(
        '--maxinfo-url',
        type=str,
        default=None,
        help='maxinfo servers URL, e.g. http://127.0.0.1:8003/servers'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default='WARNING',
        help='Logging level (default: WARNING)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        help='Also append logs to this file'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    list_parser = subparsers.add_parser('list', help='List servers over the admin channel')
    list_parser.set_defaults(func=cmd_list)

    show_parser = subparsers.add_parser('show', help='Print `show serversjson` output')
    show_parser.set_defaults(func=cmd_show)

    monitor_parser = subparsers.add_parser('monitor', help='Fetch and print the maxinfo servers')
    monitor_parser.set_defaults(func=cmd_monitor)

    lookup_parser = subparsers.add_parser('lookup', help='Find a server by address')
    lookup_parser.add_argument('address', type=str, help='Server address')
    lookup_parser.add_argument(
        '--port',
        dest='lookup_port',
        type=int,
        default=None,
        help='Server port; with --maxinfo-url, match against the maxinfo snapshot'
    )
    lookup_parser.set_defaults(func=cmd_lookup)

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        return args.func(args)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1
    except MaxScaleError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
