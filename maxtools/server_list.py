# maxwatch/maxtools/server_list.py
"""
Parsing for the `list servers` admin command.

The command prints a fixed width table:

    Server             | Address         | Port  | Connections | Status
    -------------------+-----------------+-------+-------------+--------
    server1            | 10.0.0.1        |  3306 |           0 | Running

This is a best-effort scrape rather than a grammar: every line that looks
like `name | address |` becomes a record, the header row is dropped and
anything else is skipped silently.
"""

import re
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

HEADER_NAME = "Server"

# Tokens allow . : _ - so that IPv4/IPv6 addresses and common server names match
SERVER_LINE = re.compile(
    r"^\s*([0-9A-Za-z._:-]+)\s*\|\s*([0-9A-Za-z._:-]+)\s*\|\s*"
)


@dataclass(frozen=True)
class ServerRecord:
    """A server row from the `list servers` table"""
    name: str
    address: str


class ServerList(list):
    """Servers in the order the table listed them"""

    def get_server(self, address: str) -> Optional[str]:
        """Name of the first server at address, or None"""
        for server in self:
            if server.address == address:
                return server.name
        return None


def parse_server_list(payload: str) -> ServerList:
    servers = ServerList()
    skipped = 0
    for line in payload.split("\n"):
        match = SERVER_LINE.match(line)
        if not match:
            if line.strip():
                skipped += 1
            continue
        name, address = match.group(1), match.group(2)
        if name == HEADER_NAME:
            continue
        servers.append(ServerRecord(name=name, address=address))

    logger.debug(f"Parsed {len(servers)} servers, skipped {skipped} non-table lines")
    return servers
