# maxwatch/watcher/lookup.py
import logging
from typing import Optional, Tuple

from maxtools.server_list import ServerList
from watcher.maxinfo_monitor import MaxInfoMonitor

logger = logging.getLogger(__name__)


def find_address_in_table(table: ServerList, address: str) -> Optional[str]:
    """Name of the first listed server at address, or None"""
    return table.get_server(address)


class ServerLookup:
    """Answers server queries against a server table and a maxinfo monitor"""

    def __init__(self, monitor: Optional[MaxInfoMonitor] = None, table: Optional[ServerList] = None):
        self.monitor = monitor
        self.table = table if table is not None else ServerList()

    def update_table(self, table: ServerList):
        self.table = table

    def find_address(self, address: str) -> Optional[str]:
        return find_address_in_table(self.table, address)

    def find_server(self, address: str, port: int) -> Optional[Tuple[str, str, int]]:
        """
        (name, status, connections) of the first snapshot record at
        address:port. None means no match, which is not an error.
        """
        if self.monitor is None:
            return None

        server = self.monitor.get_server(address, port)
        if server is None:
            logger.debug(f"No maxinfo record for {address}:{port}")
            return None
        return server.name, server.status, server.connections
