# maxwatch/watcher/maxinfo_monitor.py
"""
Server status snapshots from the MaxScale maxinfo HTTP endpoint
Each successful fetch swaps in a whole new snapshot
"""

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests

from maxtools.errors import RequestError, DecodeError

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 10  # seconds


@dataclass(frozen=True)
class ServerStatus:
    """One server entry of the maxinfo servers array"""
    name: str = ""
    address: str = ""
    port: int = 0
    connections: int = 0
    status: str = ""


# record attribute -> (json key, type); keys match case-insensitively
_FIELDS = {
    "name": ("server", str),
    "address": ("address", str),
    "port": ("port", int),
    "connections": ("connections", int),
    "status": ("status", str),
}


def _decode_server(item: Any, index: int) -> ServerStatus:
    if item is None:
        return ServerStatus()
    if not isinstance(item, dict):
        raise DecodeError(f"Server entry {index} is a {type(item).__name__}, not an object")

    # later keys override earlier ones that differ only in case
    by_key: Dict[str, Any] = {key.lower(): value for key, value in item.items()}

    values = {}
    for attr, (key, kind) in _FIELDS.items():
        value = by_key.get(key)
        if value is None:
            continue
        # bool is an int subclass but never a valid port or count
        if not isinstance(value, kind) or isinstance(value, bool):
            raise DecodeError(
                f"Server entry {index}: field {key!r} should be {kind.__name__}, "
                f"got {type(value).__name__}"
            )
        values[attr] = value
    return ServerStatus(**values)


def decode_servers(body) -> Tuple[ServerStatus, ...]:
    """
    Decode a maxinfo servers document.

    Args:
        body: Response body, bytes or str, holding a JSON array of objects

    Returns:
        Tuple of ServerStatus in document order. Null decodes to an empty
        tuple, null entries to zero-valued records.

    Raises:
        DecodeError: body is not JSON, not an array, or a field has the wrong type
    """
    try:
        data = json.loads(body)
    except ValueError as e:
        raise DecodeError(f"Invalid maxinfo JSON: {e}") from e

    if data is None:
        return ()
    if not isinstance(data, list):
        raise DecodeError(f"Expected a JSON array of servers, got {type(data).__name__}")

    return tuple(_decode_server(item, i) for i, item in enumerate(data))


class MaxInfoMonitor:
    """Holds the latest maxinfo server snapshot"""

    def __init__(self, url: str, timeout: float = DEFAULT_HTTP_TIMEOUT):
        self.url = url
        self.timeout = timeout

        self._snapshot: Tuple[ServerStatus, ...] = ()
        self._swap_lock = threading.Lock()
        self.fetch_count = 0

    @property
    def snapshot(self) -> Tuple[ServerStatus, ...]:
        """Current snapshot; the tuple itself never changes after a fetch"""
        return self._snapshot

    def fetch(self, url: Optional[str] = None) -> Tuple[ServerStatus, ...]:
        """
        GET the servers document and replace the snapshot with it.

        On any error the previous snapshot is left untouched.

        Raises:
            RequestError: transport failure or a non-2xx status
            DecodeError: the body is not a valid servers array
        """
        url = url or self.url
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Maxinfo request to {url} failed: {e}")
            raise RequestError(f"GET {url} failed: {e}") from e

        try:
            servers = decode_servers(response.content)
        except DecodeError as e:
            logger.warning(f"Keeping previous snapshot, {url} returned bad data: {e}")
            raise

        with self._swap_lock:
            self._snapshot = servers
            self.fetch_count += 1

        logger.info(f"Fetched {len(servers)} servers from {url}")
        return servers

    def get_server(self, address: str, port: int) -> Optional[ServerStatus]:
        """First record at (address, port) in the current snapshot, or None"""
        for server in self.snapshot:
            if server.address == address and server.port == port:
                return server
        return None

    def reset(self):
        """Drop the current snapshot"""
        with self._swap_lock:
            self._snapshot = ()
        logger.info("Maxinfo snapshot cleared")
