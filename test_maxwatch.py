#!/usr/bin/env python3
"""
Tests for the maxwatch command-line entry point
"""

from unittest.mock import MagicMock, patch

import maxwatch
from maxtools.errors import AuthenticationError
from maxtools.server_list import ServerList, ServerRecord
from watcher.maxinfo_monitor import ServerStatus


def fake_client(**methods) -> MagicMock:
    client = MagicMock()
    client.__enter__.return_value = client
    for name, value in methods.items():
        getattr(client, name).return_value = value
    return client


def test_parse_args_defaults():
    args = maxwatch.parse_args(["list"])
    assert args.host == "127.0.0.1"
    assert args.port == 6603
    assert args.user == "admin"
    assert args.timeout == 10
    assert args.func is maxwatch.cmd_list


def test_lookup_args():
    args = maxwatch.parse_args(["--maxinfo-url", "http://mx:8003/servers", "lookup", "10.0.0.2", "--port", "3306"])
    assert args.address == "10.0.0.2"
    assert args.lookup_port == 3306
    assert args.port == 6603


def test_make_client_builds_connection_string():
    args = maxwatch.parse_args(["--host", "mx1", "--port", "7000", "--user", "ops", "--password", "pw", "list"])
    client = maxwatch.make_client(args)
    assert (client.host, client.port, client.user, client.password) == ("mx1", 7000, "ops", "pw")


def test_list_prints_servers(capsys):
    client = fake_client(list_servers=ServerList([ServerRecord("server1", "10.0.0.1")]))
    with patch("maxwatch.MaxScaleClient", return_value=client), patch("maxwatch.setup_logging"):
        assert maxwatch.main(["list"]) == 0

    assert capsys.readouterr().out == "server1\t10.0.0.1\n"


def test_lookup_in_table_not_found(capsys):
    client = fake_client(list_servers=ServerList([ServerRecord("server1", "10.0.0.1")]))
    with patch("maxwatch.MaxScaleClient", return_value=client), patch("maxwatch.setup_logging"):
        assert maxwatch.main(["lookup", "10.0.0.9"]) == 1

    assert capsys.readouterr().out == "not found\n"


def test_lookup_in_snapshot(capsys):
    monitor = MagicMock()
    monitor.get_server.return_value = ServerStatus("n1", "10.0.0.2", 3306, 5, "Running")
    with patch("maxwatch.MaxInfoMonitor", return_value=monitor), patch("maxwatch.setup_logging"):
        code = maxwatch.main(["--maxinfo-url", "http://mx:8003/servers", "lookup", "10.0.0.2", "--port", "3306"])

    assert code == 0
    monitor.fetch.assert_called_once_with()
    assert capsys.readouterr().out == "n1\tRunning\t5\n"


def test_client_errors_exit_nonzero():
    client = MagicMock()
    client.__enter__.side_effect = AuthenticationError("Authentication failed")
    with patch("maxwatch.MaxScaleClient", return_value=client), patch("maxwatch.setup_logging"):
        assert maxwatch.main(["show"]) == 1


def test_monitor_requires_url():
    with patch("maxwatch.setup_logging"):
        assert maxwatch.main(["monitor"]) == 2
