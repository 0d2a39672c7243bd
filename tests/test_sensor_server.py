import logging
import socket
import time

import pytest

from sensor_server import SensorDataSocketServer, ServerBindError, close_quietly
from tests.conftest import POLL_INTERVAL, READ_TIMEOUT, wait_for


def finish(client):
    """Wait for the server to close the client's connection."""
    client.settimeout(READ_TIMEOUT * 4)
    assert client.recv(1) == b""


def test_session_collects_records_until_end(server, sensor_data, connect):
    assert server.start() is True
    client = connect(server.server_address)

    client.sendall(b"23.5,14.1,1699999999\n24.0,14.3,1700000000\nEND\n")
    finish(client)

    assert sensor_data.getvalue() == "23.5,14.1,1699999999\n24.0,14.3,1700000000\n"
    assert wait_for(lambda: not server.is_connected)


def test_records_arrive_in_order_across_writes(server, sensor_data, connect):
    server.start()
    client = connect(server.server_address)

    expected = []
    for i in range(50):
        line = f"{20 + i / 10},{14 + i / 100},{1700000000 + i}"
        expected.append(line)
        client.sendall(f"{line}\n".encode())
    client.sendall(b"END\n")
    finish(client)

    assert sensor_data.getvalue() == "".join(f"{line}\n" for line in expected)


def test_idle_connection_is_closed_and_slot_reused(server, sensor_data, connect):
    server.start()
    idle = connect(server.server_address)
    assert wait_for(lambda: server.is_connected)

    started = time.monotonic()
    finish(idle)
    assert time.monotonic() - started >= READ_TIMEOUT * 0.8
    assert sensor_data.getvalue() == ""
    assert wait_for(lambda: not server.is_connected)

    client = connect(server.server_address)
    client.sendall(b"1,2,3\nEND\n")
    finish(client)
    assert sensor_data.getvalue() == "1,2,3\n"


def test_second_client_waits_for_first_session(server, sensor_data, connect):
    server.start()
    first = connect(server.server_address)
    first.sendall(b"first,1\n")
    assert wait_for(lambda: sensor_data.getvalue() == "first,1\n")

    # queued in the backlog, not accepted while the first session is open
    second = connect(server.server_address)
    second.sendall(b"second,2\nEND\n")
    time.sleep(POLL_INTERVAL * 4)
    assert sensor_data.getvalue() == "first,1\n"

    first.sendall(b"END\n")
    finish(first)
    finish(second)

    assert sensor_data.getvalue() == "first,1\nsecond,2\n"


def test_start_is_idempotent(server):
    assert server.start() is True
    assert server.start() is False
    assert server.is_running


def test_stop_when_not_running_is_a_no_op(server):
    assert server.stop() is False
    assert server.stop() is False
    assert not server.is_running


def test_stop_closes_active_connection_and_restart_resumes(server, sensor_data, connect):
    server.start()
    client = connect(server.server_address)
    client.sendall(b"a,1\n")
    assert wait_for(lambda: sensor_data.getvalue() == "a,1\n")

    assert server.stop() is True
    finish(client)
    assert not server.is_running
    assert not server.is_connected
    assert server.server_address is None

    assert server.start() is True
    client = connect(server.server_address)
    client.sendall(b"b,2\nEND\n")
    finish(client)

    assert sensor_data.getvalue() == "a,1\nb,2\n"


def test_stop_unblocks_pending_accept(server):
    server.start()
    time.sleep(POLL_INTERVAL * 2)

    started = time.monotonic()
    server.stop()

    assert time.monotonic() - started < READ_TIMEOUT + POLL_INTERVAL * 4
    assert not server._listener_thread.is_alive()


def test_bind_failure_is_raised(sensor_data):
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    port = blocker.getsockname()[1]
    try:
        with pytest.raises(ServerBindError) as excinfo:
            SensorDataSocketServer(port, sensor_data, host="127.0.0.1")
    finally:
        blocker.close()

    assert excinfo.value.port == port
    assert isinstance(excinfo.value, OSError)


class FlakyListener:
    """Listening socket whose first accept() fails."""

    def __init__(self, sock):
        self._sock = sock
        self.accept_calls = 0

    def accept(self):
        self.accept_calls += 1
        if self.accept_calls == 1:
            raise OSError("accept failed")
        return self._sock.accept()

    def __getattr__(self, name):
        return getattr(self._sock, name)


def test_accept_failure_does_not_stop_listener(server, sensor_data, connect, caplog):
    flaky = FlakyListener(server._server)
    server._server = flaky

    with caplog.at_level(logging.WARNING, logger="sensor_server"):
        server.start()
        client = connect(server.server_address)
        client.sendall(b"a,1\nEND\n")
        finish(client)

    assert flaky.accept_calls >= 2
    assert sensor_data.getvalue() == "a,1\n"
    assert "[ACCEPT ERROR] accept failed" in caplog.text
    assert server.is_running


class BrokenSocket:
    def shutdown(self, how):
        raise OSError("not connected")

    def close(self):
        raise OSError("close failed")


def test_close_failure_is_logged_not_raised(caplog):
    with caplog.at_level(logging.WARNING, logger="sensor_server"):
        assert close_quietly(BrokenSocket(), "127.0.0.1") is None

    records = [r for r in caplog.records if r.name == "sensor_server"]
    assert len(records) == 1
    assert records[0].levelno == logging.WARNING
    assert "[CLOSE ERROR]" in records[0].getMessage()
    assert "close failed" in records[0].getMessage()
