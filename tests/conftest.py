import socket
import time

import pytest

from sensor_api.buffer import SensorDataBuffer
from sensor_server import SensorDataSocketServer

READ_TIMEOUT = 0.5
POLL_INTERVAL = 0.05


def wait_for(predicate, timeout=3.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def sensor_data():
    return SensorDataBuffer()


@pytest.fixture
def server(sensor_data):
    server = SensorDataSocketServer(
        0,
        sensor_data,
        host="127.0.0.1",
        read_timeout=READ_TIMEOUT,
        poll_interval=POLL_INTERVAL,
    )
    yield server
    server.stop()


@pytest.fixture
def connect():
    clients = []

    def _connect(address):
        client = socket.create_connection(address, timeout=3.0)
        clients.append(client)
        return client

    yield _connect
    for client in clients:
        client.close()
