import argparse
import logging
import os
import socket
import threading
import time

HOST = '0.0.0.0'
PORT = 9091
# seconds without new data before the server closes the connection
READ_TIME_OUT = 10.0
# seconds between checks for a free connection slot
LISTEN_TIME = 1.0
SENTINEL = "END"

logger = logging.getLogger("sensor_server")


class SensorServerError(Exception):
    pass


class ServerBindError(SensorServerError, OSError):
    def __init__(self, host, port, reason):
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f"Could not bind {host}:{port}: {reason}")


def log_data(client_ip, direction, data, level=logging.INFO):
    logger.log(level, f"{direction} {client_ip}: {data}")


def close_quietly(sock, client_ip, what="connection"):
    """Shut down and close a socket, logging (never raising) a close failure."""
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        # not connected, or already shut down by the peer
        pass
    try:
        sock.close()
    except OSError as e:
        log_data(client_ip, "[CLOSE ERROR]", f"{what} close failed: {e}", logging.WARNING)


class SensorDataReceiver:
    """
    Reads newline-delimited CSV records from one accepted connection and
    appends them to the shared sensor data buffer until the sender writes
    the END line, the read times out, or the connection fails.
    """

    def __init__(self, connection, address, sensor_data, read_timeout=READ_TIME_OUT, on_close=None, stop_event=None):
        self.connection = connection
        self.address = address
        self.sensor_data = sensor_data
        self.read_timeout = read_timeout
        self.on_close = on_close
        # set by the server before it closes the connection on stop()
        self.stop_event = stop_event
        self.exit_reason = None
        self.lines_received = 0

    @property
    def client_ip(self):
        return self.address[0] if self.address else "UNKNOWN"

    def _server_stopping(self):
        return self.stop_event is not None and self.stop_event.is_set()

    def run(self):
        client_ip = self.client_ip
        try:
            self.connection.settimeout(self.read_timeout)
            with self.connection.makefile("r", encoding="utf-8", errors="replace") as reader:
                while True:
                    line = reader.readline()
                    if not line:
                        if self._server_stopping():
                            self.exit_reason = "server_stopped"
                            log_data(client_ip, "[SHUTDOWN]", "Server stopping, session ended")
                        else:
                            self.exit_reason = "peer_closed"
                            log_data(client_ip, "[PEER CLOSED]", "Client closed the connection without END")
                        break

                    msg = line.rstrip("\n")
                    if msg == SENTINEL:
                        self.exit_reason = "sentinel"
                        log_data(client_ip, "[END]", "Sender finished transmitting")
                        break

                    log_data(client_ip, "[RECEIVE]", msg, logging.DEBUG)
                    self.sensor_data.append_line(msg)
                    self.lines_received += 1
        except socket.timeout:
            self.exit_reason = "timeout"
            log_data(client_ip, "[TIMEOUT]", f"No new data for {self.read_timeout}s, closing connection")
        except OSError as e:
            if self._server_stopping():
                self.exit_reason = "server_stopped"
                log_data(client_ip, "[SHUTDOWN]", f"Server stopping, session ended: {e}")
            else:
                self.exit_reason = "error"
                log_data(client_ip, "[SOCKET ERROR]", e, logging.WARNING)
        finally:
            log_data(client_ip, "[DISCONNECTED]", f"Closing connection ({self.lines_received} records)")
            close_quietly(self.connection, client_ip)
            if self.on_close is not None:
                self.on_close(self.connection)
        return self.exit_reason


class SensorDataSocketServer:
    """
    Single-client TCP server. Only one sensor connection is served at a
    time; the listener waits for the current one to close before
    accepting the next.

    sensor_data is owned by the caller and only ever appended to.
    """

    def __init__(self, port, sensor_data, host=HOST, read_timeout=READ_TIME_OUT, poll_interval=LISTEN_TIME):
        self.host = host
        self.port = port
        self.sensor_data = sensor_data
        self.read_timeout = read_timeout
        self.poll_interval = poll_interval

        self._lock = threading.Lock()
        self._running = False
        self._stop_event = threading.Event()
        self._connection = None
        self._client_address = None
        self._listener_thread = None
        self._receiver_thread = None
        self._server = self._bind()

    def _bind(self):
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server.bind((self.host, self.port))
            server.listen(1)
        except OSError as e:
            server.close()
            raise ServerBindError(self.host, self.port, e) from e
        # accept() wakes up at least once per poll interval to notice stop()
        server.settimeout(self.poll_interval)
        return server

    @property
    def server_address(self):
        with self._lock:
            if self._server is None:
                return None
            return self._server.getsockname()

    @property
    def is_running(self):
        with self._lock:
            return self._running

    @property
    def is_connected(self):
        with self._lock:
            return not self._slot_free()

    @property
    def client_address(self):
        with self._lock:
            return self._client_address if not self._slot_free() else None

    def _slot_free(self):
        # caller holds self._lock
        return self._connection is None or self._connection.fileno() == -1

    def start(self):
        with self._lock:
            if self._running:
                logger.info(f"[LISTENING] Server already running on {self.host}:{self.port}")
                return False
            if self._server is None:
                self._server = self._bind()
            self._running = True
            self._stop_event = threading.Event()
            self._listener_thread = threading.Thread(
                target=self._listen,
                args=(self._server, self._stop_event),
                name=f"sensor-listener-{self.port}",
                daemon=True,
            )
            listener = self._listener_thread
        listener.start()
        return True

    def stop(self):
        with self._lock:
            if not self._running:
                # never started: just release the endpoint bound at construction
                server, self._server = self._server, None
                if server is not None:
                    close_quietly(server, self.host, what="server")
                return False
            self._running = False
            self._stop_event.set()
            connection, self._connection = self._connection, None
            client_address, self._client_address = self._client_address, None
            server, self._server = self._server, None
            listener = self._listener_thread
            receiver = self._receiver_thread

        if connection is not None:
            client_ip = client_address[0] if client_address else "UNKNOWN"
            log_data(client_ip, "[DISCONNECTED]", "Server stopping, closing connection")
            close_quietly(connection, client_ip)
        close_quietly(server, self.host, what="server")

        for thread in (listener, receiver):
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=self.poll_interval + self.read_timeout)

        logger.info(f"[SHUTDOWN] Server on {self.host}:{self.port} stopped")
        return True

    def _listen(self, server, stop_event):
        logger.info(f"[LISTENING] Server running on {self.host}:{server.getsockname()[1]}...")
        while not stop_event.is_set():
            with self._lock:
                slot_free = self._slot_free()

            if slot_free:
                try:
                    conn, addr = server.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    if stop_event.is_set():
                        break
                    logger.warning(f"[ACCEPT ERROR] {e}")
                else:
                    self._dispatch(conn, addr, stop_event)

            stop_event.wait(self.poll_interval)
        logger.info("[LISTENING] Listener loop exited")

    def _dispatch(self, conn, addr, stop_event):
        with self._lock:
            if stop_event.is_set():
                admitted = False
            else:
                admitted = True
                self._connection = conn
                self._client_address = addr
        if not admitted:
            close_quietly(conn, addr[0])
            return

        log_data(addr[0], "[CONNECTED]", f"Connection established from port {addr[1]}")
        receiver = SensorDataReceiver(
            conn,
            addr,
            self.sensor_data,
            read_timeout=self.read_timeout,
            on_close=self._release,
            stop_event=stop_event,
        )
        thread = threading.Thread(target=receiver.run, name=f"sensor-receiver-{addr[0]}", daemon=True)
        with self._lock:
            self._receiver_thread = thread
        thread.start()

    def _release(self, conn):
        with self._lock:
            if self._connection is conn:
                self._connection = None
                self._client_address = None


def main(argv=None):
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "SensorAPI.settings")
    import django
    django.setup()

    from django.conf import settings
    from sensor_api.server_utils import get_sensor_data

    config = settings.SENSOR_SERVER
    parser = argparse.ArgumentParser(description="Receive CSV sensor data over TCP")
    parser.add_argument("--host", default=config["HOST"])
    parser.add_argument("--port", type=int, default=config["PORT"])
    args = parser.parse_args(argv)

    server = SensorDataSocketServer(
        args.port,
        get_sensor_data(),
        host=args.host,
        read_timeout=config["READ_TIMEOUT"],
        poll_interval=config["POLL_INTERVAL"],
    )
    server.start()
    try:
        while True:
            time.sleep(LISTEN_TIME)
    except KeyboardInterrupt:
        logger.info("[SHUTDOWN] Server manually stopped.")
    finally:
        server.stop()


if __name__ == "__main__":
    main()
