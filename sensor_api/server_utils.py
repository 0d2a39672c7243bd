import threading

from django.conf import settings

from sensor_api.buffer import SensorDataBuffer

_state_lock = threading.Lock()
_sensor_data = SensorDataBuffer()
_sensor_server = None


def get_sensor_data():
    return _sensor_data


def get_sensor_server():
    """Return the process-wide sensor socket server, binding it on first use."""
    global _sensor_server
    from sensor_server import SensorDataSocketServer

    with _state_lock:
        if _sensor_server is None:
            config = settings.SENSOR_SERVER
            _sensor_server = SensorDataSocketServer(
                config["PORT"],
                _sensor_data,
                host=config["HOST"],
                read_timeout=config["READ_TIMEOUT"],
                poll_interval=config["POLL_INTERVAL"],
            )
        return _sensor_server


def shutdown_sensor_server():
    global _sensor_server
    with _state_lock:
        server, _sensor_server = _sensor_server, None
    if server is not None:
        server.stop()


def get_server_status():
    with _state_lock:
        server = _sensor_server
    if server is None:
        return {"running": False, "connected": False, "client": None}
    client = server.client_address
    return {
        "running": server.is_running,
        "connected": server.is_connected,
        "client": f"{client[0]}:{client[1]}" if client else None,
    }
