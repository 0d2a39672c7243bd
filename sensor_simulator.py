import argparse
import random
import socket
import time

from sensor_api.helpers import format_sensor_record

HOST = '127.0.0.1'
PORT = 9091


def make_reading(base_temp=23.5, base_humidity=14.1):
    """One CSV record: temperature, humidity, unix timestamp."""
    temp = round(base_temp + random.uniform(-1.0, 1.0), 1)
    humidity = round(base_humidity + random.uniform(-0.5, 0.5), 1)
    return format_sensor_record(temp, humidity, int(time.time()))


def simulate_sensor(host=HOST, port=PORT, count=10, interval=1.0, send_end=True):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.connect((host, port))
        print(f"📡 Connected to {host}:{port}")

        for _ in range(count):
            record = make_reading()
            s.sendall(f"{record}\n".encode("utf-8"))
            print(f"📤 SENT: {record}")
            time.sleep(interval)

        if send_end:
            s.sendall(b"END\n")
            print("📤 SENT: END")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Send fake CSV sensor readings to the socket server")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--count", type=int, default=10)
    parser.add_argument("--interval", type=float, default=1.0)
    parser.add_argument("--no-end", action="store_true", help="disconnect without sending END")
    args = parser.parse_args()

    try:
        simulate_sensor(args.host, args.port, args.count, args.interval, send_end=not args.no_end)
    except OSError as e:
        print(f"[DEVICE ERROR] {e}")
