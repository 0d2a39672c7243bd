import threading


class SensorDataBuffer:
    """
    Append-only text buffer shared between the socket receiver (writer)
    and whatever reads the sensor data (API views, processing code).

    Every append happens under a lock, so a reader never sees half a line.
    """

    def __init__(self, initial=""):
        self._lock = threading.Lock()
        self._chunks = [initial] if initial else []
        self._length = len(initial)

    def append(self, text: str):
        if not text:
            return
        with self._lock:
            self._chunks.append(text)
            self._length += len(text)

    def append_line(self, line: str):
        # one append, so the line and its terminator land together
        self.append(f"{line}\n")

    def getvalue(self) -> str:
        with self._lock:
            value = "".join(self._chunks)
            # collapse so repeated reads stay cheap
            self._chunks = [value] if value else []
            return value

    def lines(self, start=0):
        value = self.getvalue()
        if not value:
            return []
        lines = value.split("\n")
        if lines[-1] == "":
            lines.pop()
        return lines[start:]

    def line_count(self) -> int:
        return len(self.lines())

    def __len__(self):
        with self._lock:
            return self._length

    def __str__(self):
        return self.getvalue()
