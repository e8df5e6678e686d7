"""Perfect point-to-point links over TCP with length-prefixed frames."""

from __future__ import annotations

import queue
import socket
import threading
from dataclasses import dataclass

HEADER_SIZE = 4
MAX_MESSAGE_SIZE = 10**HEADER_SIZE - 1
_POLL_INTERVAL = 0.2
_STOP = object()


@dataclass(frozen=True)
class ReqMessage:
    """A message the upper layer asks the link to send."""

    to: str
    message: str


@dataclass(frozen=True)
class IndMessage:
    """A message the link delivers to the upper layer."""

    sender: str
    message: str


class FrameError(ValueError):
    """Raised when a frame cannot be built or its header cannot be read."""


def encode_frame(message: str) -> bytes:
    """Prefix the UTF-8 payload with its length as four zero-padded digits."""
    payload = message.encode("utf-8")
    if len(payload) > MAX_MESSAGE_SIZE:
        raise FrameError(
            f"message of {len(payload)} bytes exceeds the {MAX_MESSAGE_SIZE} byte limit"
        )
    return f"{len(payload):0{HEADER_SIZE}d}".encode("ascii") + payload


def decode_length(header: bytes) -> int:
    """Read the payload length from a four-digit frame header."""
    if len(header) != HEADER_SIZE or not header.isdigit():
        raise FrameError(f"invalid frame header: {header!r}")
    return int(header)


def _split_address(address: str) -> tuple[str, int]:
    host, separator, port = address.rpartition(":")
    if not separator or not port.isdigit():
        raise ValueError(f"address must have the form host:port, got {address!r}")
    return host, int(port)


class PP2PLink:
    """Sends messages to peers and delivers messages received from them.

    Outgoing connections are cached per destination and reused; a failed
    write is retried once on a fresh connection.
    """

    def __init__(self, address: str, debug: bool = False) -> None:
        self.debug = debug
        self.cache: dict[str, socket.socket] = {}
        self._ind: queue.Queue = queue.Queue(maxsize=1)
        self._req: queue.Queue = queue.Queue(maxsize=1)
        self._lock = threading.Lock()
        self._accepted: set[socket.socket] = set()
        self._running = threading.Event()
        self._running.set()
        self._debug_out(" Init PP2PLink!")

        host, port = _split_address(address)
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._listener.bind((host, port))
            self._listener.listen()
        except OSError:
            self._listener.close()
            raise
        self._listener.settimeout(_POLL_INTERVAL)
        bound_host, bound_port = self._listener.getsockname()[:2]
        self.address = f"{bound_host}:{bound_port}"

        self._acceptor = threading.Thread(target=self._accept_loop, daemon=True)
        self._sender = threading.Thread(target=self._send_loop, daemon=True)
        self._acceptor.start()
        self._sender.start()

    def __enter__(self) -> PP2PLink:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _debug_out(self, text: str) -> None:
        if self.debug:
            print(f". . . . . . . . . . . . . . . . . [ PP2PLink msg : {text} ]")

    def _accept_loop(self) -> None:
        while self._running.is_set():
            try:
                conn, _ = self._listener.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            conn.settimeout(None)
            self._debug_out("ok   : connection accepted from another process.")
            with self._lock:
                self._accepted.add(conn)
            threading.Thread(target=self._read_loop, args=(conn,), daemon=True).start()

    def _read_loop(self, conn: socket.socket) -> None:
        try:
            host, port = conn.getpeername()[:2]
            peer = f"{host}:{port}"
            with conn.makefile("rb") as reader:
                while self._running.is_set():
                    header = reader.read(HEADER_SIZE)
                    if len(header) < HEADER_SIZE:
                        self._debug_out("error : connection closed by the other process.")
                        break
                    size = decode_length(header)
                    payload = reader.read(size)
                    if len(payload) < size:
                        print("@ connection closed in the middle of a message")
                        break
                    self._deliver(IndMessage(peer, payload.decode("utf-8", errors="replace")))
        except FrameError as exc:
            print(".", exc)
        except OSError as exc:
            self._debug_out(f"error : {exc} connection closed.")
        finally:
            with self._lock:
                self._accepted.discard(conn)
            conn.close()

    def _deliver(self, message: IndMessage) -> None:
        while self._running.is_set():
            try:
                self._ind.put(message, timeout=_POLL_INTERVAL)
                return
            except queue.Full:
                continue

    def _send_loop(self) -> None:
        while True:
            item = self._req.get()
            if item is _STOP:
                break
            try:
                self.send(item)
            except FrameError as exc:
                self._debug_out(f"error : {exc}")

    def _connect(self, destination: str, report: bool) -> socket.socket | None:
        try:
            conn = socket.create_connection(_split_address(destination))
        except (OSError, ValueError) as exc:
            if report:
                print(exc)
            else:
                self._debug_out(f"       {exc}")
            return None
        self._debug_out("ok   : connection opened with another process.")
        self.cache[destination] = conn
        return conn

    def request(self, message: ReqMessage) -> None:
        """Queue a message for the background sender."""
        self._req.put(message)

    def send(self, message: ReqMessage) -> bool:
        """Send one message now; return whether it was written to a connection."""
        frame = encode_frame(message.message)
        with self._lock:
            conn = self.cache.get(message.to)
            if conn is None:
                conn = self._connect(message.to, report=True)
                if conn is None:
                    return False
            try:
                conn.sendall(frame)
                return True
            except OSError as exc:
                self._debug_out(f"error : {exc}. Connection closed. 1 attempt to reopen:")
                conn.close()
                self.cache.pop(message.to, None)

            conn = self._connect(message.to, report=False)
            if conn is None:
                return False
            try:
                conn.sendall(frame)
                return True
            except OSError as exc:
                self._debug_out(f"       {exc}")
                return False

    def receive(self, timeout: float | None = None) -> IndMessage:
        """Return the next delivered message, raising TimeoutError if none arrives."""
        try:
            return self._ind.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError("no message received") from None

    def close(self) -> None:
        """Stop listening and sending and close every connection."""
        if not self._running.is_set():
            return
        self._running.clear()
        self._listener.close()
        try:
            self._req.put(_STOP, timeout=1.0)
        except queue.Full:
            pass
        with self._lock:
            for conn in self.cache.values():
                conn.close()
            self.cache.clear()
            for conn in list(self._accepted):
                try:
                    conn.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass
        self._acceptor.join(timeout=1.0)
        self._sender.join(timeout=1.0)