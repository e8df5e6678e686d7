"""Distributed mutual exclusion over perfect point-to-point links."""

from __future__ import annotations

import queue
import threading
from enum import Enum

from distmx.pp2plink import IndMessage, PP2PLink, ReqMessage

REQ_ENTRY = "reqEntry"
RESP_OK = "respOK"
_POLL_INTERVAL = 0.2
_STOP = object()
_GRANTED = object()


class State(Enum):
    """Where a process stands with respect to the critical section."""

    NO_MX = 0
    WANT_MX = 1
    IN_MX = 2


class DimexRequest(Enum):
    """What the application asks of the mutual exclusion module."""

    ENTER = 0
    EXIT = 1


def before(one_id: int, one_ts: int, oth_id: int, oth_ts: int) -> bool:
    """Order requests by timestamp, breaking ties by process id."""
    if one_ts != oth_ts:
        return one_ts < oth_ts
    return one_id < oth_id


class DimexModule:
    """Grants a process exclusive access by asking every other process.

    Each event, whether from the application or from the network, is
    handled by a single thread, one at a time.
    """

    def __init__(self, addresses, pid: int, debug: bool = False, link=None) -> None:
        self.processes = list(addresses)
        if not 0 <= pid < len(self.processes):
            raise ValueError(f"process id {pid} is outside 0..{len(self.processes) - 1}")
        self.pid = pid
        self.debug = debug
        self.state = State.NO_MX
        self.waiting = [False] * len(self.processes)
        self.clock = 0
        self.request_ts = 0
        self.responses = 0

        self._owns_link = link is None
        self.link = PP2PLink(self.processes[pid], debug) if link is None else link
        self._events: queue.Queue = queue.Queue()
        self._granted: queue.Queue = queue.Queue()
        self._running = threading.Event()
        self._running.set()

        self._pump = threading.Thread(target=self._pump_network, daemon=True)
        self._worker = threading.Thread(target=self._process_events, daemon=True)
        self._pump.start()
        self._worker.start()
        self._debug_out("Init DIMEX!")

    def __repr__(self) -> str:
        return (
            f"DimexModule(pid={self.pid}, processes={self.processes!r}, "
            f"state={self.state.name}, clock={self.clock})"
        )

    def __enter__(self) -> DimexModule:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _debug_out(self, text: str) -> None:
        if self.debug:
            print(f". . . . . . . . . . . . [ DIMEX : {text} ]")

    # -- event loop ----------------------------------------------------------

    def _pump_network(self) -> None:
        while self._running.is_set():
            try:
                message = self.link.receive(timeout=_POLL_INTERVAL)
            except TimeoutError:
                continue
            self._events.put(("net", message))

    def _process_events(self) -> None:
        while True:
            event = self._events.get()
            if event is _STOP:
                return
            kind, payload = event
            if kind == "app":
                if payload is DimexRequest.ENTER:
                    self._debug_out("app asks for mx")
                    self._on_request_entry()
                else:
                    self._debug_out("app releases mx")
                    self._on_request_exit()
            else:
                self._on_network(payload)

    def _on_network(self, message: IndMessage) -> None:
        text = message.message
        if RESP_OK in text:
            self._debug_out(f"         <<<---- answers! {text}")
            self._on_deliver_resp_ok()
        elif REQ_ENTRY in text:
            self._debug_out(f"          <<<---- asks??  {text}")
            try:
                _, rid_text, rts_text = text.split(",")
                rid, rts = int(rid_text), int(rts_text)
            except ValueError:
                self._debug_out(f"malformed request ignored: {text}")
                return
            if not 0 <= rid < len(self.processes) or rid == self.pid:
                self._debug_out(f"request from unknown process ignored: {text}")
                return
            self._on_deliver_req_entry(rid, rts)

    # -- algorithm -----------------------------------------------------------

    def _send(self, pid: int, content: str, space: str = "") -> None:
        address = self.processes[pid]
        self._debug_out(f"{space} ---->>>>   to: {address}     msg: {content}")
        self.link.request(ReqMessage(address, content))

    def _grant(self) -> None:
        self.state = State.IN_MX
        self._granted.put(_GRANTED)

    def _others(self):
        return (pid for pid in range(len(self.processes)) if pid != self.pid)

    def _on_request_entry(self) -> None:
        self.clock += 1
        self.request_ts = self.clock
        self.responses = 0
        for pid in self._others():
            self._send(pid, f"{REQ_ENTRY},{self.pid},{self.request_ts}")
        self.state = State.WANT_MX
        if len(self.processes) == 1:
            self._grant()

    def _on_request_exit(self) -> None:
        for pid, deferred in enumerate(self.waiting):
            if deferred:
                self._send(pid, RESP_OK, "    ")
        self.waiting = [False] * len(self.processes)
        self.state = State.NO_MX

    def _on_deliver_resp_ok(self) -> None:
        self.responses += 1
        if self.responses == len(self.processes) - 1:
            self._grant()

    def _on_deliver_req_entry(self, rid: int, rts: int) -> None:
        if self.state is State.NO_MX or (
            self.state is State.WANT_MX and before(rid, rts, self.pid, self.request_ts)
        ):
            self._send(rid, RESP_OK, "    ")
        else:
            self.waiting[rid] = True
        self.clock = max(self.clock, rts)

    # -- application interface -----------------------------------------------

    def request(self, req: DimexRequest) -> None:
        """Queue an ENTER or EXIT request from the application."""
        if not isinstance(req, DimexRequest):
            raise TypeError(f"expected a DimexRequest, got {req!r}")
        self._events.put(("app", req))

    def enter(self) -> None:
        """Ask for access to the critical section."""
        self.request(DimexRequest.ENTER)

    def exit(self) -> None:
        """Release the critical section."""
        self.request(DimexRequest.EXIT)

    def wait_access(self, timeout: float | None = None) -> None:
        """Block until access is granted, raising TimeoutError if it is not."""
        try:
            self._granted.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError("access to the critical section not granted") from None

    def close(self) -> None:
        """Stop handling events and close the link if this module opened it."""
        if not self._running.is_set():
            return
        self._running.clear()
        self._events.put(_STOP)
        self._worker.join(timeout=1.0)
        self._pump.join(timeout=1.0)
        if self._owns_link:
            self.link.close()