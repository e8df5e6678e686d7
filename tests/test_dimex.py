import queue
import socket
import threading
import time

import pytest

from distmx.dimex import DimexModule, DimexRequest, State, before
from distmx.pp2plink import IndMessage, ReqMessage

ADDRESSES = ["127.0.0.1:5000", "127.0.0.1:6001", "127.0.0.1:7002"]


class FakeLink:
    def __init__(self):
        self.sent = []
        self._lock = threading.Lock()
        self._incoming = queue.Queue()
        self.closed = False

    def request(self, message):
        with self._lock:
            self.sent.append(message)

    def snapshot(self):
        with self._lock:
            return list(self.sent)

    def deliver(self, text):
        self._incoming.put(IndMessage("127.0.0.1:9999", text))

    def receive(self, timeout=None):
        try:
            return self._incoming.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError from None

    def close(self):
        self.closed = True


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def free_address():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return f"127.0.0.1:{sock.getsockname()[1]}"


@pytest.fixture
def link():
    return FakeLink()


@pytest.fixture
def module(link):
    dmx = DimexModule(ADDRESSES, 0, False, link)
    yield dmx
    dmx.close()


@pytest.mark.parametrize(
    "args, expected",
    [
        ((0, 1, 1, 2), True),
        ((1, 2, 0, 1), False),
        ((0, 3, 1, 3), True),
        ((1, 3, 0, 3), False),
        ((2, 3, 2, 3), False),
    ],
)
def test_before(args, expected):
    assert before(*args) is expected


def test_invalid_pid_rejected(link):
    with pytest.raises(ValueError):
        DimexModule(ADDRESSES, 3, False, link)


def test_request_rejects_other_types(module):
    with pytest.raises(TypeError):
        module.request("enter")


def test_enter_sends_request_to_every_other_process(module, link):
    module.enter()
    assert wait_until(lambda: len(link.snapshot()) == 2)
    sent = link.snapshot()
    assert [m.to for m in sent] == ADDRESSES[1:]
    assert sent[0].message == "reqEntry,0,1"
    assert module.state is State.WANT_MX
    assert module.clock == 1
    assert module.request_ts == 1


def test_access_granted_after_all_responses(module, link):
    module.enter()
    link.deliver("respOK")
    with pytest.raises(TimeoutError):
        module.wait_access(0.3)
    link.deliver("respOK")
    module.wait_access(5)
    assert module.state is State.IN_MX


def test_wait_access_times_out_without_request(module):
    with pytest.raises(TimeoutError):
        module.wait_access(0.2)


def test_request_answered_when_not_interested(module, link):
    link.deliver("reqEntry,2,7")
    assert wait_until(lambda: len(link.snapshot()) == 1)
    assert link.snapshot() == [ReqMessage(ADDRESSES[2], "respOK")]
    assert wait_until(lambda: module.clock == 7)


def test_request_deferred_while_inside_and_answered_on_exit(module, link):
    module.enter()
    link.deliver("respOK")
    link.deliver("respOK")
    module.wait_access(5)
    link.deliver("reqEntry,1,5")
    assert wait_until(lambda: module.waiting[1])
    assert len(link.snapshot()) == 2
    module.exit()
    assert wait_until(lambda: len(link.snapshot()) == 3)
    assert link.snapshot()[-1] == ReqMessage(ADDRESSES[1], "respOK")
    assert wait_until(lambda: module.state is State.NO_MX)
    assert module.waiting == [False, False, False]
    assert module.clock == 5


def test_wanting_process_orders_competing_requests(module, link):
    module.enter()
    link.deliver("reqEntry,2,1")
    link.deliver("reqEntry,1,0")
    assert wait_until(lambda: len(link.snapshot()) == 3)
    assert link.snapshot()[-1] == ReqMessage(ADDRESSES[1], "respOK")
    assert module.waiting == [False, False, True]


def test_malformed_request_ignored(module, link):
    link.deliver("reqEntry,x")
    link.deliver("reqEntry,1,4")
    assert wait_until(lambda: len(link.snapshot()) == 1)
    assert link.snapshot()[0].to == ADDRESSES[1]
    assert wait_until(lambda: module.clock == 4)
    with pytest.raises(TimeoutError):
        module.wait_access(0.2)
    assert module.state is State.NO_MX


def test_single_process_granted_immediately():
    link = FakeLink()
    with DimexModule(ADDRESSES[:1], 0, False, link) as dmx:
        dmx.request(DimexRequest.ENTER)
        dmx.wait_access(5)
        assert dmx.state is State.IN_MX
        assert link.snapshot() == []


def test_injected_link_not_closed(link):
    dmx = DimexModule(ADDRESSES, 1, False, link)
    dmx.close()
    assert link.closed is False


def test_mutual_exclusion_over_tcp():
    addresses = [free_address(), free_address()]
    first = DimexModule(addresses, 0)
    second = DimexModule(addresses, 1)
    try:
        first.enter()
        first.wait_access(5)
        second.enter()
        with pytest.raises(TimeoutError):
            second.wait_access(0.5)
        first.exit()
        second.wait_access(5)
        assert second.state is State.IN_MX
        assert wait_until(lambda: first.state is State.NO_MX)
    finally:
        first.close()
        second.close()