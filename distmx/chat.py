"""Two-party chat over a perfect point-to-point link."""

from __future__ import annotations

import sys
import threading

from distmx.pp2plink import PP2PLink, ReqMessage

_USAGE = (
    "Usage:   distmx-chat thisProcessIpAddress:port otherProcessIpAddress:port",
    "Example: distmx-chat  127.0.0.1:8050    127.0.0.1:8051",
    "Example: distmx-chat  127.0.0.1:8051    127.0.0.1:8050",
)


def _print_received(link: PP2PLink, stop: threading.Event) -> None:
    while not stop.is_set():
        try:
            message = link.receive(timeout=0.2)
        except TimeoutError:
            continue
        print("                                            Rcv: ", message)


def main(argv=None) -> int:
    """Send lines read from standard input to a peer and print what it sends."""
    addresses = sys.argv[1:] if argv is None else list(argv)
    if len(addresses) < 2:
        for line in _USAGE:
            print(line)
        return 1

    print("Chat PPLink - addresses: ", addresses)
    local, peer = addresses[0], addresses[1]
    stop = threading.Event()
    with PP2PLink(local) as link:
        receiver = threading.Thread(target=_print_received, args=(link, stop), daemon=True)
        receiver.start()
        try:
            while True:
                print("Snd: ", end="", flush=True)
                line = sys.stdin.readline()
                if not line:
                    break
                link.send(ReqMessage(peer, line.rstrip("\r\n")))
        except KeyboardInterrupt:
            pass
        finally:
            stop.set()
            receiver.join(timeout=1.0)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())