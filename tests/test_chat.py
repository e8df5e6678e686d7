import io
import socket

from distmx.chat import main
from distmx.pp2plink import PP2PLink


def free_address():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return f"127.0.0.1:{sock.getsockname()[1]}"


def test_usage_without_addresses(capsys):
    assert main([]) == 1
    assert "Usage:" in capsys.readouterr().out


def test_usage_with_only_one_address(capsys):
    assert main(["127.0.0.1:8050"]) == 1
    assert "Example:" in capsys.readouterr().out


def test_lines_sent_to_peer(monkeypatch, capsys):
    with PP2PLink(free_address()) as peer:
        monkeypatch.setattr("sys.stdin", io.StringIO("hello\nworld\n"))
        assert main([free_address(), peer.address]) == 0
        first = peer.receive(timeout=5)
        second = peer.receive(timeout=5)
    assert [first.message, second.message] == ["hello", "world"]
    out = capsys.readouterr().out
    assert "Chat PPLink - addresses:" in out
    assert out.count("Snd: ") == 3