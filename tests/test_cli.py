"""
Command-line harness Tests.
"""

import socket

from udpchannel import __version__
from udpchannel.cli import main


class TestCommands:
    """Test the probe, info and send subcommands."""

    def test_probe_free_port(self, port, capsys):
        assert main(["probe", str(port)]) == 0
        assert "available" in capsys.readouterr().out

    def test_probe_port_in_use(self, port, capsys):
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as holder:
            holder.bind(("0.0.0.0", port))
            assert main(["probe", str(port)]) == 1
        assert "in use" in capsys.readouterr().out

    def test_info(self, port, capsys):
        assert main(["info", "127.0.0.1", str(port)]) == 0
        out = capsys.readouterr().out
        assert f"LO 127.0.0.1:{port}" in out
        assert "SO_BROADCAST" in out

    def test_send(self, port, capsys):
        assert main(["send", "127.0.0.1", str(port), "hello", "--count", "2", "--interval", "0"]) == 0
        out = capsys.readouterr().out
        assert out.count("snt: 5") == 2
        assert "Errors: 0" in out

    def test_bad_mode(self, port, capsys):
        assert main(["info", "127.0.0.1", str(port), "--mode", "IPX"]) == 1
        assert "Unknown protocol family" in capsys.readouterr().err

    def test_no_command(self, capsys):
        assert main([]) == 2

    def test_version(self, capsys):
        try:
            main(["--version"])
        except SystemExit as e:
            assert e.code == 0
        assert __version__ in capsys.readouterr().out
