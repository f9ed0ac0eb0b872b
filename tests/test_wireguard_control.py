import subprocess

import pytest

from wghub.exceptions import ControlError
from wghub.tunnel import process
from wghub.tunnel.keys import read_private_key, render_interface_config
from wghub.tunnel.wireguard import WireGuardControl


class FakeRun:
    """Stands in for subprocess.run, answering by command prefix."""

    def __init__(self):
        self.calls = []
        self.responses = {}

    def respond(self, prefix, stdout="", returncode=0, stderr="", exc=None):
        self.responses[tuple(prefix)] = (stdout, returncode, stderr, exc)

    def __call__(self, argv, input=None, capture_output=True, text=True, timeout=None):
        self.calls.append((list(argv), input))
        for length in range(len(argv), 0, -1):
            answer = self.responses.get(tuple(argv[:length]))
            if answer is not None:
                stdout, returncode, stderr, exc = answer
                if exc is not None:
                    raise exc
                return subprocess.CompletedProcess(argv, returncode, stdout, stderr)
        return subprocess.CompletedProcess(argv, 0, "", "")


@pytest.fixture
def fake_run(monkeypatch):
    fake = FakeRun()
    monkeypatch.setattr(process.subprocess, "run", fake)
    return fake


@pytest.fixture
def wg(tmp_path):
    return WireGuardControl("wg3", config_dir=str(tmp_path), default_port=51823)


def test_add_peer_command(wg, fake_run):
    wg.add_peer("KEY", ["10.10.0.5/32", "fd00::5/128"])
    argv, _ = fake_run.calls[-1]
    assert argv == [
        "wg", "set", "wg3", "peer", "KEY", "allowed-ips", "10.10.0.5/32,fd00::5/128"
    ]


def test_remove_peer_command(wg, fake_run):
    wg.remove_peer("KEY")
    assert fake_run.calls[-1][0] == ["wg", "set", "wg3", "peer", "KEY", "remove"]


def test_list_peers_parses_dump(wg, fake_run):
    fake_run.respond(
        ["wg", "show", "wg3", "dump"],
        stdout="priv\tpub\t51823\toff\nK\t(none)\t1.2.3.4:9\t10.10.0.5/32\t7\t8\t9\toff\n",
    )
    peers = wg.list_peers()
    assert list(peers) == ["K"]
    assert peers["K"].rx_bytes == 8


def test_list_peers_on_missing_interface_raises(wg, fake_run):
    fake_run.respond(["wg", "show"], returncode=1, stderr="No such device")
    with pytest.raises(ControlError) as exc_info:
        wg.list_peers()
    assert "No such device" in str(exc_info.value)
    assert exc_info.value.interface == "wg3"


def test_missing_tool_raises_control_error(wg, fake_run):
    fake_run.respond(["wg"], exc=FileNotFoundError("wg"))
    with pytest.raises(ControlError):
        wg.add_peer("K", ["10.0.0.3/32"])


def test_timeout_raises_control_error(wg, fake_run):
    fake_run.respond(["wg"], exc=subprocess.TimeoutExpired(["wg"], 10))
    with pytest.raises(ControlError):
        wg.list_peers()


def test_bring_up_skips_existing_interface(wg, fake_run):
    fake_run.respond(["ip", "link", "show", "wg3"], returncode=0)
    wg.bring_up()
    assert not any(argv[0] == "wg-quick" for argv, _ in fake_run.calls)


def test_bring_up_starts_missing_interface(wg, fake_run):
    fake_run.respond(["ip", "link", "show", "wg3"], returncode=1)
    wg.bring_up()
    assert fake_run.calls[-1][0] == ["wg-quick", "up", "wg3"]


def test_bring_down_ignores_errors(wg, fake_run):
    fake_run.respond(["wg-quick", "down"], returncode=1, stderr="is not a WireGuard interface")
    wg.bring_down()
    fake_run.respond(["wg-quick", "down"], exc=FileNotFoundError("wg-quick"))
    wg.bring_down()


def test_public_key_derives_from_config(wg, fake_run):
    with open(wg.config_path, "w") as f:
        f.write(render_interface_config("PRIVATE", "10.10.0.1/24", 51823))
    fake_run.respond(["wg", "pubkey"], stdout="PUBLIC\n")

    assert wg.public_key() == "PUBLIC"
    argv, stdin = fake_run.calls[-1]
    assert argv == ["wg", "pubkey"]
    assert stdin.strip() == "PRIVATE"


def test_public_key_generates_missing_config(wg, fake_run):
    fake_run.respond(["wg", "genkey"], stdout="NEWKEY\n")
    fake_run.respond(["wg", "pubkey"], stdout="NEWPUB\n")

    assert wg.public_key() == "NEWPUB"
    assert read_private_key(wg.config_path) == "NEWKEY"
    with open(wg.config_path) as f:
        assert "ListenPort = 51823" in f.read()

    # Second call reuses the written key
    assert wg.public_key() == "NEWPUB"
    assert sum(1 for argv, _ in fake_run.calls if argv[:2] == ["wg", "genkey"]) == 1


def test_config_without_private_key_raises(wg, fake_run):
    with open(wg.config_path, "w") as f:
        f.write("[Interface]\nListenPort = 1\n")
    with pytest.raises(ControlError):
        wg.public_key()


def test_read_private_key_ignores_peer_sections(tmp_path):
    path = tmp_path / "wg0.conf"
    path.write_text(
        "# hub\n[Interface]\nAddress = 10.0.0.1/24\nPrivateKey = abc= # comment\n"
        "[Peer]\nPrivateKey = wrong\n"
    )
    assert read_private_key(str(path)) == "abc="
    assert read_private_key(str(tmp_path / "missing.conf")) is None


def test_check_tools_reports_missing_binary(tmp_path):
    wg = WireGuardControl("wg0", config_dir=str(tmp_path), wg_bin="definitely-not-wg-xyz")
    with pytest.raises(ControlError):
        wg.check_tools()
