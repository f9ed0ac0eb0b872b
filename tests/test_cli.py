import pytest
from typer.testing import CliRunner

from wghub.cli import state
from wghub.cli.main import app

runner = CliRunner()


@pytest.fixture
def cli_ctx(ctx, monkeypatch):
    monkeypatch.setattr(state, "_ctx", ctx)
    return ctx


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "wghub" in result.output


def test_network_and_peer_commands(cli_ctx):
    result = runner.invoke(app, ["network", "create", "office", "10.10.0.0/24"])
    assert result.exit_code == 0, result.output
    network = cli_ctx.store.list_networks()[0]

    result = runner.invoke(
        app,
        ["peer", "add", network.id, "--name", "laptop", "-l", "os=linux"],
    )
    assert result.exit_code == 0, result.output
    assert "priv-2" in result.output

    result = runner.invoke(app, ["peer", "list", network.id])
    assert result.exit_code == 0

    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0

    result = runner.invoke(app, ["sync", network.id])
    assert result.exit_code == 0, result.output


def test_overlap_is_reported_as_error(cli_ctx):
    runner.invoke(app, ["network", "create", "office", "10.10.0.0/16"])
    result = runner.invoke(app, ["network", "create", "lab", "10.10.1.0/24"])
    assert result.exit_code == 1


def test_invalid_label_is_rejected(cli_ctx):
    runner.invoke(app, ["network", "create", "office", "10.10.0.0/24"])
    network = cli_ctx.store.list_networks()[0]
    result = runner.invoke(
        app,
        ["peer", "add", network.id, "--name", "x", "-l", "novalue"],
    )
    assert result.exit_code == 1


def test_admin_network_delete_is_refused(cli_ctx):
    result = runner.invoke(app, ["init", "--cidr", "10.8.0.0/24"])
    assert result.exit_code == 0, result.output
    network = cli_ctx.store.get_network(cli_ctx.config.ADMIN_NETWORK_ID)
    result = runner.invoke(app, ["network", "delete", network.id, "--yes"])
    assert result.exit_code == 1
