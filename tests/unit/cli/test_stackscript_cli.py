import json

import pytest
from click.testing import CliRunner

from stackscript import config
from stackscript.cli import stackscript as cli_module
from stackscript.cli.console import console
from stackscript.constants import VERSION
from stackscript.history.store import HistoryStore

cli = cli_module.stackscript

NETWORK = """# network
vpcid = create vpc cidr={cidr}
create subnet vpc=$vpcid cidr=10.0.1.0/24
"""

UNKNOWN_REVERT_ID = "01BA7RV6ES86PZYCM3H28WM6KZ"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def cli_environment(tmp_path, monkeypatch, fake_cloud):
    monkeypatch.setattr(cli_module, "_create_registry", fake_cloud.registry)
    monkeypatch.setattr(config, "HISTORY_DIR", str(tmp_path / "history"))
    monkeypatch.setattr(config, "ALIASES_FILE", str(tmp_path / "aliases.env"))
    monkeypatch.setattr(config, "SAVE_HISTORY", True)
    monkeypatch.setattr(config, "SS_LOG", False)
    monkeypatch.setattr(console, "width", 200)


@pytest.fixture
def store():
    return HistoryStore(config.HISTORY_DIR)


@pytest.fixture
def template_file(tmp_path):
    def _write(content, name="network.ss"):
        path = tmp_path / name
        path.write_text(content)
        return str(path)

    return _write


def test_help(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Usage: stackscript" in result.output
    for command in ("run", "revert", "log"):
        assert command in result.output


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == VERSION


class TestRun:
    def test_run(self, runner, fake_cloud, store, template_file):
        result = runner.invoke(cli, ["run", template_file(NETWORK), "--fill", "cidr=10.0.0.0/16"])

        assert result.exit_code == 0, result.output
        assert fake_cloud.executed() == ["create vpc", "create subnet"]
        assert fake_cloud.calls[0]["params"] == {"cidr": "10.0.0.0/16"}
        assert "OK vpcid = create vpc cidr={cidr} -> vpc-1" in result.output

        (execution,) = store.list_executions()
        assert f"revert ID: {execution.id}" in result.output

    def test_holes_are_prompted(self, runner, fake_cloud, template_file):
        result = runner.invoke(cli, ["run", template_file(NETWORK)], input="10.0.0.0/16\n")

        assert result.exit_code == 0, result.output
        assert "Value for {cidr}" in result.output
        assert fake_cloud.calls[0]["params"] == {"cidr": "10.0.0.0/16"}

    def test_aliases(self, runner, fake_cloud, template_file):
        with open(config.ALIASES_FILE, "w") as fd:
            fd.write("main=vpc-42\nother=vpc-7\n")
        template = template_file(
            "create subnet vpc=@main cidr=10.0.1.0/24\ncreate subnet vpc=@other"
        )

        result = runner.invoke(cli, ["run", template, "--alias", "other=vpc-8"])

        assert result.exit_code == 0, result.output
        assert [call["params"]["vpc"] for call in fake_cloud.calls] == ["vpc-42", "vpc-8"]

    def test_invalid_fill(self, runner, template_file):
        result = runner.invoke(cli, ["run", template_file(NETWORK), "--fill", "cidr"])
        assert result.exit_code == 1
        assert "Error: invalid --fill value 'cidr', expected KEY=VALUE" in result.output

    def test_syntax_error(self, runner, fake_cloud, template_file):
        template = template_file("create vpc cidr=10.0.0.0/16\nlaunch vpc\n")
        result = runner.invoke(cli, ["run", template])

        assert result.exit_code == 1
        assert "Error: " in result.output
        assert "launch" in result.output
        assert fake_cloud.calls == []

    def test_failing_statement(self, runner, fake_cloud, store, template_file):
        fake_cloud.fail("create", "subnet", RuntimeError("subnet quota exceeded"))

        result = runner.invoke(cli, ["run", template_file(NETWORK), "--fill", "cidr=10.0.0.0/16"])

        assert result.exit_code == 1
        assert "subnet quota exceeded" in result.output
        (execution,) = store.list_executions()
        assert f"stackscript revert {execution.id}" in result.output
        assert not execution.success

    def test_dry_run(self, runner, fake_cloud, store, template_file):
        result = runner.invoke(
            cli, ["run", template_file(NETWORK), "--dry-run", "--fill", "cidr=10.0.0.0/16"]
        )

        assert result.exit_code == 0, result.output
        assert "dry run successful" in result.output
        assert all(call["dry_run"] for call in fake_cloud.calls)
        assert store.list_executions() == []

    def test_history_disabled(self, runner, store, template_file, monkeypatch):
        monkeypatch.setattr(config, "SAVE_HISTORY", False)
        result = runner.invoke(cli, ["run", template_file(NETWORK), "--fill", "cidr=10.0.0.0/16"])

        assert result.exit_code == 0, result.output
        assert "revert ID" not in result.output
        assert store.list_executions() == []


class TestRevert:
    def test_revert(self, runner, fake_cloud, store, template_file):
        runner.invoke(cli, ["run", template_file(NETWORK), "--fill", "cidr=10.0.0.0/16"])
        (execution,) = store.list_executions()

        result = runner.invoke(cli, ["revert", execution.id])

        assert result.exit_code == 0, result.output
        assert "delete subnet id=subnet-2\ndelete vpc id=vpc-1" in result.output
        assert fake_cloud.executed()[2:] == ["delete subnet", "delete vpc"]
        assert len(store.list_executions()) == 2

    def test_revert_partial_run(self, runner, fake_cloud, store, template_file):
        fake_cloud.fail("create", "subnet", RuntimeError("boom"))
        runner.invoke(cli, ["run", template_file(NETWORK), "--fill", "cidr=10.0.0.0/16"])
        (execution,) = store.list_executions()

        result = runner.invoke(cli, ["revert", execution.id.lower()])

        assert result.exit_code == 0, result.output
        assert fake_cloud.executed()[2:] == ["delete vpc"]

    def test_revert_dry_run(self, runner, fake_cloud, store, template_file):
        runner.invoke(cli, ["run", template_file(NETWORK), "--fill", "cidr=10.0.0.0/16"])
        (execution,) = store.list_executions()

        result = runner.invoke(cli, ["revert", execution.id, "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "dry run successful" in result.output
        assert all(call["dry_run"] for call in fake_cloud.calls[2:])
        assert len(store.list_executions()) == 1

    def test_nothing_to_revert(self, runner, fake_cloud, store, template_file):
        runner.invoke(cli, ["run", template_file("update subnet id=subnet-1 public=true")])
        (execution,) = store.list_executions()

        result = runner.invoke(cli, ["revert", execution.id])

        assert result.exit_code == 0, result.output
        assert "skipped" in result.output
        assert f"nothing to revert in {execution.id}" in result.output
        assert fake_cloud.executed() == ["update subnet"]

    def test_unknown_revert_id(self, runner):
        result = runner.invoke(cli, ["revert", UNKNOWN_REVERT_ID])
        assert result.exit_code == 1
        assert f"no template execution found for revert ID '{UNKNOWN_REVERT_ID}'" in result.output


def test_log(runner, fake_cloud, store, template_file):
    result = runner.invoke(cli, ["log"])
    assert result.exit_code == 0

    runner.invoke(cli, ["run", template_file(NETWORK), "--fill", "cidr=10.0.0.0/16"])
    fake_cloud.fail("create", "subnet", RuntimeError("boom"))
    runner.invoke(cli, ["run", template_file(NETWORK), "--fill", "cidr=10.0.0.0/16"])
    succeeded = next(e for e in store.list_executions() if e.success)
    failed = next(e for e in store.list_executions() if not e.success)

    result = runner.invoke(cli, ["log"])

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    succeeded_line = next(line for line in lines if succeeded.id in line)
    failed_line = next(line for line in lines if failed.id in line)
    assert "ok" in succeeded_line
    assert "failed: create subnet vpc=$vpcid cidr=10.0.1.0/24" in failed_line


def test_syntax_error_shows_context(runner, template_file):
    result = runner.invoke(cli, ["run", template_file("create subnet cidr 10.0.1.0/24\n")])
    assert result.exit_code == 1
    assert "create subnet cidr 10.0.1.0/24" in result.output
    assert "^" in result.output


class TestConfigShow:
    def test_json(self, runner):
        result = runner.invoke(cli, ["config", "show", "--format", "json"])
        assert result.exit_code == 0, result.output
        values = json.loads(result.output)
        assert values["HISTORY_DIR"] == config.HISTORY_DIR
        assert values["SAVE_HISTORY"] is True
        assert "STRICT_DECLARATIONS" in values

    def test_plain(self, runner):
        result = runner.invoke(cli, ["config", "show", "--format", "plain"])
        assert result.exit_code == 0, result.output
        assert "SAVE_HISTORY=True" in result.output.splitlines()

    def test_table(self, runner):
        result = runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 0, result.output
        assert "HISTORY_DIR" in result.output
        assert "AWS_REGION" in result.output
