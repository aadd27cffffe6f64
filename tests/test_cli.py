import json
import logging
import sys

import pytest
from click.testing import CliRunner

from wait_for_tcp import __version__, cli
from wait_for_tcp.__main__ import main

_ENV_KEYS = ("TARGET_ADDRESS", "TARGET_NAME", "INTERVAL", "DIAL_TIMEOUT", "LOG_FIELDS", "WAIT_TIMEOUT")


@pytest.fixture(autouse=True)
def _restore_logger():
    logger = logging.getLogger("wait-for-tcp")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def runner(monkeypatch, tmp_path):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return CliRunner()


def test_version_command(runner):
    result = runner.invoke(cli, ["version"])
    assert result.exit_code == 0
    assert result.output.strip() == f"wait-for-tcp {__version__}"


def test_module_entrypoint_runs_cli(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["wait-for-tcp", "version"])
    with pytest.raises(SystemExit) as excinfo:
        main()
    assert excinfo.value.code == 0
    assert capsys.readouterr().out.strip() == f"wait-for-tcp {__version__}"


def test_ready_target_exits_zero(runner, listener):
    port = listener.getsockname()[1]
    result = runner.invoke(cli, [], env={"TARGET_ADDRESS": f"127.0.0.1:{port}", "TARGET_NAME": "database"})
    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert 'msg="Waiting for database to become ready..."' in lines[0]
    assert 'level=info msg="database is ready ✓"' in lines[-1]


def test_json_log_format_with_fields(runner, listener):
    port = listener.getsockname()[1]
    env = {"TARGET_ADDRESS": f"127.0.0.1:{port}", "LOG_FIELDS": "true"}
    result = runner.invoke(cli, ["--log-format", "json"], env=env)
    assert result.exit_code == 0, result.output
    events = [json.loads(line) for line in result.output.strip().splitlines()]
    assert [event["msg"] for event in events] == ["Waiting for 127 to become ready...", "127 is ready ✓"]
    assert events[0]["target_address"] == f"127.0.0.1:{port}"
    assert events[0]["dial_timeout"] == "1s"


def test_config_error_exits_non_zero(runner):
    result = runner.invoke(cli, [], env={"TARGET_ADDRESS": "localhost"})
    assert result.exit_code == 1
    assert "invalid TARGET_ADDRESS format, must be host:port" in result.output


def test_missing_address_exits_non_zero(runner):
    result = runner.invoke(cli, [])
    assert result.exit_code == 1
    assert "TARGET_ADDRESS environment variable is required" in result.output


def test_timeout_exits_non_zero(runner, closed_port):
    env = {"TARGET_ADDRESS": f"127.0.0.1:{closed_port}", "INTERVAL": "20ms"}
    result = runner.invoke(cli, ["--timeout", "150ms"], env=env)
    assert result.exit_code == 1
    assert "is not ready ✗" in result.output
    assert "timed out waiting for 127" in result.output


def test_timeout_from_environment(runner, closed_port):
    env = {"TARGET_ADDRESS": f"127.0.0.1:{closed_port}", "INTERVAL": "20ms", "WAIT_TIMEOUT": "100ms"}
    result = runner.invoke(cli, [], env=env)
    assert result.exit_code == 1
    assert "timed out waiting for" in result.output


@pytest.mark.parametrize("value", ["soon", "-1s"])
def test_invalid_timeout_is_usage_error(runner, value):
    result = runner.invoke(cli, ["--timeout", value], env={"TARGET_ADDRESS": "localhost:1"})
    assert result.exit_code == 2


def test_env_file_supplies_settings(runner, listener, tmp_path):
    port = listener.getsockname()[1]
    env_file = tmp_path / "probe.env"
    env_file.write_text(f"TARGET_ADDRESS=127.0.0.1:{port}\nTARGET_NAME=from-file\n")
    result = runner.invoke(cli, ["--env-file", str(env_file)])
    assert result.exit_code == 0, result.output
    assert "from-file is ready ✓" in result.output


def test_environment_overrides_env_file(runner, listener, tmp_path):
    port = listener.getsockname()[1]
    (tmp_path / ".env").write_text(f"TARGET_ADDRESS=127.0.0.1:{port}\nTARGET_NAME=from-file\n")
    result = runner.invoke(cli, [], env={"TARGET_NAME": "from-env"})
    assert result.exit_code == 0, result.output
    assert "from-env is ready ✓" in result.output


def test_missing_env_file_is_usage_error(runner, tmp_path):
    result = runner.invoke(cli, ["--env-file", str(tmp_path / "absent.env")])
    assert result.exit_code == 2
    assert "Environment file not found" in result.output


def test_debug_flag_emits_diagnostics(runner, listener):
    port = listener.getsockname()[1]
    result = runner.invoke(cli, ["--debug"], env={"TARGET_ADDRESS": f"127.0.0.1:{port}"})
    assert result.exit_code == 0, result.output
    assert "level=debug" in result.output
