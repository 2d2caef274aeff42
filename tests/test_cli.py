import os

import pytest

from conftest import ScriptedClient, plan_reply
from shellagent import cli


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    env = {k: v for k, v in os.environ.items()
           if not k.startswith("SHELL_AGENT_") and k not in ("OPENAI_API_KEY", "DEEPSEEK_API_KEY", "GEMINI_API_KEY")}
    monkeypatch.setattr(os, "environ", env)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_parser_joins_request_words():
    args = cli.create_parser().parse_args(["--threshold", "0.8", "--no-color", "run", "list", "my", "files"])
    assert args.command == "run"
    assert args.request == ["list", "my", "files"]
    assert args.threshold == 0.8
    assert args.no_color is True


def test_load_config_applies_flags(clean_env):
    args = cli.create_parser().parse_args(["--provider", "deepseek", "--max-clarifications", "5", "--no-stream", "plan", "x"])
    cfg = cli.load_config(args)
    assert cfg.provider == "deepseek"
    assert cfg.max_clarifications == 5
    assert cfg.stream_output is False
    assert cfg.color_output is True


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "usage:" in capsys.readouterr().out


def test_missing_api_key_fails_cleanly(clean_env, capsys):
    assert cli.main(["--no-color", "run", "list", "files"]) == 1
    assert "OPENAI_API_KEY" in capsys.readouterr().out


def test_plan_only_shows_steps(clean_env, monkeypatch, capsys):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    client = ScriptedClient([plan_reply({"description": "Show disk usage", "certainty": 0.9, "command": "df -h"})])
    monkeypatch.setattr(cli, "build_client", lambda cfg: client)

    assert cli.main(["--no-color", "plan", "how full is my disk"]) == 0

    out = capsys.readouterr().out
    assert "1. Show disk usage" in out
    assert "Command: df -h" in out
    assert client.calls[0]["user"] == "how full is my disk"


def test_declined_run_exits_nonzero(clean_env, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(cli, "build_client", lambda cfg: ScriptedClient([plan_reply({"description": "a", "certainty": 1})]))
    monkeypatch.setattr("builtins.input", lambda prompt="": "n")
    assert cli.main(["--no-color", "run", "anything"]) == 1


def test_quick_mode_runs_suggested_command(clean_env, monkeypatch, capsys):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(cli, "build_client", lambda cfg: ScriptedClient(["echo quick"]))
    monkeypatch.setattr("builtins.input", lambda prompt="": "y")
    assert cli.main(["--no-color", "--no-stream", "do", "say", "quick"]) == 0
    assert "quick" in capsys.readouterr().out
