import io
import os
import subprocess
import sys

import pytest

from shellagent.config import AgentConfig
from shellagent.tools.terminal import ShellCommandRunner, is_interactive_command

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell commands")


@pytest.fixture
def stream():
    return io.StringIO()


@pytest.fixture
def shell_runner(tmp_path, stream):
    cfg = AgentConfig(shell="sh", working_dir=tmp_path)
    return ShellCommandRunner(cfg, stream=stream)


def test_captures_and_streams_output(shell_runner, stream):
    result = shell_runner.run("echo hello && echo world")
    assert result.success
    assert result.exit_code == 0
    assert result.output == "hello\nworld\n"
    assert stream.getvalue() == "hello\nworld\n"


def test_nonzero_exit_code(shell_runner):
    result = shell_runner.run("echo partial; echo oops >&2; exit 3")
    assert result.success is False
    assert result.exit_code == 3
    assert result.output == "partial\n"
    assert result.error == "Command exited with code 3: oops"


def test_runs_in_working_dir(shell_runner, tmp_path):
    (tmp_path / "marker.txt").write_text("x", encoding="utf-8")
    assert "marker.txt" in shell_runner.run("ls").output


def test_missing_working_dir_is_reported(tmp_path):
    runner = ShellCommandRunner(AgentConfig(shell="sh", working_dir=tmp_path / "gone"), stream=io.StringIO())
    result = runner.run("echo hi")
    assert result.success is False
    assert result.exit_code == -1
    assert result.error.startswith("Error:")


def test_captured_command_reads_from_inherited_stdin(tmp_path):
    script = (
        "import io\n"
        "from shellagent.config import AgentConfig\n"
        "from shellagent.tools.terminal import ShellCommandRunner\n"
        "r = ShellCommandRunner(AgentConfig(shell='sh'), stream=io.StringIO())"
        ".run('read ans && echo got=$ans')\n"
        "print(r.success, r.output.strip())\n"
    )
    proc = subprocess.run(
        [sys.executable, "-c", script], input="y\n", capture_output=True, text=True, cwd=tmp_path,
        env={**os.environ, "PYTHONPATH": os.pathsep.join(sys.path)}, timeout=30,
    )
    assert proc.stdout.strip() == "True got=y", proc.stderr


@pytest.mark.parametrize("command, expected", [
    ("vim notes.txt", True),
    ("ssh host", True),
    ("python", True),
    ("git add -i", True),
    ("npm init --interactive", True),
    ("open the editor", True),
    ("ls -la", False),
    ("echo vim", False),
    ("", False),
    (None, False),
])
def test_interactive_detection(command, expected):
    assert is_interactive_command(command) is expected
