from __future__ import annotations
import logging
import re
import shutil
import subprocess
import sys
import threading
from dataclasses import dataclass
from typing import IO, List, Optional

from ..config import AgentConfig

logger = logging.getLogger(__name__)

INTERACTIVE_COMMANDS = ["vim", "nano", "emacs", "less", "more", "top", "htop", "ssh", "mysql", "psql", "python", "node"]
INTERACTIVE_FLAGS = ["-i", "--interactive"]
_EDITOR_RE = re.compile(r"\b(edit|editor)\b", re.IGNORECASE)

INTERACTIVE_DONE = "Interactive command completed successfully"


def is_interactive_command(command: Optional[str]) -> bool:
    """Heuristic: does this command expect to own the terminal?"""
    if not command or not command.strip():
        return False
    parts = command.split()
    return (
        parts[0] in INTERACTIVE_COMMANDS
        or any(p in INTERACTIVE_FLAGS for p in parts)
        or bool(_EDITOR_RE.search(command))
    )


@dataclass
class CommandResult:
    success: bool
    exit_code: int
    output: str = ""
    error: Optional[str] = None


class CommandRunner:
    """Runs one shell command to completion."""

    def run(self, command: str) -> CommandResult:  # pragma: no cover - interface
        raise NotImplementedError


class ShellCommandRunner(CommandRunner):
    """
    Subprocess-backed runner. Interactive commands inherit the terminal;
    everything else is captured (and echoed live when ``stream`` is set).
    """

    def __init__(self, cfg: AgentConfig, stream: Optional[IO[str]] = None):
        self.cfg = cfg
        self.stream = stream if stream is not None else (sys.stdout if cfg.stream_output else None)
        self.executable = shutil.which(cfg.shell) if cfg.shell else None
        self.cwd = str(cfg.working_dir) if cfg.working_dir else None

    def run(self, command: str) -> CommandResult:
        logger.debug("executing %r", command)
        try:
            if is_interactive_command(command):
                return self._run_interactive(command)
            return self._run_captured(command)
        except OSError as e:
            logger.error("failed to spawn %r: %s", command, e)
            return CommandResult(success=False, exit_code=-1, error=f"Error: {e}")

    def _run_interactive(self, command: str) -> CommandResult:
        p = subprocess.run(command, shell=True, executable=self.executable, cwd=self.cwd, check=False)
        if p.returncode == 0:
            return CommandResult(success=True, exit_code=0, output=INTERACTIVE_DONE)
        return CommandResult(success=False, exit_code=p.returncode, error=f"Command exited with code {p.returncode}")

    def _run_captured(self, command: str) -> CommandResult:
        proc = subprocess.Popen(
            command,
            shell=True,
            executable=self.executable,
            cwd=self.cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
        )
        out_lines: List[str] = []
        err_lines: List[str] = []
        pumps = [
            threading.Thread(target=self._pump, args=(proc.stdout, out_lines), daemon=True),
            threading.Thread(target=self._pump, args=(proc.stderr, err_lines), daemon=True),
        ]
        for t in pumps:
            t.start()
        code = proc.wait()
        for t in pumps:
            t.join()

        stdout = "".join(out_lines)
        stderr = "".join(err_lines)
        if stderr:
            logger.debug("stderr from %r: %s", command, stderr.strip())
        if code == 0:
            return CommandResult(success=True, exit_code=0, output=stdout)
        error = f"Command exited with code {code}"
        if stderr.strip():
            error += f": {stderr.strip()}"
        return CommandResult(success=False, exit_code=code, output=stdout, error=error)

    def _pump(self, pipe, sink: List[str]) -> None:
        for line in pipe:
            sink.append(line)
            if self.stream is not None:
                self.stream.write(line)
                self.stream.flush()
        pipe.close()
