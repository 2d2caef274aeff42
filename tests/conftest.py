import io
import json
from typing import List, Optional

import pytest

from shellagent.config import AgentConfig
from shellagent.console import Console, Prompter
from shellagent.controller import Controller
from shellagent.llm import CompletionClient
from shellagent.tools.terminal import CommandResult, CommandRunner


class ScriptedClient(CompletionClient):
    """Returns queued replies in order and records every call."""

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    def queue(self, reply):
        self.replies.append(reply)

    def generate(self, system_prompt, user=None, *, json=False):
        self.calls.append({"system": system_prompt, "user": user, "json": json})
        if not self.replies:
            raise AssertionError(f"unexpected completion call: {system_prompt[:80]!r}")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, (dict, list)):
            return _dumps(reply)
        return reply


def _dumps(obj):
    return json.dumps(obj)


class ScriptedPrompter(Prompter):
    def __init__(self, confirms=None, answers=None):
        self.confirms = list(confirms or [])
        self.answers = list(answers or [])
        self.asked: List[str] = []
        self.confirm_messages: List[str] = []

    def confirm(self, message, default=False):
        self.confirm_messages.append(message)
        if not self.confirms:
            raise AssertionError(f"unexpected confirm: {message!r}")
        return self.confirms.pop(0)

    def ask(self, message):
        self.asked.append(message)
        if not self.answers:
            raise AssertionError(f"unexpected question: {message!r}")
        return self.answers.pop(0)

    def select(self, message, choices):
        return choices[0]


class RecordingRunner(CommandRunner):
    def __init__(self, results: Optional[dict] = None):
        self.results = results or {}
        self.commands: List[str] = []

    def run(self, command):
        self.commands.append(command)
        return self.results.get(command, CommandResult(success=True, exit_code=0, output=f"ran {command}\n"))


def plan_reply(*steps):
    return {"steps": [dict(s) for s in steps]}


@pytest.fixture
def cfg():
    return AgentConfig(api_key="test-key", color_output=False, stream_output=True)


@pytest.fixture
def console():
    return Console(colors=False, stream=io.StringIO())


@pytest.fixture
def client():
    return ScriptedClient()


@pytest.fixture
def runner():
    return RecordingRunner()


@pytest.fixture
def make_controller(cfg, client, runner, console):
    def _make(prompter, config=None):
        return Controller(config or cfg, client, runner, prompter, console)
    return _make
