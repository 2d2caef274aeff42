from __future__ import annotations
import sys
from typing import List, Optional, Sequence, TextIO

from colorama import Fore, Style, init as colorama_init

from .models import Step


class Console:
    """Colored user-facing output. Diagnostics go to ``logging`` instead."""

    def __init__(self, colors: bool = True, stream: Optional[TextIO] = None):
        self.colors = False
        self.stream = stream or sys.stdout
        self._ansi_ready = False
        self.set_colors(colors)

    def set_colors(self, enabled: bool) -> None:
        if enabled and not self._ansi_ready:
            colorama_init()  # Windows ANSI support
            self._ansi_ready = True
        self.colors = enabled

    def _paint(self, color: str, text: str) -> str:
        return f"{color}{text}{Style.RESET_ALL}" if self.colors else text

    def success(self, text: str) -> str:
        return self._paint(Fore.GREEN, text)

    def error(self, text: str) -> str:
        return self._paint(Fore.RED, text)

    def warning(self, text: str) -> str:
        return self._paint(Fore.YELLOW, text)

    def info(self, text: str) -> str:
        return self._paint(Fore.CYAN, text)

    def highlight(self, text: str) -> str:
        return self._paint(Fore.MAGENTA + Style.BRIGHT, text)

    def print(self, text: str = "") -> None:
        print(text, file=self.stream)
        self.stream.flush()

    def show_steps(self, title: str, steps: Sequence[Step], threshold: Optional[float] = None) -> None:
        """Numbered step list; steps under ``threshold`` are marked for clarification."""
        self.print(self.success(f"\n{title}"))
        if not steps:
            self.print(self.warning("  (no steps)"))
        for i, step in enumerate(steps, 1):
            self.print(self.info(f"{i}. {step.description}"))
            if step.command:
                self.print(self.warning(f"   Command: {step.command}"))
            if threshold is not None and step.certainty < threshold:
                self.print(self.error(f"   Certainty: {step.certainty:.2f} - Will ask for clarification"))


class Prompter:
    """User-interaction surface consumed by the engine."""

    def confirm(self, message: str, default: bool = False) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    def ask(self, message: str) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    def select(self, message: str, choices: Sequence[str]) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class TerminalPrompter(Prompter):
    def __init__(self, console: Console):
        self.console = console

    def confirm(self, message: str, default: bool = False) -> bool:
        hint = "(Y/n)" if default else "(y/N)"
        response = input(self.console.info(f"{message} {hint}: ")).strip().lower()
        if not response:
            return default
        return response in ["y", "yes"]

    def ask(self, message: str) -> str:
        while True:
            response = input(self.console.highlight(f"{message}\n> ")).strip()
            if response:
                return response
            self.console.print(self.console.warning("Please provide some clarification"))

    def select(self, message: str, choices: Sequence[str]) -> str:
        if not choices:
            raise ValueError("select() needs at least one choice")
        options: List[str] = list(choices)
        self.console.print(self.console.info(message))
        for i, choice in enumerate(options, 1):
            self.console.print(f"  {i}. {choice}")
        while True:
            response = input(self.console.info(f"Choose 1-{len(options)}: ")).strip()
            if response.isdigit() and 1 <= int(response) <= len(options):
                return options[int(response) - 1]
            self.console.print(self.console.warning("Invalid choice"))
