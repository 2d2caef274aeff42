#!/usr/bin/env python3
"""
shell-agent CLI
Turns a natural-language request into confirmed, verified shell steps.
"""

import argparse
import logging
import sys
from typing import Optional

from . import __version__
from .config import AgentConfig
from .console import Console, TerminalPrompter
from .controller import Controller
from .errors import AgentError
from .llm import build_client
from .tools.planner import CommandSuggester
from .tools.terminal import ShellCommandRunner


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser"""
    parser = argparse.ArgumentParser(
        prog="shell-agent",
        description="shell-agent - plan, confirm and verify shell tasks with an LLM",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s run "set up a git repo in ./notes and make a first commit"
  %(prog)s plan "free up disk space in my downloads folder"
  %(prog)s do "show the ten largest files here"
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--provider", choices=["openai", "deepseek", "gemini"], help="Completion provider (default: openai)")
    parser.add_argument("--model", help="Model name (default depends on provider)")
    parser.add_argument("--threshold", type=float, help="Certainty below which a step needs clarification (default: 0.7)")
    parser.add_argument("--max-clarifications", type=int, help="Clarification rounds per step before giving up (default: 3)")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--no-stream", action="store_true", help="Do not echo command output while it runs")
    parser.add_argument("--debug", action="store_true", help="Verbose diagnostic logging to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Plan and execute a multi-step task")
    run_parser.add_argument("request", nargs="+", help="What you want done")

    plan_parser = subparsers.add_parser("plan", help="Show the plan for a task without executing it")
    plan_parser.add_argument("request", nargs="+", help="What you want done")

    do_parser = subparsers.add_parser("do", help="Translate a request into a single command and run it")
    do_parser.add_argument("request", nargs="+", help="What you want done")

    return parser


def load_config(args: argparse.Namespace) -> AgentConfig:
    return AgentConfig.from_env(
        provider=args.provider,
        model=args.model,
        certainty_threshold=args.threshold,
        max_clarifications=args.max_clarifications,
        color_output=False if args.no_color else None,
        stream_output=False if args.no_stream else None,
        debug=True if args.debug else None,
    )


def run_quick(cfg: AgentConfig, console: Console, prompter: TerminalPrompter, request: str) -> bool:
    command = CommandSuggester(build_client(cfg)).suggest(request)
    if not command:
        console.print(console.warning("I couldn't determine the exact command to run."))
        return False
    console.print(console.success("I think you want to run this command:"))
    console.print(console.info(command))
    if not prompter.confirm("Do you want me to execute this command?", default=False):
        console.print(console.warning("Command execution cancelled."))
        return True
    result = ShellCommandRunner(cfg).run(command)
    if result.output and not cfg.stream_output:
        console.print(result.output.rstrip("\n"))
    if not result.success:
        console.print(console.error(f"❌ Failed to execute command: {result.error}"))
        return False
    return True


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    console = Console(colors=not args.no_color)
    try:
        cfg = load_config(args)
        console.set_colors(cfg.color_output)
        prompter = TerminalPrompter(console)
        request = " ".join(args.request)

        if args.command == "do":
            return 0 if run_quick(cfg, console, prompter, request) else 1

        controller = Controller(cfg, build_client(cfg), ShellCommandRunner(cfg), prompter, console)
        if args.command == "plan":
            plan = controller.prepare_plan(request)
            console.show_steps("Execution Plan:", plan.steps, cfg.certainty_threshold)
            return 0

        outcome = controller.run(request)
        return 0 if outcome.status == "completed" else 1

    except AgentError as e:
        console.print(console.error(f"❌ {e}"))
        return 1
    except (KeyboardInterrupt, EOFError):
        console.print("\n" + console.warning("Interrupted."))
        return 130


if __name__ == "__main__":
    sys.exit(main())
