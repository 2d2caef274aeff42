from __future__ import annotations
import json
import logging
from typing import List, Optional, Sequence

from pydantic import ValidationError

from ..config import AgentConfig
from ..console import Console, Prompter
from ..context import build_context
from ..errors import MalformedResponseError
from ..llm import CompletionClient, parse_json_response
from ..models import ExecutionResult, PlaceholderMatch, Step, StepState
from .terminal import CommandRunner

logger = logging.getLogger(__name__)

QUESTION_PROMPT = """You are an intelligent agent that needs clarification on a task.
Based on the following step description and context from previous steps,
generate a specific question to ask the user that would help increase your certainty about how to proceed.

Step: {description}
Command: {command}
Current certainty: {certainty}

Context from previous steps:
{context}
{placeholder_info}
Your question should be focused on the most uncertain aspect of the step.
If placeholder values were detected, ask specifically about those placeholders.
For example, if "path/to/repo" was detected, ask "What is the actual path to the repository on your system?"
Be direct and specific in your questions to get the exact information needed.
Reply with the question only."""

UPDATE_PROMPT = """You are an intelligent agent that updates execution steps based on user clarification.
Update the following step with the user's clarification and context from previous steps.

Original step:
{step}

User clarification:
{clarification}

Context from previous steps:
{context}

IMPORTANT RULES:
1. For navigation commands (like 'cd'), if the user has provided a specific path in clarification,
   create a proper 'cd' command with that path, don't append it to other commands.
2. If the original command is a verification command (like 'which git') and the clarification
   provides information for navigation, completely replace the command with the appropriate one.
3. Don't combine verification commands with navigation commands.

Return an updated JSON object for the step with:
- description: string (updated if needed)
- certainty: number (0.0-1.0, should be higher now that you have clarification)
- command: string (optional; updated if applicable, completely replacing the original if necessary)"""


def _placeholder_block(where: str, matches: List[PlaceholderMatch]) -> str:
    lines = "\n".join(f'- "{m.match}" (matched pattern: {m.pattern})' for m in matches)
    return (
        f"\nIMPORTANT: Placeholder values were detected in the {where}:\n{lines}\n\n"
        "Focus your question on getting specific, real values to replace these placeholders.\n"
    )


class ClarificationResolver:
    """Asks the user one targeted question and has the model rewrite the step."""

    def __init__(self, cfg: AgentConfig, client: CompletionClient, prompter: Prompter, console: Console):
        self.cfg = cfg
        self.client = client
        self.prompter = prompter
        self.console = console

    def resolve(
        self,
        step: Step,
        previous_results: Sequence[ExecutionResult],
        partial_result: Optional[ExecutionResult] = None,
    ) -> Step:
        context = build_context(previous_results, partial_result, self.cfg.max_output_chars)

        placeholder_info = ""
        if step.placeholders:
            placeholder_info += _placeholder_block("command", step.placeholders)
        if step.description_placeholders:
            placeholder_info += _placeholder_block("description", step.description_placeholders)

        question = self.client.generate(QUESTION_PROMPT.format(
            description=step.description,
            command=step.command or "No command for this step",
            certainty=step.certainty,
            context=context,
            placeholder_info=placeholder_info,
        ))
        clarification = self.prompter.ask(question)

        text = self.client.generate(UPDATE_PROMPT.format(
            step=json.dumps(step.to_prompt_json()),
            clarification=clarification,
            context=context,
        ), json=True)
        data = parse_json_response(text)
        if isinstance(data, dict) and isinstance(data.get("step"), dict):
            data = data["step"]
        if not isinstance(data, dict):
            raise MalformedResponseError("Updated step must be a JSON object", raw=text)
        try:
            updated = Step.model_validate({**data, "clarified": True})
        except ValidationError as e:
            raise MalformedResponseError(f"Updated step does not match the expected shape: {e}", raw=text) from e

        self.console.print(self.console.success(f"Updated step: {updated.description}"))
        return updated


class StepExecutor:
    """
    Drives one step from PENDING to a terminal state.

    Steps below the certainty threshold go through the ClarificationResolver
    first, at most ``cfg.max_clarifications`` times; after that the step is
    ABANDONED without running anything. Commands only run after the user
    confirms them.
    """

    def __init__(
        self,
        cfg: AgentConfig,
        runner: CommandRunner,
        resolver: ClarificationResolver,
        prompter: Prompter,
        console: Console,
    ):
        self.cfg = cfg
        self.runner = runner
        self.resolver = resolver
        self.prompter = prompter
        self.console = console

    def state_of(self, step: Step) -> StepState:
        if step.certainty < self.cfg.certainty_threshold:
            return StepState.NEEDS_CLARIFICATION
        return StepState.READY

    def execute(
        self,
        step: Step,
        previous_results: Sequence[ExecutionResult] = (),
        partial_result: Optional[ExecutionResult] = None,
    ) -> ExecutionResult:
        c = self.console
        c.print(c.info(f"\nStep: {step.description}"))
        if previous_results:
            c.print(c.info("Using context from previous steps"))

        original = step
        context: List[ExecutionResult] = list(previous_results)
        rounds = 0
        while self.state_of(step) is StepState.NEEDS_CLARIFICATION:
            if rounds >= self.cfg.max_clarifications:
                logger.warning("giving up on %r after %d clarification round(s)", step.description, rounds)
                c.print(c.error(
                    f"Still not certain enough after {rounds} clarification(s) "
                    f"(certainty {step.certainty:.2f}). Stopping here."
                ))
                return ExecutionResult(
                    success=False,
                    abandoned=True,
                    command=step.command,
                    error="Clarification limit reached",
                    revised_step=step if step is not original else None,
                )
            c.print(c.warning("Need more information for this step. Asking for clarification."))
            step = self.resolver.resolve(step, context, partial_result)
            if partial_result is not None:
                context.append(partial_result)
                partial_result = None
            rounds += 1

        revised = step if step is not original else None

        if not step.command:
            c.print(c.success("Step completed"))
            return ExecutionResult(success=True, revised_step=revised)

        c.print(c.warning(f"Command to execute: {step.command}"))
        if not self.prompter.confirm("Do you want to execute this command?", default=False):
            c.print(c.warning("Command execution skipped"))
            return ExecutionResult(success=False, skipped=True, command=step.command, revised_step=revised)

        c.print(c.info("Executing command..."))
        run = self.runner.run(step.command)
        if run.output and not self.cfg.stream_output:
            c.print(run.output.rstrip("\n"))
        if run.success:
            c.print(c.success("Command executed successfully"))
            return ExecutionResult(
                success=True, command=step.command, output=run.output,
                exit_code=run.exit_code, revised_step=revised,
            )
        c.print(c.error(f"Command execution failed: {run.error}"))
        return ExecutionResult(
            success=False, command=step.command, output=run.output or None,
            error=run.error, exit_code=run.exit_code, revised_step=revised,
        )
