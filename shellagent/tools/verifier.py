from __future__ import annotations
import logging
from typing import Optional, Sequence

from pydantic import ValidationError

from ..config import AgentConfig
from ..console import Console
from ..context import build_context, format_steps
from ..errors import AgentError, MalformedResponseError
from ..llm import CompletionClient, parse_json_response
from ..models import ExecutionResult, Plan, PlanValidation, Step, VerificationResult
from .planner import REPLAN_SYSTEM_PROMPT, REPLAN_USER_PROMPT, cap_steps, parse_plan, plan_system_prompt

logger = logging.getLogger(__name__)

VERIFY_PROMPT = """You are an intelligent agent that verifies the results of executed steps.
Verify if the result of the executed step meets the expectations.

Step: {description}
Command: {command}
Result: {result}

Context from previous steps:
{context}

Return a JSON object with:
- verified: boolean (true if the result meets expectations, false otherwise)
- reason: string (explanation of verification result)
- suggestion: string (optional, suggestion for next steps if verification failed)"""

VALIDATE_PROMPT = """You are an intelligent agent that validates and updates execution plans.
Based on the result of the current step and the context from previous steps,
determine if the remaining steps in the plan need to be updated.

Current Step: {description}
Result: {result}

Context from previous steps:
{context}

Remaining steps in the plan:
{remaining}

Return a JSON object with:
- needsUpdate: boolean (true if the remaining steps need to be updated, false otherwise)
- reason: string (explanation of why the steps need to be updated or not)
- updatedSteps: array (only if needsUpdate is true, containing the updated steps with the same structure as the original steps)

Each step in updatedSteps should have:
- description: string
- certainty: number (0.0-1.0)
- command: string (optional, only if a command needs to be executed)"""

NO_OUTPUT = "Step completed without specific output"


def failure_reason(result: ExecutionResult) -> str:
    if result.abandoned:
        return "Clarification limit reached"
    if result.skipped:
        return "Step was skipped"
    return "Step execution failed"


class PlanReviser:
    """Revises the not-yet-executed part of a plan, or replaces the plan after a failure."""

    def __init__(self, cfg: AgentConfig, client: CompletionClient, console: Console):
        self.cfg = cfg
        self.client = client
        self.console = console

    def validate_remaining(
        self,
        current_step: Step,
        result: ExecutionResult,
        previous_results: Sequence[ExecutionResult],
        remaining_steps: Sequence[Step],
    ) -> PlanValidation:
        """
        Ask whether what ``current_step`` produced invalidates the remaining steps.

        Never mutates ``remaining_steps``. Any failure here is logged and
        treated as "no update needed".
        """
        unchanged = [s.model_copy() for s in remaining_steps]
        if not remaining_steps:
            return PlanValidation(needs_update=False, reason="No remaining steps", updated_steps=[])

        prompt = VALIDATE_PROMPT.format(
            description=current_step.description,
            result=result.output or NO_OUTPUT,
            context=build_context(previous_results, max_output_chars=self.cfg.max_output_chars),
            remaining=format_steps(remaining_steps),
        )
        try:
            data = parse_json_response(self.client.generate(prompt, json=True))
            validation = PlanValidation.model_validate(data)
        except (AgentError, ValidationError) as e:
            logger.error("Failed to validate remaining plan steps: %s", e)
            return PlanValidation(needs_update=False, reason=f"Validation unavailable: {e}", updated_steps=unchanged)

        c = self.console
        if validation.needs_update:
            c.print(c.warning(f"Remaining plan steps need to be updated: {validation.reason}"))
            return PlanValidation(
                needs_update=True,
                reason=validation.reason,
                updated_steps=cap_steps(validation.updated_steps, self.cfg.max_plan_steps),
            )
        c.print(c.success(f"Remaining plan steps are still valid: {validation.reason}"))
        return PlanValidation(needs_update=False, reason=validation.reason, updated_steps=unchanged)

    def replan_after_failure(
        self,
        failed_step: Step,
        error_message: Optional[str],
        previous_results: Sequence[ExecutionResult],
        original_user_input: str,
    ) -> Plan:
        user = REPLAN_USER_PROMPT.format(
            request=original_user_input,
            description=failed_step.description,
            command=failed_step.command or "No command",
            error=error_message or "Unknown error",
            context=build_context(previous_results, max_output_chars=self.cfg.max_output_chars),
        )
        system = plan_system_prompt(REPLAN_SYSTEM_PROMPT, self.cfg.certainty_threshold)
        plan = parse_plan(self.client.generate(system, user, json=True), self.cfg.max_plan_steps)
        logger.info("created replacement plan with %d step(s)", len(plan.steps))
        return plan


class OutcomeVerifier:
    """Judges whether an executed step did what it set out to do."""

    def __init__(self, cfg: AgentConfig, client: CompletionClient, reviser: PlanReviser, console: Console):
        self.cfg = cfg
        self.client = client
        self.reviser = reviser
        self.console = console

    def verify(
        self,
        step: Step,
        result: ExecutionResult,
        previous_results: Sequence[ExecutionResult],
        remaining_steps: Sequence[Step] = (),
    ) -> VerificationResult:
        if not result.success:
            return VerificationResult(verified=False, reason=failure_reason(result))

        prompt = VERIFY_PROMPT.format(
            description=step.description,
            command=result.command or "No command",
            result=result.output or NO_OUTPUT,
            context=build_context(previous_results, max_output_chars=self.cfg.max_output_chars),
        )
        text = self.client.generate(prompt, json=True)
        data = parse_json_response(text)
        try:
            verification = VerificationResult.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(f"Verification does not match the expected shape: {e}", raw=text) from e

        c = self.console
        if not verification.verified:
            c.print(c.warning(f"Step verification failed: {verification.reason}"))
            if verification.suggestion:
                c.print(c.info(f"Suggestion: {verification.suggestion}"))
            return verification

        c.print(c.success(f"Step verified successfully: {verification.reason}"))
        if remaining_steps:
            verification = verification.model_copy(update={
                "plan_validation": self.reviser.validate_remaining(step, result, previous_results, remaining_steps),
            })
        return verification
