from __future__ import annotations
import logging
from typing import List, Optional

from .config import AgentConfig
from .console import Console, Prompter
from .llm import CompletionClient
from .models import ExecutionResult, Plan, RunOutcome, RunRecord, Step
from .placeholders import flag_placeholders
from .tools.executor import ClarificationResolver, StepExecutor
from .tools.planner import PlanGenerator
from .tools.terminal import CommandRunner
from .tools.verifier import OutcomeVerifier, PlanReviser

logger = logging.getLogger(__name__)


class Controller:
    """
    Runs one request end to end: plan, confirm, then execute, verify and
    revise step by step.

    The controller is the only owner of the live ``Plan`` and of the list of
    ``RunRecord``s; every collaborator gets copies and hands back new values.
    """

    def __init__(
        self,
        cfg: AgentConfig,
        client: CompletionClient,
        runner: CommandRunner,
        prompter: Prompter,
        console: Optional[Console] = None,
    ):
        self.cfg = cfg
        self.prompter = prompter
        self.console = console or Console(colors=cfg.color_output)
        self.generator = PlanGenerator(cfg, client)
        self.reviser = PlanReviser(cfg, client, self.console)
        self.verifier = OutcomeVerifier(cfg, client, self.reviser, self.console)
        resolver = ClarificationResolver(cfg, client, prompter, self.console)
        self.executor = StepExecutor(cfg, runner, resolver, prompter, self.console)

    @property
    def threshold(self) -> float:
        return self.cfg.certainty_threshold

    def flag(self, steps: List[Step]) -> List[Step]:
        """Apply placeholder detection, reporting every clamp."""
        flagged = []
        for step in steps:
            new = flag_placeholders(step, self.threshold)
            if new is not step:
                where = "command" if new.placeholders else "description"
                logger.warning("placeholder in %s of step %r", where, step.description)
                self.console.print(self.console.warning(
                    f"Note: Detected potential placeholder values in {where}: "
                    f"\"{step.command if new.placeholders else step.description}\"\n"
                    f"Adjusting certainty from {step.certainty:.2f} to {new.certainty:.2f} to request clarification."
                ))
            flagged.append(new)
        return flagged

    def prepare_plan(self, user_input: str) -> Plan:
        plan = self.generator.create_plan(user_input, self.threshold)
        return Plan(steps=self.flag(plan.steps))

    def run(self, user_input: str) -> RunOutcome:
        c = self.console
        c.print(c.success(f"Starting agentic execution for: {user_input}"))

        plan = self.prepare_plan(user_input)
        c.show_steps("Execution Plan:", plan.steps, self.threshold)
        if not self.prompter.confirm("Do you want to execute this plan?", default=False):
            c.print(c.warning("Plan execution cancelled"))
            return RunOutcome(status="cancelled", reason="Plan execution cancelled by user")

        records: List[RunRecord] = []
        stopped_at: Optional[int] = None
        reason: Optional[str] = None
        i = 0
        while i < len(plan.steps):
            step = plan.steps[i]
            c.print(c.success(f"\nExecuting step {i + 1}/{len(plan.steps)}:"))
            previous = [r.result for r in records]

            done = next((r for r in records if r.matches(step) and r.reusable()), None)
            if done is not None:
                c.print(c.success("Step already executed successfully. Skipping."))
                records.append(RunRecord(step=done.step, planned=step, result=done.result,
                                         verification=done.verification))
                i += 1
                continue

            result = self.executor.execute(step, previous)
            executed = result.revised_step or step

            if result.hard_failure:
                c.print(c.error(f"\nStep execution failed: {result.error}"))
                new_plan = self._offer_replan(executed, result, previous, user_input)
                if new_plan is not None:
                    plan.steps = new_plan.steps
                    records.clear()
                    c.print(c.success("New plan adopted. Restarting execution from the beginning of the new plan."))
                    i = 0
                    continue
                c.print(c.warning("Continuing with the original plan."))

            remaining = [s.model_copy() for s in plan.steps[i + 1:]]
            verification = self.verifier.verify(executed, result, previous, remaining)
            records.append(RunRecord(step=executed, planned=step, result=result, verification=verification))

            if result.abandoned:
                stopped_at, reason = i, "Clarification limit reached"
                c.print(c.warning(f"Plan execution stopped after step {i + 1}"))
                break

            if not verification.verified:
                if not self.prompter.confirm(
                    "Step verification failed. Do you want to continue with the next step?", default=False
                ):
                    stopped_at, reason = i, verification.reason
                    c.print(c.warning(f"Plan execution stopped after step {i + 1}"))
                    break
            elif verification.plan_validation and verification.plan_validation.needs_update:
                self._offer_revision(plan, i, verification.plan_validation.updated_steps,
                                     verification.plan_validation.reason)
            i += 1

        self._summarize(records)
        return RunOutcome(status="completed", records=records, stopped_at=stopped_at, reason=reason)

    def _offer_replan(
        self, step: Step, result: ExecutionResult, previous: List[ExecutionResult], user_input: str
    ) -> Optional[Plan]:
        if not self.prompter.confirm("Would you like to create a new plan from this point?", default=True):
            return None
        new_plan = self.reviser.replan_after_failure(step, result.error, previous, user_input)
        new_plan = Plan(steps=self.flag(new_plan.steps))
        self.console.show_steps("New Plan:", new_plan.steps, self.threshold)
        if not self.prompter.confirm("Do you want to use this new plan?", default=True):
            return None
        return new_plan

    def _offer_revision(self, plan: Plan, i: int, updated: List[Step], why: str) -> None:
        c = self.console
        c.print(c.warning("\nRemaining plan steps need to be updated based on the current step output."))
        c.print(c.warning(f"Reason: {why}"))
        updated = self.flag(updated)
        c.show_steps("Updated Execution Plan:", updated, self.threshold)
        if self.prompter.confirm("Do you want to use this updated plan for the remaining steps?", default=True):
            plan.steps[i + 1:] = updated
            c.print(c.success("Plan updated successfully. Continuing with the updated plan."))
        else:
            c.print(c.warning("Continuing with the original plan."))

    def _summarize(self, records: List[RunRecord]) -> None:
        c = self.console
        c.print(c.success("\nExecution Summary:"))
        for n, record in enumerate(records, 1):
            if record.verification.verified:
                status = c.success("✓ Success")
            elif record.result.skipped:
                status = c.warning("⚠ Skipped")
            elif record.result.abandoned:
                status = c.warning("⚠ Abandoned")
            else:
                status = c.error("✗ Failed")
            c.print(f"{status} Step {n}: {record.step.description}")
