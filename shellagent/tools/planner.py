from __future__ import annotations
import logging
import re
from typing import Any, List, Optional

from pydantic import ValidationError

from ..config import AgentConfig
from ..errors import AgentError, MalformedResponseError
from ..llm import CompletionClient, parse_json_response
from ..models import Plan, Step

logger = logging.getLogger(__name__)

CERTAINTY_GUIDELINES = """IMPORTANT GUIDELINES FOR CERTAINTY LEVELS:
- If you need to use placeholder values like "path/to/repo", "example.com", or "username" in a command,
  assign a LOW certainty level (below {threshold}) to indicate that more information is needed.
- DO NOT invent specific paths, URLs, or details that you're not certain about.
- If you're unsure about specific details needed for a command, explicitly use generic placeholders
  and set a low certainty level so the system will ask for clarification.
- Only use high certainty levels (0.8-1.0) when you're confident that all details in the command are correct
  and don't contain placeholder values."""

STEP_FORMAT = """Format your response as a JSON object with a 'steps' array, where each step has:
- description: string
- certainty: number (0.0-1.0)
- command: string (optional, only if a command needs to be executed)"""

PLAN_SYSTEM_PROMPT = """You are an intelligent agent that creates execution plans for user requests.
Create a CONCISE and EFFICIENT plan with AS FEW STEPS AS POSSIBLE to accomplish the user's request.
Group related commands together into single steps whenever possible.
Focus on accuracy and efficiency rather than breaking tasks into many small steps.

IMPORTANT: ALWAYS CHAIN COMMANDS using && or other methods to reduce the number of steps.
Specifically, NEVER use 'cd' as a standalone command - ALWAYS chain it with subsequent commands.
For example, instead of:
  Step 1: "cd /path/to/directory"
  Step 2: "git status"
Use:
  Step 1: "cd /path/to/directory && git status"

IMPORTANT: Prioritize verification steps before execution steps. For example:
1. First include steps to verify prerequisites and check if tools/commands are available
2. Then include steps to verify the environment and gather necessary information
3. Only after verification steps, include steps that execute actions or make changes

For each step, include:
1. A clear description of the action
2. A certainty level (0.0-1.0) indicating how confident you are that this step is correct and necessary
3. Any commands that need to be executed (if applicable)

{guidelines}

{step_format}

Example:
{{
  "steps": [
    {{"description": "Verify that the required tools are installed", "certainty": 0.95, "command": "which git && which cat"}},
    {{"description": "Create a notes file in the user's home directory", "certainty": 0.95, "command": "cd ~ && echo 'first note' > notes.txt"}},
    {{"description": "Verify the file was created with the correct content", "certainty": 0.9, "command": "cat ~/notes.txt"}}
  ]
}}"""

# Used by PlanReviser.replan_after_failure; shares the guidelines above.
REPLAN_SYSTEM_PROMPT = """You are an intelligent agent that creates new execution plans after a step has failed.
Based on the failed step, error message, and context from previous steps, create a new plan to accomplish the original goal.

IMPORTANT: The new plan should:
1. Start with verification steps to check if the tools/commands needed are available
2. Include alternative approaches to achieve the same goal
3. Be more cautious and include more verification steps
4. Avoid using the same approach that failed

For each step, include:
1. A clear description of the action
2. A certainty level (0.0-1.0) indicating how confident you are that this step is correct and necessary
3. Any commands that need to be executed (if applicable)

{guidelines}

{step_format}"""

REPLAN_USER_PROMPT = """Original request: {request}

Failed step: {description}
Failed command: {command}
Error message: {error}

Context from previous steps:
{context}

Please create a new plan to accomplish the original goal, taking into account the failure and previous steps."""

SUGGEST_SYSTEM_PROMPT = (
    "You are a helpful assistant that runs in a terminal on macOS/Linux. Interpret the user's input as a "
    "terminal command whenever possible. If you provide a command, respond ONLY with the command to run, "
    "with no additional text or explanation. Respond with \"NOT_A_COMMAND\" only if the input is clearly "
    "not related to any terminal operation or file system task."
)

NOT_A_COMMAND = "NOT_A_COMMAND"
_CODE_FENCE_RE = re.compile(r"```(?:bash|sh|shell)?")


def normalize_plan(data: Any) -> dict:
    """A bare list becomes ``{"steps": list}``, a bare step object ``{"steps": [obj]}``."""
    if isinstance(data, list):
        return {"steps": data}
    if isinstance(data, dict):
        if "steps" not in data:
            return {"steps": [data]}
        return data
    raise MalformedResponseError(f"Expected a JSON object or array for a plan, got {type(data).__name__}")


def parse_plan(text: str, max_steps: Optional[int] = None) -> Plan:
    """Decode and validate a plan reply; ``MalformedResponseError`` on any shape problem."""
    data = normalize_plan(parse_json_response(text))
    if not isinstance(data.get("steps"), list):
        raise MalformedResponseError("Plan 'steps' must be an array", raw=text)
    try:
        plan = Plan.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"Plan does not match the expected shape: {e}", raw=text) from e
    return Plan(steps=cap_steps(plan.steps, max_steps))


def cap_steps(steps: List[Step], max_steps: Optional[int]) -> List[Step]:
    if max_steps is not None and len(steps) > max_steps:
        logger.warning("plan has %d steps, keeping the first %d", len(steps), max_steps)
        return steps[:max_steps]
    return list(steps)


def plan_system_prompt(template: str, threshold: float) -> str:
    return template.format(
        guidelines=CERTAINTY_GUIDELINES.format(threshold=threshold),
        step_format=STEP_FORMAT,
    )


class PlanGenerator:
    """Turns a request into an ordered list of steps."""

    def __init__(self, cfg: AgentConfig, client: CompletionClient):
        self.cfg = cfg
        self.client = client

    def create_plan(self, user_input: str, threshold: Optional[float] = None) -> Plan:
        threshold = self.cfg.certainty_threshold if threshold is None else threshold
        text = self.client.generate(plan_system_prompt(PLAN_SYSTEM_PROMPT, threshold), user_input, json=True)
        plan = parse_plan(text, self.cfg.max_plan_steps)
        logger.info("created plan with %d step(s)", len(plan.steps))
        return plan


class CommandSuggester:
    """Quick mode: translate a request into exactly one shell command."""

    def __init__(self, client: CompletionClient):
        self.client = client

    def suggest(self, request: str) -> Optional[str]:
        try:
            content = self.client.generate(SUGGEST_SYSTEM_PROMPT, request)
        except AgentError as e:
            logger.error("could not get a command suggestion: %s", e)
            return None
        if NOT_A_COMMAND in content:
            return None
        command = _CODE_FENCE_RE.sub("", content).replace("\n", " ").strip()
        return command or None
