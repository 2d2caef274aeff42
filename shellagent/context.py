from __future__ import annotations
from typing import Iterable, List, Optional, Sequence

from .models import ExecutionResult, Step

NO_CONTEXT = "No previous steps executed yet."
TRUNCATION_MARK = "\n... (output truncated)"


def truncate_output(text: Optional[str], limit: int) -> Optional[str]:
    if not text or limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARK


def _entry(label: str, result: ExecutionResult, limit: int) -> str:
    output = truncate_output(result.output, limit) or "No output"
    return f"{label} Result: {output}\nCommand: {result.command or 'No command'}"


def build_context(
    previous_results: Sequence[ExecutionResult],
    partial_result: Optional[ExecutionResult] = None,
    max_output_chars: int = 0,
) -> str:
    """
    Render prior step results in the shape the prompts are tuned against::

        Step 1 Result: <output>
        Command: <command>

        Step 2 Result: ...
    """
    if previous_results:
        text = "\n\n".join(
            _entry(f"Step {i}", r, max_output_chars) for i, r in enumerate(previous_results, start=1)
        )
    else:
        text = NO_CONTEXT
    if partial_result is not None:
        text += "\n\n" + _entry("Current Step Partial", partial_result, max_output_chars)
    return text


def format_steps(steps: Iterable[Step]) -> str:
    lines: List[str] = []
    for i, step in enumerate(steps, start=1):
        entry = f"Step {i}: {step.description}"
        if step.command:
            entry += f"\nCommand: {step.command}"
        lines.append(entry)
    return "\n\n".join(lines)
