from __future__ import annotations
from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlaceholderMatch(BaseModel):
    pattern: str
    match: str


class Step(BaseModel):
    """One planned action. ``command`` is absent for purely descriptive steps."""

    description: str
    certainty: float = Field(..., ge=0.0, le=1.0)
    command: Optional[str] = None
    placeholders: List[PlaceholderMatch] = Field(default_factory=list)
    description_placeholders: List[PlaceholderMatch] = Field(default_factory=list, alias="descriptionPlaceholders")
    clarified: bool = False

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("command", mode="before")
    @classmethod
    def _blank_command_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def key(self) -> Tuple[str, Optional[str]]:
        return (self.description, self.command)

    def to_prompt_json(self) -> dict:
        """The step as the model sees it: no bookkeeping fields."""
        data = {"description": self.description, "certainty": self.certainty}
        if self.command:
            data["command"] = self.command
        return data


class Plan(BaseModel):
    steps: List[Step] = Field(default_factory=list)


class StepState(str, Enum):
    PENDING = "pending"
    NEEDS_CLARIFICATION = "needs_clarification"
    READY = "ready"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    ABANDONED = "abandoned"


class ExecutionResult(BaseModel):
    success: bool
    skipped: bool = False
    abandoned: bool = False
    error: Optional[str] = None
    command: Optional[str] = None
    output: Optional[str] = None
    exit_code: Optional[int] = None
    revised_step: Optional[Step] = None

    @property
    def status(self) -> StepState:
        if self.success:
            return StepState.SUCCEEDED
        if self.abandoned:
            return StepState.ABANDONED
        if self.skipped:
            return StepState.SKIPPED
        return StepState.FAILED

    @property
    def hard_failure(self) -> bool:
        return self.status is StepState.FAILED


class PlanValidation(BaseModel):
    needs_update: bool = Field(..., alias="needsUpdate")
    reason: str = ""
    updated_steps: List[Step] = Field(default_factory=list, alias="updatedSteps")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("updated_steps", mode="before")
    @classmethod
    def _null_steps(cls, v):
        return [] if v is None else v


class VerificationResult(BaseModel):
    verified: bool
    reason: str = ""
    suggestion: Optional[str] = None
    plan_validation: Optional[PlanValidation] = None


class RunRecord(BaseModel):
    """``step`` is what actually ran; ``planned`` is the plan entry it came from."""

    step: Step
    result: ExecutionResult
    verification: VerificationResult
    planned: Optional[Step] = None

    def matches(self, step: Step) -> bool:
        return (self.planned or self.step).key() == step.key()

    def reusable(self) -> bool:
        return self.result.success and self.verification.verified


class RunOutcome(BaseModel):
    status: Literal["completed", "cancelled"]
    records: List[RunRecord] = Field(default_factory=list)
    stopped_at: Optional[int] = None
    reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return (
            self.status == "completed"
            and self.stopped_at is None
            and all(r.verification.verified for r in self.records)
        )
