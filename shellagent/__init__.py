__version__ = "0.1.0"

from .config import AgentConfig
from .controller import Controller
from .models import ExecutionResult, Plan, PlanValidation, RunOutcome, RunRecord, Step, StepState, VerificationResult
from .placeholders import detect

__all__ = [
    "AgentConfig",
    "Controller",
    "ExecutionResult",
    "Plan",
    "PlanValidation",
    "RunOutcome",
    "RunRecord",
    "Step",
    "StepState",
    "VerificationResult",
    "detect",
    "__version__",
]
