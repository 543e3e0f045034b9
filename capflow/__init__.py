"""capflow: plan compilation and execution for guided capture workflows."""

from .cache import get_plan_cache
from .compiler import (
    BackendCompileError,
    CompileError,
    CompileReport,
    PlanCompiler,
    UnrecoverablePlanError,
)
from .contracts import CandidatePlan, CaptureKind, Plan, Step, Transition, TransitionCondition
from .manager import SessionManager
from .models import Annotation, CapturedMedia, LifecycleState, SessionState
from .persistence import get_session_store
from .session import CaptureSession
from .validation import PlanValidationError, repair, validate

__version__ = "0.1.0"
__all__ = [
    "Annotation",
    "BackendCompileError",
    "CandidatePlan",
    "CaptureKind",
    "CaptureSession",
    "CapturedMedia",
    "CompileError",
    "CompileReport",
    "LifecycleState",
    "Plan",
    "PlanCompiler",
    "PlanValidationError",
    "SessionManager",
    "SessionState",
    "Step",
    "Transition",
    "TransitionCondition",
    "UnrecoverablePlanError",
    "get_plan_cache",
    "get_session_store",
    "repair",
    "validate",
]
