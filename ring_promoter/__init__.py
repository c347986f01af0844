from .models import (
    Stage, PolicyCategory, ActionType, OutcomeStatus, Verbosity,
    Policy, GroupAssignment, AssignmentLookup, SkippedAssignment,
    DeploymentMetrics, StageResolution, PromotionConfig, PromotionOutcome, PromotionReport
)
from .errors import (
    PromotionError, ValidationError, PolicyNotFound, TargetGroupNotFound,
    AlreadyAssigned, RemoteAPIError
)
from .config import RingSettings
from .metrics import evaluate
from .stages import resolve_stage
from .engine import PromotionEngine
from .graph import PolicyClient, GraphClient

__all__ = [
    "Stage", "PolicyCategory", "ActionType", "OutcomeStatus", "Verbosity",
    "Policy", "GroupAssignment", "AssignmentLookup", "SkippedAssignment",
    "DeploymentMetrics", "StageResolution", "PromotionConfig", "PromotionOutcome", "PromotionReport",
    "PromotionError", "ValidationError", "PolicyNotFound", "TargetGroupNotFound",
    "AlreadyAssigned", "RemoteAPIError",
    "RingSettings", "evaluate", "resolve_stage", "PromotionEngine",
    "PolicyClient", "GraphClient",
]
