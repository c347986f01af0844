from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum

from .errors import ValidationError


class Stage(str, Enum):
    DEV = "dev"
    TEST = "test"
    PROD = "prod"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value):
        """Parse a user supplied stage; only the three real rings are accepted"""
        if isinstance(value, Stage) and value is not Stage.COMPLETED:
            return value
        text = str(value or "").strip().lower()
        for stage in REAL_STAGES:
            if stage.value == text:
                return stage
        raise ValidationError(f"stage must be one of dev, test, prod (got {value!r})")

    def next(self):
        if self is Stage.COMPLETED:
            return Stage.COMPLETED
        return STAGE_ORDER[STAGE_ORDER.index(self) + 1]


STAGE_ORDER = [Stage.DEV, Stage.TEST, Stage.PROD, Stage.COMPLETED]
REAL_STAGES = STAGE_ORDER[:-1]


def now_utc():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class PolicyCategory(str, Enum):
    CONFIGURATION = "configuration"
    SETTINGS_CATALOG = "configuration-settings-catalog"
    COMPLIANCE = "compliance"
    AUTOPILOT_PROFILE = "autopilot-profile"
    APP_PROTECTION = "application-protection"
    CONDITIONAL_ACCESS = "conditional-access"


class ActionType(str, Enum):
    DEPLOY = "deploy"
    PROMOTE = "promote"


class OutcomeStatus(str, Enum):
    ALREADY_COMPLETE = "already_complete"
    NOT_READY = "not_ready"
    AWAITING_MANUAL = "awaiting_manual"
    PROMOTED = "promoted"
    ALREADY_ASSIGNED = "already_assigned"


class Verbosity(str, Enum):
    MINIMAL = "Minimal"
    NORMAL = "Normal"
    DETAILED = "Detailed"


@dataclass(frozen=True)
class Policy:
    policy_id: str
    display_name: str
    category: PolicyCategory


@dataclass(frozen=True)
class GroupAssignment:
    group_id: str
    group_name: str
    include: bool = True
    filter_id: str = None
    filter_type: str = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(
            group_id=data["group_id"],
            group_name=data["group_name"],
            include=data.get("include", True),
            filter_id=data.get("filter_id"),
            filter_type=data.get("filter_type"),
        )


@dataclass(frozen=True)
class SkippedAssignment:
    """An assignment entry that could not be turned into a GroupAssignment"""
    target_id: str
    reason: str


@dataclass
class AssignmentLookup:
    """Partial-success result of reading a policy's assignment list"""
    assignments: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    raw: list = field(default_factory=list)  # Untouched remote entries, replayed on write

    def group_ids(self):
        return {a.group_id for a in self.assignments}

    def group_names(self):
        return {a.group_name for a in self.assignments if a.include}

    def find(self, group_id):
        for assignment in self.assignments:
            if assignment.group_id == group_id:
                return assignment
        return None


@dataclass(frozen=True)
class DeploymentMetrics:
    total_devices: int = 0
    succeeded: int = 0
    error: int = 0
    conflict: int = 0
    not_applicable: int = 0
    pending: int = 0
    success_rate: float = 0.0

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        return cls(**{k: data[k] for k in cls.__dataclass_fields__ if k in data})


@dataclass(frozen=True)
class StageResolution:
    current_stage: Stage
    next_stage: Stage
    action_type: ActionType
    target_group: str = None  # None once the ring progression is completed


@dataclass
class PromotionConfig:
    """Per-run options, validated before any remote call"""
    threshold: int = 80  # Minimum success rate (1-100) required to move on
    current_stage: Stage = Stage.DEV
    auto_promote: bool = False  # Allow the engine to mutate assignments
    output_path: str = "./reports"
    verbosity: Verbosity = Verbosity.NORMAL

    def validate(self):
        if isinstance(self.threshold, bool) or not isinstance(self.threshold, int):
            raise ValidationError(f"threshold must be an integer (got {self.threshold!r})")
        if not 1 <= self.threshold <= 100:
            raise ValidationError(f"threshold must be between 1 and 100 (got {self.threshold})")
        self.current_stage = Stage.parse(self.current_stage)
        try:
            self.verbosity = Verbosity(self.verbosity)
        except ValueError:
            raise ValidationError(f"verbosity must be Minimal, Normal or Detailed (got {self.verbosity!r})") from None
        return self


@dataclass
class PromotionOutcome:
    """Everything the report needs about one evaluation"""
    policy: Policy
    status: OutcomeStatus
    resolution: StageResolution
    metrics: DeploymentMetrics
    threshold: int
    ready_for_promotion: bool
    auto_promote: bool = False
    shortfall: float = 0.0
    promoted_stage: Stage = None
    promoted_group: str = None
    promoted_at: str = None
    guidance: str = None
    assignments: list = field(default_factory=list)
    post_assignments: list = field(default_factory=list)
    skipped_assignments: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    @property
    def promotion_executed(self):
        return self.status == OutcomeStatus.PROMOTED


@dataclass(frozen=True)
class PromotionReport:
    policy_id: str
    policy_name: str
    policy_category: str
    current_stage: str
    next_stage: str
    action_type: str
    status: str
    ready_for_promotion: bool
    threshold: int
    metrics: DeploymentMetrics
    auto_promote: bool
    promotion_executed: bool
    generated_at: str
    shortfall: float = 0.0
    promoted_stage: str = None
    promoted_group: str = None
    promoted_at: str = None
    guidance: str = None
    assignments: tuple = ()
    post_assignments: tuple = ()
    skipped_assignments: tuple = ()
    warnings: tuple = ()

    def to_dict(self):
        data = asdict(self)
        for key in ("assignments", "post_assignments", "skipped_assignments", "warnings"):
            data[key] = list(data[key])
        return data

    @classmethod
    def from_dict(cls, data):
        values = {k: data.get(k) for k in cls.__dataclass_fields__ if k in data}
        values["metrics"] = DeploymentMetrics.from_dict(data["metrics"])
        for key in ("assignments", "post_assignments", "skipped_assignments", "warnings"):
            values[key] = tuple(data.get(key) or ())
        return cls(**values)
