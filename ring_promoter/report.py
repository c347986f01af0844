import json
from pathlib import Path

from .models import PromotionReport, now_utc

REPORT_FILE = "promotion-report.json"
LOG_FILE = "promotion.log"


def build_report(outcome, generated_at=None):
    resolution = outcome.resolution
    return PromotionReport(
        policy_id=outcome.policy.policy_id,
        policy_name=outcome.policy.display_name,
        policy_category=outcome.policy.category.value,
        current_stage=resolution.current_stage.value,
        next_stage=resolution.next_stage.value,
        action_type=resolution.action_type.value,
        status=outcome.status.value,
        ready_for_promotion=outcome.ready_for_promotion,
        threshold=outcome.threshold,
        metrics=outcome.metrics,
        auto_promote=outcome.auto_promote,
        promotion_executed=outcome.promotion_executed,
        generated_at=generated_at or now_utc(),
        shortfall=outcome.shortfall,
        promoted_stage=outcome.promoted_stage.value if outcome.promoted_stage else None,
        promoted_group=outcome.promoted_group,
        promoted_at=outcome.promoted_at,
        guidance=outcome.guidance,
        assignments=tuple(a.to_dict() for a in outcome.assignments),
        post_assignments=tuple(a.to_dict() for a in outcome.post_assignments),
        skipped_assignments=tuple({"target_id": s.target_id, "reason": s.reason}
                                  for s in outcome.skipped_assignments),
        warnings=tuple(outcome.warnings),
    )


def write_report(report, output_dir):
    path = Path(output_dir) / REPORT_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
    return path


def load_report(path):
    return PromotionReport.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))
