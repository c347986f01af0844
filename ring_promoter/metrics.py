from decimal import Decimal, ROUND_HALF_UP

from .models import DeploymentMetrics

# Remote device status -> DeploymentMetrics counter. Unlisted statuses
# (nonCompliant, remediated, ...) only count towards the total.
STATUS_CATEGORIES = {
    "compliant": "succeeded",
    "error": "error",
    "conflict": "conflict",
    "notApplicable": "not_applicable",
    "pending": "pending",
    "unknown": "pending",
}

_TWO_PLACES = Decimal("0.01")


def round_rate(value):
    """Round half away from zero to two decimals (12.345 -> 12.35)"""
    return float(Decimal(value).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def success_rate(succeeded, total):
    if total <= 0:
        return 0.0
    return round_rate(Decimal(succeeded) * 100 / Decimal(total))


def _status_of(entry):
    if isinstance(entry, str):
        return entry
    return entry.get("status")


def evaluate(device_statuses):
    """Count device statuses and derive the success rate"""
    statuses = [_status_of(entry) for entry in device_statuses]
    counts = {name: 0 for name in set(STATUS_CATEGORIES.values())}
    for status in statuses:
        bucket = STATUS_CATEGORIES.get(status)
        if bucket:
            counts[bucket] += 1

    total = len(statuses)
    return DeploymentMetrics(
        total_devices=total,
        succeeded=counts["succeeded"],
        error=counts["error"],
        conflict=counts["conflict"],
        not_applicable=counts["not_applicable"],
        pending=counts["pending"],
        success_rate=success_rate(counts["succeeded"], total),
    )


def shortfall(metrics, threshold):
    """How many percentage points the rate is below the threshold"""
    gap = Decimal(str(threshold)) - Decimal(str(metrics.success_rate))
    return round_rate(max(gap, Decimal(0)))
