import dataclasses
import pytest
from ring_promoter.metrics import evaluate, success_rate, shortfall, round_rate
from ring_promoter.models import DeploymentMetrics


class TestEvaluate:
    """Device status counting."""

    def test_counts_each_status_category(self):
        statuses = ["compliant", "compliant", "error", "conflict", "notApplicable", "pending", "unknown"]
        m = evaluate([{"status": s} for s in statuses])
        assert m.total_devices == 7
        assert m.succeeded == 2
        assert m.error == 1
        assert m.conflict == 1
        assert m.not_applicable == 1
        assert m.pending == 2
        assert m.success_rate == 28.57

    def test_unknown_status_values_only_count_towards_total(self):
        m = evaluate([{"status": "compliant"}, {"status": "nonCompliant"}, {"status": "remediated"}, {}])
        assert m.total_devices == 4
        assert m.succeeded == 1
        assert m.error + m.conflict + m.not_applicable + m.pending == 0
        assert m.success_rate == 25.0

    def test_accepts_bare_status_strings(self):
        m = evaluate(["compliant", "error"])
        assert m.total_devices == 2
        assert m.succeeded == 1
        assert m.error == 1

    def test_empty_input_has_zero_rate(self):
        assert evaluate([]) == DeploymentMetrics()

    def test_eight_of_ten_is_exactly_eighty(self):
        m = evaluate(["compliant"] * 8 + ["error"] * 2)
        assert m.success_rate == 80.0

    def test_all_succeeded(self):
        assert evaluate(["compliant"] * 8).success_rate == 100.0

    def test_evaluate_does_not_modify_input(self):
        statuses = [{"status": "compliant"}]
        evaluate(statuses)
        assert statuses == [{"status": "compliant"}]

    def test_typed_counts_are_not_a_partition_of_total(self):
        # Typed counts may be below the total; nothing forces them to add up
        m = evaluate(["compliant", "nonCompliant", "notAssigned"])
        typed = m.succeeded + m.error + m.conflict + m.not_applicable + m.pending
        assert typed < m.total_devices

        # ...and a metrics record reported with overlapping tallies is still valid
        overlapping = DeploymentMetrics(total_devices=2, succeeded=2, error=1, pending=1, success_rate=100.0)
        assert overlapping.succeeded + overlapping.error + overlapping.pending > overlapping.total_devices


class TestRounding:
    """Success rate rounding is half away from zero at two decimals."""

    def test_half_rounds_up(self):
        # 1/800 = 0.125 exactly; banker's rounding would give 0.12
        assert success_rate(1, 800) == 0.13

    def test_repeating_fraction(self):
        assert success_rate(2, 3) == 66.67
        assert success_rate(1, 3) == 33.33

    def test_rounding_can_reach_threshold(self):
        # 79.995 rounds to 80.00, which meets an 80 threshold
        assert success_rate(15999, 20000) == 80.0

    def test_zero_total(self):
        assert success_rate(5, 0) == 0.0

    @pytest.mark.parametrize("value,expected", [("12.345", 12.35), ("12.344", 12.34), ("0.005", 0.01)])
    def test_round_rate(self, value, expected):
        assert round_rate(value) == expected


class TestShortfall:

    def test_points_below_threshold(self):
        m = DeploymentMetrics(total_devices=3, succeeded=2, success_rate=66.67)
        assert shortfall(m, 80) == 13.33

    def test_no_shortfall_when_above(self):
        m = DeploymentMetrics(total_devices=1, succeeded=1, success_rate=100.0)
        assert shortfall(m, 80) == 0.0


class TestDeploymentMetricsRecord:

    def test_metrics_cannot_be_changed_after_evaluation(self):
        m = evaluate(["compliant", "error"])
        with pytest.raises(dataclasses.FrozenInstanceError):
            m.success_rate = 100.0
        assert m.success_rate == 50.0
