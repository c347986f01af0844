from .errors import AlreadyAssigned, TargetGroupNotFound
from .logger import get_logger
from .metrics import evaluate, shortfall
from .models import OutcomeStatus, PromotionOutcome, Stage, now_utc
from .stages import resolve_stage


class PromotionEngine:
    """Decides whether a policy may move to its next ring and, if allowed, moves it.

    Nothing is remembered between runs: the ring a policy is in is read back
    from its assignment list every time. Running two engines against the
    same policy at once is the caller's problem; no locking is done here.
    """

    def __init__(self, client, settings):
        self.client = client
        self.settings = settings
        self.logger = get_logger("engine")

    @staticmethod
    def is_ready(metrics, threshold):
        return metrics.total_devices > 0 and metrics.success_rate >= threshold

    @staticmethod
    def manual_command(policy, config):
        return (f"ring-promoter --policy-id {policy.policy_id} --stage {config.current_stage.value} "
                f"--threshold {config.threshold} --auto-promote")

    def _outcome(self, policy, status, resolution, metrics, config, lookup, ready):
        return PromotionOutcome(
            policy=policy,
            status=status,
            resolution=resolution,
            metrics=metrics,
            threshold=config.threshold,
            ready_for_promotion=ready,
            auto_promote=config.auto_promote,
            shortfall=shortfall(metrics, config.threshold),
            assignments=list(lookup.assignments),
            skipped_assignments=list(lookup.skipped),
        )

    def _promote(self, outcome, lookup):
        """Add the policy to the next ring's group and read the result back"""
        policy = outcome.policy
        target_stage = outcome.resolution.next_stage
        group_name = outcome.resolution.target_group

        self.logger.info(f"Looking up target group '{group_name}'")
        group = self.client.find_group_by_name(group_name)
        if not group:
            self.logger.error(f"Target group '{group_name}' not found")
            raise TargetGroupNotFound(group_name)

        try:
            self.client.add_group_assignment(policy, group["id"], group_name, lookup)
        except AlreadyAssigned as e:
            self.logger.warning(f"{e}; nothing to do")
            outcome.status = OutcomeStatus.ALREADY_ASSIGNED
            outcome.warnings.append(str(e))
            outcome.post_assignments = list(lookup.assignments)
            return outcome

        self.logger.info("Verifying assignment")
        after = self.client.get_assignments(policy)
        outcome.post_assignments = list(after.assignments)
        if group["id"] not in after.group_ids():
            message = f"group '{group_name}' missing from assignments after promotion"
            self.logger.warning(message)
            outcome.warnings.append(message)

        outcome.status = OutcomeStatus.PROMOTED
        outcome.promoted_stage = target_stage
        outcome.promoted_group = group_name
        outcome.promoted_at = now_utc()
        self.logger.info(f"SUCCESS: policy '{policy.display_name}' promoted to {target_stage.value} ({group_name})")
        return outcome

    def decide(self, policy, metrics, resolution, config, lookup):
        """Apply the threshold gate to a resolved stage and act on it"""
        ready = self.is_ready(metrics, config.threshold)

        if resolution.next_stage is Stage.COMPLETED:
            self.logger.info("Policy already deployed to every ring; nothing left to promote")
            return self._outcome(policy, OutcomeStatus.ALREADY_COMPLETE, resolution, metrics, config, lookup, ready)

        if not ready:
            outcome = self._outcome(policy, OutcomeStatus.NOT_READY, resolution, metrics, config, lookup, ready)
            if metrics.total_devices == 0:
                self.logger.warning("No device status reported yet; not ready for promotion")
            else:
                self.logger.warning(
                    f"NOT READY: success rate {metrics.success_rate}% is {outcome.shortfall} points "
                    f"below the {config.threshold}% threshold"
                )
            return outcome

        if not config.auto_promote:
            outcome = self._outcome(policy, OutcomeStatus.AWAITING_MANUAL, resolution, metrics, config, lookup, ready)
            outcome.guidance = (f"Ready to {resolution.action_type.value} to {resolution.next_stage.value} "
                                f"({resolution.target_group}). Run: {self.manual_command(policy, config)}")
            self.logger.info(outcome.guidance)
            return outcome

        outcome = self._outcome(policy, OutcomeStatus.PROMOTED, resolution, metrics, config, lookup, ready)
        return self._promote(outcome, lookup)

    def evaluate_policy(self, policy_id, config):
        """Full run for one policy: fetch, measure, resolve, decide"""
        config.validate()
        self.logger.info(f"Evaluating policy {policy_id} at stage {config.current_stage.value} "
                         f"(threshold={config.threshold}%, auto_promote={config.auto_promote})")

        self.logger.info("Detecting policy type")
        policy = self.client.find_policy(policy_id)

        self.logger.info("Retrieving assignments")
        lookup = self.client.get_assignments(policy)
        self.logger.info(f"Policy assigned to {len(lookup.assignments)} group(s): "
                         f"{', '.join(sorted(lookup.group_names())) or 'none'}")
        if lookup.skipped:
            self.logger.warning(f"{len(lookup.skipped)} assignment(s) could not be resolved")

        self.logger.info("Analysing device status")
        metrics = evaluate(self.client.get_device_statuses(policy))
        self.logger.info(f"{metrics.succeeded}/{metrics.total_devices} devices succeeded "
                         f"({metrics.success_rate}%), {metrics.error} error, {metrics.conflict} conflict, "
                         f"{metrics.pending} pending")

        resolution = resolve_stage(config.current_stage, lookup.group_names(), self.settings.ring_groups)
        self.logger.debug(f"Stage resolution: {resolution}")

        return self.decide(policy, metrics, resolution, config, lookup)
