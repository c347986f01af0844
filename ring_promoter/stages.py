from .models import Stage, ActionType, StageResolution


def resolve_stage(current_stage, assigned_group_names, ring_groups):
    """Work out where the policy goes next from the groups it is assigned to.

    A policy that already reaches the group of ``current_stage`` is promoted
    to the following stage; otherwise it first has to be deployed to the
    current one. ``ring_groups`` maps each real stage to its group name.
    """
    current_stage = Stage(current_stage)
    assigned = set(assigned_group_names)

    if ring_groups.get(current_stage) in assigned:
        next_stage = current_stage.next()
        action = ActionType.PROMOTE
    else:
        next_stage = current_stage
        action = ActionType.DEPLOY

    return StageResolution(
        current_stage=current_stage,
        next_stage=next_stage,
        action_type=action,
        target_group=ring_groups.get(next_stage),
    )
