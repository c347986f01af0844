import pytest
from ring_promoter.config import RingSettings
from ring_promoter.errors import AlreadyAssigned, PolicyNotFound
from ring_promoter.graph import PolicyClient
from ring_promoter.models import AssignmentLookup, GroupAssignment, Policy, PolicyCategory

GROUP_IDS = {
    "Intune-Dev-Users": "g-dev",
    "Intune-Test-Users": "g-test",
    "Intune-Prod-Users": "g-prod",
}


class FakePolicyClient(PolicyClient):
    """In-memory management service; assignments are keyed by group id"""

    def __init__(self, groups=None):
        self.groups = dict(GROUP_IDS if groups is None else groups)
        self.policies = {}
        self.assignments = {}
        self.statuses = {}
        self.calls = []

    def add_policy(self, policy_id, assigned=(), statuses=(), category=PolicyCategory.CONFIGURATION):
        policy = Policy(policy_id, f"Policy {policy_id}", category)
        self.policies[policy_id] = policy
        self.assignments[policy_id] = {
            self.groups[name]: GroupAssignment(self.groups[name], name) for name in assigned
        }
        self.statuses[policy_id] = [{"status": s} for s in statuses]
        return policy

    def find_policy(self, policy_id):
        self.calls.append(("find_policy", policy_id))
        if policy_id not in self.policies:
            raise PolicyNotFound(policy_id)
        return self.policies[policy_id]

    def find_group_by_name(self, name):
        self.calls.append(("find_group_by_name", name))
        if name not in self.groups:
            return None
        return {"id": self.groups[name], "displayName": name}

    def get_group_by_id(self, group_id):
        for name, gid in self.groups.items():
            if gid == group_id:
                return {"id": gid, "displayName": name}
        return None

    def get_device_statuses(self, policy):
        self.calls.append(("get_device_statuses", policy.policy_id))
        return list(self.statuses[policy.policy_id])

    def get_assignments(self, policy):
        self.calls.append(("get_assignments", policy.policy_id))
        return AssignmentLookup(assignments=list(self.assignments[policy.policy_id].values()))

    def add_group_assignment(self, policy, group_id, group_name, current):
        self.calls.append(("add_group_assignment", policy.policy_id, group_id))
        if group_id in current.group_ids() or group_id in self.assignments[policy.policy_id]:
            raise AlreadyAssigned(policy.policy_id, group_name)
        self.assignments[policy.policy_id][group_id] = GroupAssignment(group_id, group_name)


@pytest.fixture
def fake_client():
    return FakePolicyClient()


@pytest.fixture
def client_factory():
    return FakePolicyClient


@pytest.fixture
def settings():
    return RingSettings()
