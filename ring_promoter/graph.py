"""
Microsoft Graph client for Intune policy assignments.

``PolicyClient`` is the contract the promotion engine talks to; ``GraphClient``
implements it over the Graph REST API with a bearer token. Tests substitute
their own ``PolicyClient``.

Assignment writes keep every existing entry: the ``/assign`` action replaces
the whole list, so the current entries are replayed with the new target
appended.
"""

import time
from dataclasses import dataclass
from enum import Enum

import requests

from .errors import AlreadyAssigned, PolicyNotFound, RemoteAPIError
from .logger import get_logger
from .models import (
    AssignmentLookup, GroupAssignment, Policy, PolicyCategory, SkippedAssignment
)

INCLUDE_TARGET = "#microsoft.graph.groupAssignmentTarget"
EXCLUDE_TARGET = "#microsoft.graph.exclusionGroupAssignmentTarget"

RETRY_STATUSES = {429, 503}
MAX_RETRY_DELAY_S = 30.0


class AssignMode(str, Enum):
    ASSIGN_ACTION = "assign_action"  # POST {policy}/assign with the full list
    COLLECTION = "collection"  # POST {policy}/assignments, one entry at a time
    CONDITIONS = "conditions"  # PATCH conditions.users.includeGroups


@dataclass(frozen=True)
class CategoryEndpoint:
    path: str
    name_field: str = "displayName"
    device_status_path: str = None
    assign_mode: AssignMode = AssignMode.ASSIGN_ACTION


CATEGORY_ENDPOINTS = {
    PolicyCategory.CONFIGURATION: CategoryEndpoint(
        "deviceManagement/deviceConfigurations", device_status_path="deviceStatuses"),
    PolicyCategory.SETTINGS_CATALOG: CategoryEndpoint(
        "deviceManagement/configurationPolicies", name_field="name"),
    PolicyCategory.COMPLIANCE: CategoryEndpoint(
        "deviceManagement/deviceCompliancePolicies", device_status_path="deviceStatuses"),
    PolicyCategory.AUTOPILOT_PROFILE: CategoryEndpoint(
        "deviceManagement/windowsAutopilotDeploymentProfiles", assign_mode=AssignMode.COLLECTION),
    PolicyCategory.APP_PROTECTION: CategoryEndpoint(
        "deviceAppManagement/managedAppPolicies", assign_mode=AssignMode.COLLECTION),
    PolicyCategory.CONDITIONAL_ACCESS: CategoryEndpoint(
        "identity/conditionalAccess/policies", assign_mode=AssignMode.CONDITIONS),
}

_missing = set(PolicyCategory) - set(CATEGORY_ENDPOINTS)
if _missing:
    raise RuntimeError(f"no Graph endpoint registered for categories: {sorted(c.value for c in _missing)}")


class PolicyClient:
    """Operations the promotion engine needs from the management service"""

    def find_policy(self, policy_id):
        raise NotImplementedError

    def find_group_by_name(self, name):
        """Return ``{"id": ..., "displayName": ...}`` or None"""
        raise NotImplementedError

    def get_group_by_id(self, group_id):
        raise NotImplementedError

    def get_device_statuses(self, policy):
        raise NotImplementedError

    def get_assignments(self, policy):
        """Return an AssignmentLookup for the policy"""
        raise NotImplementedError

    def add_group_assignment(self, policy, group_id, group_name, current):
        """Add an include assignment for the group, keeping the ``current`` ones"""
        raise NotImplementedError


class GraphClient(PolicyClient):
    def __init__(self, access_token, base_url="https://graph.microsoft.com/beta", session=None,
                 timeout=30, max_retries=2, retry_base_delay_s=1.0):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.session = session if session else requests.Session()
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.retry_base_delay_s = retry_base_delay_s
        self.logger = get_logger("graph")

    def _headers(self):
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    def _retry_delay(self, response, attempt):
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return min(float(retry_after), MAX_RETRY_DELAY_S)
            except ValueError:
                pass
        return min((2 ** (attempt - 1)) * self.retry_base_delay_s, MAX_RETRY_DELAY_S)

    def _send(self, method, url, operation, policy_id, **kwargs):
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                response = self.session.request(
                    method, url, headers=self._headers(), timeout=self.timeout, **kwargs
                )
            except requests.RequestException as e:
                raise RemoteAPIError(operation, str(e), policy_id=policy_id) from e

            if response.status_code in RETRY_STATUSES and attempt < attempts:
                delay = self._retry_delay(response, attempt)
                self.logger.warning(
                    f"{operation}: HTTP {response.status_code}, retry {attempt}/{self.max_retries} in {delay}s"
                )
                time.sleep(delay)
                continue
            return response

    def _call(self, method, path, operation, policy_id=None, not_found_ok=False, **kwargs):
        url = path if path.startswith("http") else f"{self.base_url}/{path}"
        self.logger.debug(f"{method} {url}")
        response = self._send(method, url, operation, policy_id, **kwargs)

        if not_found_ok and response.status_code in (400, 404):
            return None
        if response.status_code >= 400:
            raise RemoteAPIError(operation, _error_message(response), policy_id=policy_id,
                                 status_code=response.status_code)
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise RemoteAPIError(operation, f"malformed response: {e}", policy_id=policy_id,
                                 status_code=response.status_code) from e

    def _get_collection(self, path, operation, policy_id=None, params=None):
        data = self._call("GET", path, operation, policy_id, params=params)
        items = list(data.get("value", []))
        next_link = data.get("@odata.nextLink")
        while next_link:
            data = self._call("GET", next_link, operation, policy_id)
            items.extend(data.get("value", []))
            next_link = data.get("@odata.nextLink")
        return items

    def _policy_path(self, policy):
        return f"{CATEGORY_ENDPOINTS[policy.category].path}/{policy.policy_id}"

    def find_policy(self, policy_id):
        for category, endpoint in CATEGORY_ENDPOINTS.items():
            data = self._call("GET", f"{endpoint.path}/{policy_id}", "lookup policy",
                              policy_id, not_found_ok=True)
            if data is None:
                self.logger.debug(f"Policy {policy_id} is not a {category.value} policy")
                continue
            name = data.get(endpoint.name_field) or data.get("displayName") or policy_id
            self.logger.info(f"Detected {category.value} policy '{name}'")
            return Policy(policy_id=data.get("id", policy_id), display_name=name, category=category)
        raise PolicyNotFound(policy_id)

    def find_group_by_name(self, name):
        escaped = name.replace("'", "''")
        groups = self._get_collection(
            "groups", "lookup group",
            params={"$filter": f"displayName eq '{escaped}'", "$select": "id,displayName"},
        )
        if not groups:
            return None
        if len(groups) > 1:
            self.logger.warning(f"{len(groups)} groups named '{name}', using {groups[0]['id']}")
        return groups[0]

    def get_group_by_id(self, group_id):
        return self._call("GET", f"groups/{group_id}", "get group", params={"$select": "id,displayName"})

    def get_device_statuses(self, policy):
        endpoint = CATEGORY_ENDPOINTS[policy.category]
        if not endpoint.device_status_path:
            self.logger.warning(f"No per-device status report for {policy.category.value} policies")
            return []
        return self._get_collection(f"{self._policy_path(policy)}/{endpoint.device_status_path}",
                                    "get device statuses", policy.policy_id)

    def _resolve_group(self, group_id, include, lookup, filter_id=None, filter_type=None):
        try:
            group = self.get_group_by_id(group_id)
        except RemoteAPIError as e:
            self.logger.warning(f"Skipping assignment to group {group_id}: {e}")
            lookup.skipped.append(SkippedAssignment(target_id=group_id, reason=str(e)))
            return
        lookup.assignments.append(GroupAssignment(
            group_id=group_id,
            group_name=group.get("displayName") or group_id,
            include=include,
            filter_id=filter_id,
            filter_type=filter_type,
        ))

    def get_assignments(self, policy):
        endpoint = CATEGORY_ENDPOINTS[policy.category]
        lookup = AssignmentLookup()

        if endpoint.assign_mode == AssignMode.CONDITIONS:
            data = self._call("GET", self._policy_path(policy), "get assignments", policy.policy_id)
            users = (data.get("conditions") or {}).get("users") or {}
            lookup.raw = [users]
            for group_id in users.get("includeGroups") or []:
                self._resolve_group(group_id, True, lookup)
            for group_id in users.get("excludeGroups") or []:
                self._resolve_group(group_id, False, lookup)
            return lookup

        lookup.raw = self._get_collection(f"{self._policy_path(policy)}/assignments",
                                          "get assignments", policy.policy_id)
        for entry in lookup.raw:
            target = entry.get("target") or {}
            target_type = target.get("@odata.type")
            group_id = target.get("groupId")
            if target_type not in (INCLUDE_TARGET, EXCLUDE_TARGET) or not group_id:
                lookup.skipped.append(SkippedAssignment(
                    target_id=entry.get("id") or str(target_type),
                    reason=f"not a group target ({target_type})",
                ))
                continue
            self._resolve_group(
                group_id, target_type == INCLUDE_TARGET, lookup,
                filter_id=target.get("deviceAndAppManagementAssignmentFilterId"),
                filter_type=target.get("deviceAndAppManagementAssignmentFilterType"),
            )
        return lookup

    @staticmethod
    def _assigned_group_ids(mode, current):
        """Group ids present in the raw list, including entries that could not be resolved"""
        ids = set(current.group_ids())
        for entry in current.raw:
            if mode == AssignMode.CONDITIONS:
                ids.update(entry.get("includeGroups") or [])
                ids.update(entry.get("excludeGroups") or [])
            else:
                group_id = (entry.get("target") or {}).get("groupId")
                if group_id:
                    ids.add(group_id)
        return ids

    def add_group_assignment(self, policy, group_id, group_name, current):
        endpoint = CATEGORY_ENDPOINTS[policy.category]
        if group_id in self._assigned_group_ids(endpoint.assign_mode, current):
            raise AlreadyAssigned(policy.policy_id, group_name)

        new_target = {"@odata.type": INCLUDE_TARGET, "groupId": group_id}
        path = self._policy_path(policy)
        self.logger.info(f"Assigning {policy.category.value} policy {policy.policy_id} to '{group_name}'")

        if endpoint.assign_mode == AssignMode.CONDITIONS:
            users = current.raw[0] if current.raw else {}
            include = list(users.get("includeGroups") or []) + [group_id]
            self._call("PATCH", path, "set assignment", policy.policy_id,
                       json={"conditions": {"users": {**users, "includeGroups": include}}})
        elif endpoint.assign_mode == AssignMode.COLLECTION:
            self._call("POST", f"{path}/assignments", "set assignment", policy.policy_id,
                       json={"target": new_target})
        else:
            assignments = [{"target": entry["target"]} for entry in current.raw if entry.get("target")]
            assignments.append({"target": new_target})
            self._call("POST", f"{path}/assign", "set assignment", policy.policy_id,
                       json={"assignments": assignments})


def _error_message(response):
    try:
        error = response.json().get("error") or {}
        message = error.get("message")
        if message:
            return f"{error.get('code', 'error')}: {message}"
    except (ValueError, AttributeError):
        pass
    return (response.text or "").strip()[:200] or "no response body"
