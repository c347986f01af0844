class PromotionError(Exception):
    """Base class for every error the promoter raises"""


class ValidationError(PromotionError):
    """Bad input, rejected before any remote call"""


class PolicyNotFound(PromotionError):
    def __init__(self, policy_id):
        super().__init__(f"policy {policy_id} not found in any supported category")
        self.policy_id = policy_id


class TargetGroupNotFound(PromotionError):
    def __init__(self, group_name):
        super().__init__(f"target group '{group_name}' does not exist")
        self.group_name = group_name


class AlreadyAssigned(PromotionError):
    def __init__(self, policy_id, group_name):
        super().__init__(f"policy {policy_id} is already assigned to '{group_name}'")
        self.policy_id = policy_id
        self.group_name = group_name


class RemoteAPIError(PromotionError):
    def __init__(self, operation, message, policy_id=None, status_code=None):
        context = f"{operation} failed"
        if policy_id:
            context += f" for policy {policy_id}"
        if status_code is not None:
            context += f" (HTTP {status_code})"
        super().__init__(f"{context}: {message}")
        self.operation = operation
        self.policy_id = policy_id
        self.status_code = status_code
