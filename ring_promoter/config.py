import os
from dataclasses import dataclass, field

from .errors import ValidationError
from .models import Stage, REAL_STAGES

DEFAULT_RING_GROUPS = {
    Stage.DEV: "Intune-Dev-Users",
    Stage.TEST: "Intune-Test-Users",
    Stage.PROD: "Intune-Prod-Users",
}

GROUP_ENV_VARS = {
    Stage.DEV: "INTUNE_DEV_GROUP",
    Stage.TEST: "INTUNE_TEST_GROUP",
    Stage.PROD: "INTUNE_PROD_GROUP",
}

DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/beta"


@dataclass
class RingSettings:
    """Process-wide settings, read from the environment once at startup"""
    ring_groups: dict = field(default_factory=lambda: dict(DEFAULT_RING_GROUPS))
    tenant_id: str = None
    client_id: str = None
    access_token: str = None
    graph_base_url: str = DEFAULT_GRAPH_BASE_URL
    default_stage: Stage = Stage.DEV

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        ring_groups = {}
        for stage in REAL_STAGES:
            value = (env.get(GROUP_ENV_VARS[stage]) or "").strip()
            ring_groups[stage] = value or DEFAULT_RING_GROUPS[stage]

        stage_value = (env.get("PROMOTION_STAGE") or "").strip()
        return cls(
            ring_groups=ring_groups,
            tenant_id=env.get("AZURE_TENANT_ID") or None,
            client_id=env.get("AZURE_CLIENT_ID") or None,
            access_token=env.get("GRAPH_ACCESS_TOKEN") or None,
            graph_base_url=(env.get("GRAPH_BASE_URL") or DEFAULT_GRAPH_BASE_URL).rstrip("/"),
            default_stage=Stage.parse(stage_value) if stage_value else Stage.DEV,
        )

    def group_for(self, stage):
        stage = Stage(stage)
        if stage is Stage.COMPLETED:
            return None
        return self.ring_groups[stage]

    def require_token(self):
        if not self.access_token:
            raise ValidationError("no bearer token available; set GRAPH_ACCESS_TOKEN")
        return self.access_token
