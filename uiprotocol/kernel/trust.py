"""
uiprotocol Kernel — Trust Engine

Evaluates one command against an authorization policy. First matching
rule wins:

  1. default deny, no agent id                      → deny
  2. default deny, agent has no permissions entry   → deny
  3. nodes:upsert, typed node in agent deny list     → deny
     nodes:upsert, agent allow list lacks node type  → deny
  4. nodes:upsert, typed node in requireConsent      → deny
  5. otherwise                                       → allow

`maxSurfaces` is part of the policy shape only. Counting live surfaces per
agent is the caller's job.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from uiprotocol.config import settings
from uiprotocol.kernel.types import Command, NodesUpsert, Surface, TrustVerdict


class AgentPermissions(BaseModel):
    """Per-agent allow/deny lists of node types."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    allow: list[str] | None = None
    deny: list[str] | None = None
    max_surfaces: int | None = Field(default=None, alias="maxSurfaces", ge=0)


class TrustPolicy(BaseModel):
    """The authorization rule set. Accepts camelCase wire keys or snake_case names."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    default_policy: Literal["allow", "deny"] = Field(default="allow", alias="defaultPolicy")
    agents: dict[str, AgentPermissions] = Field(default_factory=dict)
    require_consent: list[str] = Field(default_factory=list, alias="requireConsent")


def default_policy() -> TrustPolicy:
    """The policy used when a runtime is built without one (see uiprotocol.config)."""
    return TrustPolicy(default_policy=settings.DEFAULT_POLICY, require_consent=settings.REQUIRE_CONSENT)


def coerce_policy(policy: TrustPolicy | dict[str, Any] | None) -> TrustPolicy:
    if policy is None:
        return default_policy()
    if isinstance(policy, TrustPolicy):
        return policy
    return TrustPolicy.model_validate(policy)


class TrustEngine:
    def __init__(self, policy: TrustPolicy | dict[str, Any] | None = None) -> None:
        self.policy = coerce_policy(policy)

    def set_policy(self, policy: TrustPolicy | dict[str, Any] | None) -> None:
        self.policy = coerce_policy(policy)

    def evaluate(
        self,
        command: Command,
        surface: Surface | None = None,
        agent_id: str | None = None,
    ) -> TrustVerdict:
        policy = self.policy
        perms = policy.agents.get(agent_id) if agent_id else None

        if policy.default_policy == "deny":
            if not agent_id:
                return TrustVerdict.deny("Default policy is deny and no agent ID provided.")
            if perms is None:
                return TrustVerdict.deny(f"Agent '{agent_id}' has no permissions configured.")

        if not isinstance(command, NodesUpsert):
            return TrustVerdict.allow()

        node_types = [patch.type for patch in command.nodes if patch.type]

        if perms is not None:
            for node_type in node_types:
                if perms.deny and node_type in perms.deny:
                    return TrustVerdict.deny(f"Node type '{node_type}' is denied for agent '{agent_id}'.")
                if perms.allow is not None and node_type not in perms.allow:
                    return TrustVerdict.deny(
                        f"Node type '{node_type}' is not in the allow list for agent '{agent_id}'."
                    )

        for node_type in node_types:
            if node_type in policy.require_consent:
                return TrustVerdict.deny(f"Node type '{node_type}' requires user consent.")

        return TrustVerdict.allow()
