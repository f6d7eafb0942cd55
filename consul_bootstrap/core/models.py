"""
Value types exchanged between the bootstrap steps

Consul answers with PascalCase JSON keys; the models accept those through
aliases and expose snake_case attributes.
"""
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConsensusResult(BaseModel):
    """Leader and peer set reported by the cluster, host-only addresses"""
    model_config = ConfigDict(frozen=True)

    leader_address: str = Field(min_length=1)
    peer_addresses: FrozenSet[str] = Field(min_length=1)


class NodeRole(str, Enum):
    """Role of a catalog node relative to a consensus snapshot"""
    LEADER = "leader"
    PEER = "peer"
    UNKNOWN = "unknown"


class ClusterNode(BaseModel):
    """Raw entry of /v1/catalog/nodes"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(alias="ID")
    name: str = Field(alias="Node")
    address: str = Field(alias="Address")


class EnhancedNode(ClusterNode):
    """Catalog node tagged with its role and the address of its own agent API"""
    role: NodeRole = NodeRole.UNKNOWN
    api_address: str


class AgentPolicy(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(alias="ID")
    name: str = Field(alias="Name")
    description: str = Field(default="", alias="Description")


class AgentToken(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    accessor_id: str = Field(alias="AccessorID")
    secret_id: str = Field(default="", alias="SecretID")
    description: str = Field(default="", alias="Description")
    policy_ids: Tuple[str, ...] = Field(default=(), alias="Policies")

    @field_validator("policy_ids", mode="before")
    @classmethod
    def _policy_links_to_ids(cls, value: Any) -> Tuple[str, ...]:
        # Consul returns policy links as [{"ID": ..., "Name": ...}]
        if value is None:
            return ()
        ids = []
        for link in value:
            if isinstance(link, dict):
                ids.append(link.get("ID", ""))
            else:
                ids.append(str(link))
        return tuple(ids)


class BootstrapState(str, Enum):
    INIT = "init"
    AWAIT_CONSENSUS = "await_consensus"
    ENUMERATE_NODES = "enumerate_nodes"
    ENSURE_POLICY = "ensure_policy"
    ENSURE_TOKEN = "ensure_token"
    DISTRIBUTE_TOKENS = "distribute_tokens"
    DONE = "done"


class BootstrapOutcome(BaseModel):
    """Everything a successful bootstrap run produced"""
    model_config = ConfigDict(frozen=True)

    state: BootstrapState = BootstrapState.DONE
    consensus: ConsensusResult
    nodes: List[EnhancedNode] = Field(default_factory=list)
    policy: AgentPolicy
    token: AgentToken
    tokens_distributed: bool = False

    def summary(self) -> Dict[str, Any]:
        """Loggable view of the outcome without the token secret"""
        return {
            "state": self.state.value,
            "leader": self.consensus.leader_address,
            "nodes": len(self.nodes),
            "policy_id": self.policy.id,
            "token_accessor_id": self.token.accessor_id,
            "tokens_distributed": self.tokens_distributed,
        }


def node_summary(node: EnhancedNode) -> str:
    return f"{node.name} ({node.address}) role={node.role.value} api={node.api_address}"
