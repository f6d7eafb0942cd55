"""
Consul Bootstrap

Waits for a Consul cluster to reach consensus, provisions an agent ACL policy
and token, and hands that token to every node's local agent.
"""

__version__ = "0.1.0"

from .core.bootstrap import ConsulBootstrapper, bootstrap
from .core.config import BootstrapConfig
from .core.models import (
    AgentPolicy,
    AgentToken,
    BootstrapOutcome,
    ClusterNode,
    ConsensusResult,
    EnhancedNode,
    NodeRole,
)
from .core.repeat import repeat_until, repeat_until_success

__all__ = [
    "ConsulBootstrapper",
    "bootstrap",
    "BootstrapConfig",
    "AgentPolicy",
    "AgentToken",
    "BootstrapOutcome",
    "ClusterNode",
    "ConsensusResult",
    "EnhancedNode",
    "NodeRole",
    "repeat_until",
    "repeat_until_success",
]
