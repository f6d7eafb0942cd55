"""
Distribution of the agent token to every node's local agent
"""
from typing import Optional, Sequence

from ..core.errors import ConsulBootstrapError
from ..core.models import AgentToken, EnhancedNode
from ..core.repeat import repeat_until_success
from ..utils.logger import get_logger
from .api import consul_request

logger = get_logger(__name__)


async def assign_agent_token(
    auth_token: str,
    node: EnhancedNode,
    agent_token: AgentToken,
    timeout: Optional[float] = None,
) -> None:
    await consul_request(
        "PUT",
        f"{node.api_address}/v1/agent/token/agent",
        auth_token,
        f"Failed to assign agent token to node '{node.name}'.",
        payload={"Token": agent_token.secret_id},
        expect_json=False,
        timeout=timeout,
    )
    logger.info(f"Assigned agent token to node '{node.name}' at {node.api_address}")


async def assign_agent_tokens(
    auth_token: str,
    consul_nodes: Sequence[EnhancedNode],
    agent_token: AgentToken,
    timeout: Optional[float] = None,
) -> None:
    """
    Push the token secret to each node, one node at a time

    The first failing node aborts the call; the remaining nodes are left
    untouched. Re-assigning the same secret is a no-op on the agent, so a
    retry simply starts over from the first node.
    """
    for node in consul_nodes:
        try:
            await assign_agent_token(auth_token, node, agent_token, timeout)
        except ConsulBootstrapError as e:
            logger.debug(f"Token assignment stopped at node '{node.name}': {e}")
            raise


async def repeat_until_assign_agent_tokens(
    auth_token: str,
    consul_nodes: Sequence[EnhancedNode],
    agent_token: AgentToken,
    repeat_interval_ms: int,
    timeout: Optional[float] = None,
    jitter_ms: int = 0,
) -> None:
    async def assign():
        return await assign_agent_tokens(auth_token, consul_nodes, agent_token, timeout)

    await repeat_until_success("Assign consul agent token", repeat_interval_ms, assign, jitter_ms=jitter_ms)
