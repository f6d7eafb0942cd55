"""
Node catalog enumeration and role classification
"""
from typing import List, Optional

from pydantic import ValidationError

from ..core.errors import ApiResponseError
from ..core.models import ClusterNode, ConsensusResult, EnhancedNode, NodeRole
from ..core.repeat import repeat_until_success
from ..utils.helpers import create_consul_api_address, datacenter_query
from .api import consul_request


def classify_node(node: ClusterNode, consensus: ConsensusResult) -> NodeRole:
    """Leader wins over peer; nodes missing from the snapshot are unknown"""
    if node.address == consensus.leader_address:
        return NodeRole.LEADER
    if node.address in consensus.peer_addresses:
        return NodeRole.PEER
    return NodeRole.UNKNOWN


async def get_consul_nodes(
    consul_api: str,
    consul_datacenter: str,
    auth_token: str,
    timeout: Optional[float] = None,
) -> List[ClusterNode]:
    url = f"{consul_api}/v1/catalog/nodes?{datacenter_query(consul_datacenter)}"
    failure = "Failed to list catalog nodes."
    entries = await consul_request("GET", url, auth_token, failure, timeout=timeout)
    if not isinstance(entries, list):
        raise ApiResponseError(f"{failure} Reason: expected a list of nodes")
    try:
        return [ClusterNode.model_validate(entry) for entry in entries]
    except ValidationError as e:
        raise ApiResponseError(f"{failure} Reason: malformed node entry ({e.error_count()} errors)") from e


async def find_consul_nodes(
    consul_scheme: str,
    consul_host: str,
    consul_port,
    consul_datacenter: str,
    auth_token: str,
    consensus: ConsensusResult,
    timeout: Optional[float] = None,
) -> List[EnhancedNode]:
    """
    List the datacenter's nodes and tag each with its role

    Every node's agent API is assumed to listen on consul_port.
    """
    consul_api = create_consul_api_address(consul_scheme, consul_host, consul_port)
    nodes = await get_consul_nodes(consul_api, consul_datacenter, auth_token, timeout)

    enhanced_nodes = []
    for node in nodes:
        enhanced_nodes.append(EnhancedNode(
            **node.model_dump(),
            role=classify_node(node, consensus),
            api_address=create_consul_api_address(consul_scheme, node.address, consul_port),
        ))
    return enhanced_nodes


async def repeat_until_find_consul_nodes(
    consul_scheme: str,
    consul_host: str,
    consul_port,
    consul_datacenter: str,
    auth_token: str,
    consensus: ConsensusResult,
    repeat_interval_ms: int,
    timeout: Optional[float] = None,
    jitter_ms: int = 0,
) -> List[EnhancedNode]:
    async def find():
        return await find_consul_nodes(
            consul_scheme, consul_host, consul_port, consul_datacenter, auth_token, consensus, timeout
        )

    return await repeat_until_success(
        "Get consul cluster node information", repeat_interval_ms, find, jitter_ms=jitter_ms
    )
