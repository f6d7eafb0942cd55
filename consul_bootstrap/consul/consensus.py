"""
Consensus detection: has the cluster declared a leader and a peer set?
"""
from typing import List, Optional

from ..core.errors import (
    ApiResponseError,
    ApiUnreachableError,
    ConsulBootstrapError,
    LeaderNotDeclaredError,
    PeersNotDeclaredError,
)
from ..core.models import ConsensusResult
from ..core.repeat import repeat_until_success
from ..utils.helpers import datacenter_query, strip_port
from ..utils.logger import get_logger
from .api import consul_request

API_REACH_ERROR = "Can't reach Consul API"
LEADER_DECLARATION_ERROR = "Leader not declared yet"
PEER_DECLARATION_ERROR = "Peers not declared yet"

logger = get_logger(__name__)


async def check_api_reachable(consul_api: str, auth_token: str, timeout: Optional[float] = None) -> None:
    try:
        await consul_request("GET", consul_api, auth_token, API_REACH_ERROR, expect_json=False, timeout=timeout)
    except ConsulBootstrapError as e:
        logger.debug(f"Liveness check failed: {e}")
        raise ApiUnreachableError(API_REACH_ERROR) from e


async def get_leader_address(
    consul_api: str, consul_datacenter: str, auth_token: str, timeout: Optional[float] = None
) -> str:
    url = f"{consul_api}/v1/status/leader?{datacenter_query(consul_datacenter)}"
    try:
        leader = await consul_request("GET", url, auth_token, LEADER_DECLARATION_ERROR, timeout=timeout)
    except (ApiResponseError, ApiUnreachableError) as e:
        raise LeaderNotDeclaredError(LEADER_DECLARATION_ERROR) from e

    if not isinstance(leader, str) or leader == "":
        raise LeaderNotDeclaredError(LEADER_DECLARATION_ERROR)
    leader_address = strip_port(leader)
    if not leader_address:
        raise LeaderNotDeclaredError(LEADER_DECLARATION_ERROR)
    return leader_address


async def get_peer_addresses(
    consul_api: str, consul_datacenter: str, auth_token: str, timeout: Optional[float] = None
) -> List[str]:
    url = f"{consul_api}/v1/status/peers?{datacenter_query(consul_datacenter)}"
    try:
        peers = await consul_request("GET", url, auth_token, PEER_DECLARATION_ERROR, timeout=timeout)
    except (ApiResponseError, ApiUnreachableError) as e:
        raise PeersNotDeclaredError(PEER_DECLARATION_ERROR) from e

    if not isinstance(peers, list) or len(peers) == 0:
        raise PeersNotDeclaredError(PEER_DECLARATION_ERROR)
    if not all(isinstance(peer, str) and peer for peer in peers):
        raise PeersNotDeclaredError(PEER_DECLARATION_ERROR)
    peer_addresses = [strip_port(peer) for peer in peers]
    if not all(peer_addresses):
        raise PeersNotDeclaredError(PEER_DECLARATION_ERROR)
    return peer_addresses


async def get_cluster_consensus(
    consul_api: str,
    consul_datacenter: str,
    auth_token: str,
    timeout: Optional[float] = None,
) -> ConsensusResult:
    """
    Single consensus check against the cluster

    Checks the API is up, then asks for the leader, then for the peer set. Any
    failure aborts the whole check.

    Raises:
        ApiUnreachableError, LeaderNotDeclaredError, PeersNotDeclaredError
    """
    await check_api_reachable(consul_api, auth_token, timeout)
    leader_address = await get_leader_address(consul_api, consul_datacenter, auth_token, timeout)
    peer_addresses = await get_peer_addresses(consul_api, consul_datacenter, auth_token, timeout)

    return ConsensusResult(leader_address=leader_address, peer_addresses=frozenset(peer_addresses))


async def reach_cluster_consensus(
    consul_api: str,
    consul_datacenter: str,
    auth_token: str,
    consensus_check_interval_ms: int,
    timeout: Optional[float] = None,
    jitter_ms: int = 0,
) -> ConsensusResult:
    """Poll the cluster until it reports a leader and peers"""
    async def check():
        return await get_cluster_consensus(consul_api, consul_datacenter, auth_token, timeout)

    return await repeat_until_success(
        "Reach consul cluster consensus",
        consensus_check_interval_ms,
        check,
        jitter_ms=jitter_ms,
    )
