"""
Bootstrap orchestrator

Runs the bootstrap steps strictly in sequence, each one retried until it
succeeds:

    AWAIT_CONSENSUS -> ENUMERATE_NODES -> ENSURE_POLICY -> ENSURE_TOKEN
        -> [DISTRIBUTE_TOKENS] -> DONE
"""
import logging
from typing import List, Optional

from ..consul.acl import repeat_until_ensure_agent_policy, repeat_until_ensure_agent_token
from ..consul.agent import repeat_until_assign_agent_tokens
from ..consul.catalog import repeat_until_find_consul_nodes
from ..consul.consensus import reach_cluster_consensus
from ..core.config import BootstrapConfig
from ..core.models import (
    BootstrapOutcome,
    BootstrapState,
    ConsensusResult,
    EnhancedNode,
    node_summary,
)


class ConsulBootstrapper:
    """
    Provisions the agent ACL token of a Consul cluster
    """

    def __init__(self, config: BootstrapConfig):
        self.config = config
        self.logger = logging.getLogger("ConsulBootstrapper")
        self.state = BootstrapState.INIT

    def _enter(self, state: BootstrapState):
        self.logger.debug(f"Bootstrap state {self.state.value} -> {state.value}")
        self.state = state

    async def await_consensus(self) -> ConsensusResult:
        config = self.config
        self._enter(BootstrapState.AWAIT_CONSENSUS)
        self.logger.info(
            f"Will try to reach Consul datacenter '{config.datacenter}' at address '{config.api_address}'"
        )
        consensus = await reach_cluster_consensus(
            config.api_address,
            config.datacenter,
            config.acl_token,
            config.consensus_check_interval_ms,
            timeout=config.request_timeout_s,
            jitter_ms=config.jitter_ms,
        )
        self.logger.info(
            f"Cluster consensus reached: leader {consensus.leader_address}, "
            f"peers {', '.join(sorted(consensus.peer_addresses))}"
        )
        return consensus

    async def enumerate_nodes(self, consensus: ConsensusResult) -> List[EnhancedNode]:
        config = self.config
        self._enter(BootstrapState.ENUMERATE_NODES)
        nodes = await repeat_until_find_consul_nodes(
            config.scheme,
            config.host,
            config.port,
            config.datacenter,
            config.acl_token,
            consensus,
            config.repeat_interval_ms,
            timeout=config.request_timeout_s,
            jitter_ms=config.jitter_ms,
        )
        self.logger.info(f"Found {len(nodes)} cluster nodes:")
        for node in nodes:
            self.logger.info(f"  {node_summary(node)}")
        return nodes

    async def run(self) -> BootstrapOutcome:
        """
        Execute every bootstrap step

        Returns:
            BootstrapOutcome describing what was found and provisioned

        Raises:
            ConfigurationMissingError: before any request is made
        """
        config = self.config.require()
        rules = config.load_policy_rules()

        self.logger.info("Will try to bootstrap Consul agent ACL tokens.")
        consensus = await self.await_consensus()
        nodes = await self.enumerate_nodes(consensus)

        self._enter(BootstrapState.ENSURE_POLICY)
        policy = await repeat_until_ensure_agent_policy(
            config.api_address,
            config.datacenter,
            config.acl_token,
            config.repeat_interval_ms,
            name=config.policy_name,
            description=config.policy_description,
            rules=rules,
            timeout=config.request_timeout_s,
            jitter_ms=config.jitter_ms,
        )

        self._enter(BootstrapState.ENSURE_TOKEN)
        token = await repeat_until_ensure_agent_token(
            config.api_address,
            config.acl_token,
            config.token_accessor_id,
            config.token_secret_id,
            policy,
            config.repeat_interval_ms,
            description=config.token_description,
            timeout=config.request_timeout_s,
            jitter_ms=config.jitter_ms,
        )

        distributed = False
        if config.distribute_tokens:
            self._enter(BootstrapState.DISTRIBUTE_TOKENS)
            await repeat_until_assign_agent_tokens(
                config.acl_token,
                nodes,
                token,
                config.repeat_interval_ms,
                timeout=config.request_timeout_s,
                jitter_ms=config.jitter_ms,
            )
            distributed = True
        else:
            self.logger.info("Agent token secret was preset, skipping distribution to agents")

        self._enter(BootstrapState.DONE)
        outcome = BootstrapOutcome(
            consensus=consensus,
            nodes=nodes,
            policy=policy,
            token=token,
            tokens_distributed=distributed,
        )
        self.logger.info(f"Bootstrap finished: {outcome.summary()}")
        return outcome


async def bootstrap(config: Optional[BootstrapConfig] = None) -> BootstrapOutcome:
    """Run a bootstrap with the given config, or the one from the environment"""
    return await ConsulBootstrapper(config or BootstrapConfig.from_env()).run()
