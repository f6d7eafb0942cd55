"""
Command Line Interface for consul bootstrap
"""
import asyncio
import functools
import sys

import click
from pydantic import ValidationError

from consul_bootstrap.core.bootstrap import ConsulBootstrapper
from consul_bootstrap.core.config import ENV_VARS, BootstrapConfig
from consul_bootstrap.core.errors import ConsulBootstrapError
from consul_bootstrap.utils.logger import setup_logging


def config_options(command):
    """Options shared by every command, each also read from its environment variable"""
    options = [
        click.option('--scheme', envvar=ENV_VARS['scheme'], type=click.Choice(['http', 'https']),
                     help='Consul API scheme'),
        click.option('--host', envvar=ENV_VARS['host'], help='Consul API host'),
        click.option('--port', envvar=ENV_VARS['port'], type=int, help='Consul API port'),
        click.option('--datacenter', envvar=ENV_VARS['datacenter'], help='Consul datacenter'),
        click.option('--acl-token', envvar=ENV_VARS['acl_token'], help='Management ACL token'),
        click.option('--consensus-check-interval-ms', envvar=ENV_VARS['consensus_check_interval_ms'], type=int,
                     help='Delay between consensus checks'),
        click.option('--repeat-interval-ms', envvar=ENV_VARS['repeat_interval_ms'], type=int,
                     help='Delay between retries of the other steps'),
        click.option('--jitter-ms', envvar=ENV_VARS['jitter_ms'], type=int, help='Random extra retry delay'),
        click.option('--request-timeout-s', envvar=ENV_VARS['request_timeout_s'], type=float,
                     help='Timeout of a single HTTP request'),
        click.option('--token-accessor-id', envvar=ENV_VARS['token_accessor_id'],
                     help='Accessor ID of the agent token to reuse'),
        click.option('--token-secret-id', envvar=ENV_VARS['token_secret_id'],
                     help='Secret of the agent token; disables distribution to agents'),
        click.option('--policy-name', envvar=ENV_VARS['policy_name'], help='Name of the agent policy'),
        click.option('--policy-description', envvar=ENV_VARS['policy_description'],
                     help='Description of the agent policy'),
        click.option('--policy-rules-file', envvar=ENV_VARS['policy_rules_file'],
                     help='File with the agent policy rules'),
        click.option('--token-description', envvar=ENV_VARS['token_description'],
                     help='Description of the agent token'),
    ]
    for option in reversed(options):
        command = option(command)

    @functools.wraps(command)
    def wrapper(*args, **kwargs):
        values = {name: kwargs.pop(name) for name in list(kwargs) if name in ENV_VARS}
        try:
            config = BootstrapConfig(**{k: v for k, v in values.items() if v not in (None, '')})
        except ValidationError as e:
            click.echo(f"Invalid configuration: {e}", err=True)
            sys.exit(1)
        return command(*args, config=config, **kwargs)

    return wrapper


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--log-level', envvar='LOG_LEVEL', default='INFO',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
              help='Logging level')
@click.option('--log-file', help='Also write logs to this file')
def cli(verbose, log_level, log_file):
    """Consul agent ACL token bootstrap"""
    level = 'DEBUG' if verbose else log_level
    setup_logging(level, log_file)


@cli.command()
@config_options
def run(config):
    """Wait for consensus, provision the agent policy and token, hand it to the agents"""
    try:
        outcome = asyncio.run(ConsulBootstrapper(config).run())
    except ConsulBootstrapError as e:
        click.echo(f"Bootstrap error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Agent token accessor ID: {outcome.token.accessor_id}")
    if outcome.tokens_distributed:
        click.echo(f"Token assigned to {len(outcome.nodes)} agents")


@cli.command()
@config_options
def consensus(config):
    """Wait until the cluster has a leader and peers, then print them"""
    try:
        result = asyncio.run(ConsulBootstrapper(config.require()).await_consensus())
    except ConsulBootstrapError as e:
        click.echo(f"Consensus error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Leader: {result.leader_address}")
    click.echo(f"Peers: {', '.join(sorted(result.peer_addresses))}")


@cli.command()
@config_options
def nodes(config):
    """List cluster nodes with their role"""
    async def find_nodes(bootstrapper):
        return await bootstrapper.enumerate_nodes(await bootstrapper.await_consensus())

    try:
        found = asyncio.run(find_nodes(ConsulBootstrapper(config.require())))
    except ConsulBootstrapError as e:
        click.echo(f"Nodes error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Nodes ({len(found)}):")
    for node in found:
        click.echo(f"  {node.name} ({node.address}) [{node.role.value}]")
        click.echo(f"    API: {node.api_address}")


@cli.command('show-config')
@config_options
def show_config(config):
    """Print the effective configuration with secrets masked"""
    click.echo(config.to_json())
    missing = config.missing_settings()
    if missing:
        click.echo(f"Missing required settings: {', '.join(missing)}", err=True)


def main():
    """Main entry point"""
    cli()


if __name__ == '__main__':
    main()
