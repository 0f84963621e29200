#!/usr/bin/env python3
"""
govbox CLI

Command-line interface for compiling and deploying the governance contracts
and for driving a Box proposal through the governor.

Usage:
    govbox compile [--force]
    govbox deploy [--output FILE]
    govbox lifecycle [--value N] [--description TEXT] [--reason TEXT]
    govbox propose <deployment_file> [--value N] [--description TEXT]
    govbox state <deployment_file> <proposal_id>
"""

from pathlib import Path
from typing import Optional

import click

from ..chain import REVERT_ERRORS, DevChain, connect
from ..compiler import compile_contracts
from ..config import ProjectConfig, load_config
from ..deploy import Deployer, GovernanceDeployment, deploy_governance
from ..exceptions import GovboxException
from ..governance import GovernanceClient, ProposalState, VoteType, store_proposal
from ..logger import LogManager, get_logger

logger = get_logger(__name__)

DEFAULT_DESCRIPTION = "Proposal #1: Store 77 in the Box"


class GovboxCommand(click.Command):
    """Reports govbox errors and contract reverts as click errors instead of tracebacks."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except GovboxException as e:
            raise click.ClickException(str(e)) from e
        except REVERT_ERRORS as e:
            raise click.ClickException(f"Transaction reverted: {e}") from e


def _deployer(config: ProjectConfig, artifacts) -> Deployer:
    w3 = connect(config.network)
    return Deployer(w3, artifacts, confirmations=config.deploy.confirmations)


@click.group()
@click.version_option(prog_name="govbox")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to govbox.toml (defaults to GOVBOX_CONFIG or ./govbox.toml).")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              default=None, help="Override LOG_LEVEL for console output.")
@click.pass_context
def cli(ctx, config_path: Optional[str], log_level: Optional[str]):
    """Deploy and exercise the Box governance contracts."""
    if log_level:
        LogManager().set_console_level(log_level)
    try:
        ctx.obj = load_config(config_path)
    except GovboxException as e:
        raise click.ClickException(str(e)) from e


@cli.command("compile", cls=GovboxCommand)
@click.option("--force", is_flag=True, help="Ignore cached artifacts.")
@click.pass_obj
def compile_command(config: ProjectConfig, force: bool):
    """Compile the Solidity contracts."""
    artifacts = compile_contracts(config.compiler, force=force)
    for name, artifact in artifacts.items():
        click.echo(f"{name}: {len(artifact.bytecode) // 2} bytes")


@cli.command(cls=GovboxCommand)
@click.option("--output", type=click.Path(dir_okay=False), default=None,
              help="Write the deployment record to this JSON file.")
@click.pass_obj
def deploy(config: ProjectConfig, output: Optional[str]):
    """Deploy token, timelock, governor and Box, and wire their roles."""
    if output:
        config.deploy.output = output
    if config.network.provider == "tester":
        logger.warning("Deploying to the in-process tester chain; contracts are discarded on exit")
    artifacts = compile_contracts(config.compiler)
    deployer = _deployer(config, artifacts)
    deployment = deploy_governance(deployer, config.governance, config.deploy)
    for name, address in deployment.addresses().items():
        click.echo(f"{name} deployed to: {address}")


@cli.command(cls=GovboxCommand)
@click.option("--value", type=int, default=77, show_default=True, help="Value the proposal stores in the Box.")
@click.option("--description", default=DEFAULT_DESCRIPTION, show_default=True)
@click.option("--reason", default="", help="Reason attached to the vote.")
@click.option("--support", type=click.Choice([v.name for v in VoteType], case_sensitive=False),
              default="FOR", show_default=True)
@click.pass_obj
def lifecycle(config: ProjectConfig, value: int, description: str, reason: str, support: str):
    """Deploy on a development chain and run a store(VALUE) proposal to execution."""
    artifacts = compile_contracts(config.compiler)
    deployer = _deployer(config, artifacts)
    chain = DevChain(deployer.w3)
    deployment = deploy_governance(deployer, config.governance, config.deploy)

    client = GovernanceClient(deployment, deployer, chain)
    proposal = store_proposal(deployment.box, value, description)
    result = client.run_lifecycle(proposal, VoteType[support.upper()], reason)

    click.echo(f"Proposal {result.proposal_id}: {' -> '.join(s.name for s in result.states)}")
    click.echo(f"Box value: {deployment.box.functions.retrieve().call()}")


@cli.command(cls=GovboxCommand)
@click.argument("deployment_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--value", type=int, default=77, show_default=True)
@click.option("--description", default=DEFAULT_DESCRIPTION, show_default=True)
@click.pass_obj
def propose(config: ProjectConfig, deployment_file: str, value: int, description: str):
    """Submit a store(VALUE) proposal against an existing deployment."""
    artifacts = compile_contracts(config.compiler)
    deployer = _deployer(config, artifacts)
    deployment = GovernanceDeployment.load(Path(deployment_file), deployer.w3, artifacts)

    client = GovernanceClient(deployment, deployer)
    proposal = store_proposal(deployment.box, value, description)
    client.propose(proposal)
    click.echo(str(proposal.proposal_id))


@cli.command(cls=GovboxCommand)
@click.argument("deployment_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("proposal_id", type=int)
@click.pass_obj
def state(config: ProjectConfig, deployment_file: str, proposal_id: int):
    """Print the state of PROPOSAL_ID."""
    artifacts = compile_contracts(config.compiler)
    w3 = connect(config.network)
    deployment = GovernanceDeployment.load(Path(deployment_file), w3, artifacts)
    value = deployment.governor.functions.state(proposal_id).call()
    click.echo(ProposalState(value).name)


def main():
    cli(prog_name="govbox")


if __name__ == "__main__":
    main()
