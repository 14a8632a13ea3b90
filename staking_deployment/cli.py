import sys

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, account_option, network_option
from ape_accounts import KeyfileAccount

from staking_deployment.backends import ApeBackend
from staking_deployment.exceptions import DeploymentError
from staking_deployment.networks import validate_provider_chain_id
from staking_deployment.options import (
    artifacts_dir_option,
    autosign_option,
    confirmation_timeout_option,
    params_filepath_option,
    registry_filepath_option,
    token_address_option,
)
from staking_deployment.orchestrator import run_deployment
from staking_deployment.params import DeploymentPlan
from staking_deployment.registry import registry_from_deployment


def _report_failure(error: DeploymentError) -> None:
    click.secho(f"(!) Deployment failed: {error}", fg="red", err=True)
    if error.result:
        click.secho(
            f"(!) {len(error.result)} contract(s) were deployed before the failure "
            "and remain on chain.",
            fg="yellow",
            err=True,
        )


@click.command(cls=ConnectedProviderCommand, name="deploy")
@account_option()
@network_option(required=True)
@params_filepath_option
@confirmation_timeout_option
@artifacts_dir_option
@token_address_option
@registry_filepath_option
@autosign_option
def cli(
    network,
    account,
    params_filepath,
    confirmation_timeout,
    artifacts_dir,
    token_address,
    registry_filepath,
    autosign,
):
    """Deploy the staking contracts of a deployment plan."""
    click.secho("\nDeployment Information", underline=True)
    backend = ApeBackend(account=account, artifacts_dir=artifacts_dir)
    plan = None
    try:
        plan = DeploymentPlan.from_yaml(filepath=params_filepath)
        if token_address:
            plan = plan.with_constants(TOKEN_ADDRESS=token_address)

        chain_id = validate_provider_chain_id(plan.chain_id)
        if autosign and isinstance(account, KeyfileAccount):
            account.set_autosign(True)

        result = run_deployment(
            network_name=networks.provider.network.name,
            chain_id=chain_id,
            account=account,
            plan=plan,
            backend=backend,
            confirmation_timeout=confirmation_timeout,
            autosign=autosign,
        )
    except DeploymentError as e:
        _report_failure(e)
        output_filepath = registry_filepath or (plan and plan.registry_filepath)
        if e.result and output_filepath:
            registry_from_deployment(
                result=e.result, backend=backend, output_filepath=output_filepath
            )
        sys.exit(1)

    output_filepath = registry_filepath or plan.registry_filepath
    if output_filepath:
        registry_from_deployment(result=result, backend=backend, output_filepath=output_filepath)


if __name__ == "__main__":
    cli()
