#!/usr/bin/python3
from pathlib import Path

import click

from azoth_deployment.artifacts import ArtifactLoader
from azoth_deployment.chain import ChainClient
from azoth_deployment.constants import AZOTH_PARAMS_FILEPATH, BUILD_OUTPUT_DIR
from azoth_deployment.deployer import Deployer
from azoth_deployment.exceptions import DeploymentError
from azoth_deployment.params import DeploymentPlan
from azoth_deployment.registry import registry_from_summary
from azoth_deployment.settings import DeploymentSettings
from azoth_deployment.utils import check_forge, validate_config
from azoth_deployment.verification import (
    ForgeVerifier,
    build_verification_requests,
    print_verification_report,
    verify_deployments,
)


@click.command()
@click.option(
    "--params-filepath",
    "-p",
    help="Deployment params YAML",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    default=AZOTH_PARAMS_FILEPATH,
    show_default=True,
)
@click.option(
    "--build-dir",
    "-b",
    help="Foundry build output directory",
    type=click.Path(file_okay=False, path_type=Path),
    default=BUILD_OUTPUT_DIR,
    show_default=True,
)
@click.option(
    "--env-file",
    help="File to read environment variables from (defaults to .env)",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)
@click.option(
    "--verify/--no-verify",
    help="Verify the deployed contracts on the block explorer",
    default=True,
    show_default=True,
)
@click.option(
    "--autosign",
    help="Do not ask for confirmation before each transaction",
    is_flag=True,
    default=False,
)
def cli(params_filepath, build_dir, env_file, verify, autosign):
    """Deploy Factory, Azoth and NFTManager (with their proxies) and verify them."""
    try:
        settings = DeploymentSettings.from_env(dotenv_path=env_file)
        client = ChainClient.from_rpc(rpc_url=settings.rpc_url, private_key=settings.private_key)
    except (DeploymentError, ValueError) as e:
        raise click.ClickException(str(e))

    loader = ArtifactLoader(build_dir=build_dir)
    click.echo(f"Sender address: {client.address}")

    try:
        plan = DeploymentPlan.from_yaml(params_filepath, constants=settings.constants)
        chain_id = client.get_chain_id()
        click.echo(f"Chain ID: {chain_id}")
        registry_filepath = validate_config(config=plan.config, chain_id=chain_id)
        if verify:
            check_forge()

        deployer = Deployer(client=client, loader=loader, autosign=autosign)
        summary = deployer.run(plan)
    except (DeploymentError, ValueError, RuntimeError) as e:
        raise click.ClickException(str(e))

    click.echo("============================ Deploy Contract ============================")
    click.echo(f"Sender: {summary.deployer}")
    click.echo(f"Owner: {settings.owner}")
    click.echo(f"Fee Recipient: {settings.fee_recipient}")
    for name, address in summary.addresses.items():
        click.secho(f"{name} deployed at: {address}", fg="green")

    registry_from_summary(
        summary=summary, chain_id=chain_id, loader=loader, output_filepath=registry_filepath
    )

    if not verify:
        return

    verification_requests = build_verification_requests(
        plan=plan,
        context=deployer.context,
        loader=loader,
        chain_id=chain_id,
        api_key=settings.etherscan_api_key,
    )
    results = verify_deployments(
        verification_requests, verifier=ForgeVerifier(cwd=build_dir.absolute().parent)
    )
    print_verification_report(results)


if __name__ == "__main__":
    cli()
