#!/usr/bin/python3
from pathlib import Path

import click

from azoth_deployment.artifacts import ArtifactLoader
from azoth_deployment.chain import ChainClient
from azoth_deployment.constants import AZOTH_PARAMS_FILEPATH, BUILD_OUTPUT_DIR
from azoth_deployment.context import RunContext
from azoth_deployment.exceptions import DeploymentError
from azoth_deployment.params import DeploymentPlan
from azoth_deployment.registry import deployments_from_registry
from azoth_deployment.settings import DeploymentSettings
from azoth_deployment.utils import check_forge, get_registry_filepath
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
    help="Deployment params YAML the registry was deployed from",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    default=AZOTH_PARAMS_FILEPATH,
    show_default=True,
)
@click.option(
    "--registry-filepath",
    "-f",
    help="Registry filepath; defaults to the one named in the params file",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
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
    "--contract-name",
    "-c",
    "contract_names",
    help="Only verify the deployment steps of these contracts",
    type=click.STRING,
    multiple=True,
)
def cli(params_filepath, registry_filepath, build_dir, env_file, contract_names):
    """Verify contracts recorded in a registry by an earlier deployment."""
    try:
        settings = DeploymentSettings.from_env(dotenv_path=env_file)
        client = ChainClient.from_rpc(rpc_url=settings.rpc_url, private_key=settings.private_key)
    except (DeploymentError, ValueError) as e:
        raise click.ClickException(str(e))

    loader = ArtifactLoader(build_dir=build_dir)

    try:
        check_forge()
        plan = DeploymentPlan.from_yaml(params_filepath, constants=settings.constants)
        registry_filepath = registry_filepath or get_registry_filepath(plan.config)
        chain_id = client.get_chain_id()
        deployer_address, deployments = deployments_from_registry(registry_filepath, chain_id)
        context = RunContext.from_deployments(deployer=deployer_address, deployments=deployments)
        verification_requests = build_verification_requests(
            plan=plan,
            context=context,
            loader=loader,
            chain_id=chain_id,
            api_key=settings.etherscan_api_key,
        )
    except (DeploymentError, ValueError, RuntimeError, KeyError, FileNotFoundError) as e:
        raise click.ClickException(str(e))

    if contract_names:
        unknown = set(contract_names) - set(plan.contract_names)
        if unknown:
            raise click.BadParameter(
                f"Not part of the deployment: {', '.join(sorted(unknown))}",
                param_hint="--contract-name",
            )
        steps = [step for step in plan.deployment_steps if step.name in contract_names]
        labels = [str(step) for step in steps]
        verification_requests = [r for r in verification_requests if r.label in labels]

    results = verify_deployments(
        verification_requests, verifier=ForgeVerifier(cwd=build_dir.absolute().parent)
    )
    print_verification_report(results)


if __name__ == "__main__":
    cli()
