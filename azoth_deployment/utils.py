import json
import shutil
from pathlib import Path
from typing import Dict

import yaml

from azoth_deployment.constants import ARTIFACTS_DIR, FORGE_EXECUTABLE


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_registry_filepath(config: Dict) -> Path:
    """Returns the filepath of the registry file."""
    artifact_config = config.get("artifacts", {})
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise ValueError("artifact filename is not set in params file.")
    return artifact_dir / filename


def validate_config(config: Dict, chain_id: int) -> Path:
    """
    Checks that the params file is complete and that the deployment
    has not already been published for the chain_id of the connected network.
    """
    print("Validating parameters YAML...")

    contracts = config.get("contracts")
    if not contracts:
        raise ValueError("Params file missing 'contracts' field.")

    deployment = config.get("deployment") or {}
    config_chain_id = deployment.get("chain_id")
    if config_chain_id is not None and int(config_chain_id) != chain_id:
        raise ValueError(
            f"chain_id in params file ({config_chain_id}) does not match "
            f"chain_id of current network ({chain_id})."
        )

    registry_filepath = get_registry_filepath(config=config)
    if not registry_filepath.exists():
        return registry_filepath

    registry_chain_ids = map(int, _load_json(registry_filepath).keys())
    if chain_id in registry_chain_ids:
        raise ValueError(f"Deployment is already published for chain_id {chain_id}.")

    return registry_filepath


def check_forge() -> None:
    """Checks that foundry's forge executable is available for verification."""
    if shutil.which(FORGE_EXECUTABLE) is None:
        raise RuntimeError(
            f"Please install foundry; '{FORGE_EXECUTABLE}' is required to verify contracts."
        )
