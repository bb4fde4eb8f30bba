import json

import pytest

from azoth_deployment.context import RunContext
from azoth_deployment.deployer import Deployer
from azoth_deployment.registry import (
    deployments_from_registry,
    read_registry,
    registry_from_summary,
)
from azoth_deployment.utils import get_registry_filepath, validate_config
from azoth_deployment.verification import build_verification_requests
from tests.conftest import AZOTH_ABI, CHAIN_ID, PROXY_ABI


@pytest.fixture
def deployment(chain_client, loader, azoth_plan):
    deployer = Deployer(client=chain_client, loader=loader, autosign=True)
    summary = deployer.run(azoth_plan)
    return deployer, summary


@pytest.fixture
def registry_filepath(tmp_path, deployment, loader):
    _, summary = deployment
    return registry_from_summary(
        summary=summary,
        chain_id=CHAIN_ID,
        loader=loader,
        output_filepath=tmp_path / "artifacts" / "azoth.json",
    )


def test_registry_contents(registry_filepath, deployment):
    deployer, summary = deployment
    with open(registry_filepath) as f:
        data = json.load(f)

    contracts = data[str(CHAIN_ID)]
    assert sorted(contracts) == [
        "Azoth",
        "AzothImplementation",
        "Factory",
        "NFTManager",
        "NFTManagerImplementation",
    ]
    assert contracts["Azoth"]["address"] == deployer.context.address_of("Azoth")
    assert contracts["Azoth"]["contract_type"] == "ERC1967Proxy"
    assert contracts["AzothImplementation"]["contract_type"] == "Azoth"
    assert contracts["Factory"]["deployer"] == summary.deployer
    assert contracts["Factory"]["tx_hash"] == summary.deployments[0].tx_hash

    # a proxy is registered with the ABI of its logic contract
    proxy_abi_types = {item["type"] for item in contracts["Azoth"]["abi"]}
    assert proxy_abi_types == {item["type"] for item in AZOTH_ABI}
    assert "fallback" not in proxy_abi_types
    assert {item["type"] for item in PROXY_ABI} == {"constructor", "fallback"}


def test_read_registry(registry_filepath):
    entries = read_registry(registry_filepath)
    assert len(entries) == 5
    assert {entry.chain_id for entry in entries} == {CHAIN_ID}
    # sorted by name
    assert [entry.name for entry in entries] == sorted(entry.name for entry in entries)


def test_rebuilt_context_yields_same_verification_requests(
    registry_filepath, deployment, azoth_plan, loader
):
    deployer, _ = deployment
    deployer_address, deployments = deployments_from_registry(registry_filepath, CHAIN_ID)
    context = RunContext.from_deployments(deployer=deployer_address, deployments=deployments)

    assert context.deployer == deployer.context.deployer
    assert context.implementations == deployer.context.implementations
    assert context.proxies == deployer.context.proxies
    assert not context.predictions

    original = build_verification_requests(
        azoth_plan, deployer.context, loader, chain_id=CHAIN_ID, api_key="key"
    )
    rebuilt = build_verification_requests(
        azoth_plan, context, loader, chain_id=CHAIN_ID, api_key="key"
    )
    assert rebuilt == original


def test_missing_chain_in_registry(registry_filepath):
    with pytest.raises(ValueError, match="No deployments found"):
        deployments_from_registry(registry_filepath, chain_id=1)


def test_overlapping_chain_is_not_merged(registry_filepath, deployment, loader):
    _, summary = deployment
    with open(registry_filepath) as f:
        original = f.read()

    filepath = registry_from_summary(
        summary=summary, chain_id=CHAIN_ID, loader=loader, output_filepath=registry_filepath
    )

    assert filepath == registry_filepath.with_suffix(".unmerged.json")
    assert filepath.exists()
    with open(registry_filepath) as f:
        assert f.read() == original


def test_other_chain_is_merged(registry_filepath, deployment, loader):
    _, summary = deployment
    filepath = registry_from_summary(
        summary=summary, chain_id=1, loader=loader, output_filepath=registry_filepath
    )
    assert filepath == registry_filepath
    with open(registry_filepath) as f:
        assert sorted(json.load(f)) == ["1", str(CHAIN_ID)]


def test_registry_filepath_from_config(tmp_path):
    config = {"artifacts": {"dir": str(tmp_path), "filename": "azoth.json"}}
    assert get_registry_filepath(config) == tmp_path / "azoth.json"

    with pytest.raises(ValueError, match="filename"):
        get_registry_filepath({"artifacts": {"dir": str(tmp_path)}})


def test_validate_config_refuses_published_chain(registry_filepath):
    config = {
        "artifacts": {"dir": str(registry_filepath.parent), "filename": registry_filepath.name},
        "contracts": ["Factory"],
    }
    with pytest.raises(ValueError, match="already published"):
        validate_config(config, chain_id=CHAIN_ID)

    assert validate_config(config, chain_id=1) == registry_filepath


def test_validate_config_checks_chain_id(tmp_path):
    config = {
        "deployment": {"chain_id": 1},
        "artifacts": {"dir": str(tmp_path), "filename": "azoth.json"},
        "contracts": ["Factory"],
    }
    with pytest.raises(ValueError, match="does not match"):
        validate_config(config, chain_id=CHAIN_ID)
    assert validate_config(config, chain_id=1) == tmp_path / "azoth.json"


def test_validate_config_requires_contracts(tmp_path):
    with pytest.raises(ValueError, match="contracts"):
        validate_config({"artifacts": {"filename": "azoth.json"}}, chain_id=CHAIN_ID)
