import json
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Tuple

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from azoth_deployment.artifacts import ArtifactLoader
from azoth_deployment.constants import IMPLEMENTATION_SUFFIX
from azoth_deployment.context import DeployedContract, DeploymentSummary
from azoth_deployment.utils import _load_json

ChainId = int
ContractName = str
ABI = List[Dict]


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """Represents a single entry in a contract registry."""

    chain_id: ChainId
    name: ContractName
    contract_type: str
    address: ChecksumAddress
    abi: ABI
    tx_hash: Optional[str]
    block_number: Optional[int]
    deployer: str


def _get_name(contract: DeployedContract, proxied: List[ContractName]) -> ContractName:
    """
    Returns the registry name of a deployment.

    Proxies are registered under the logical name; the logic contract behind a
    proxy is registered with an `Implementation` suffix.
    """
    if not contract.is_proxy and contract.name in proxied:
        return f"{contract.name}{IMPLEMENTATION_SUFFIX}"
    return contract.name


def registry_entries_from_summary(
    summary: DeploymentSummary, chain_id: ChainId, loader: ArtifactLoader
) -> List[RegistryEntry]:
    """Returns registry entries for every deployment of a run."""
    proxied = [c.name for c in summary.deployments if c.is_proxy]
    entries = list()
    for contract in summary.deployments:
        # proxies are registered with the ABI of the contract they delegate to
        abi = loader.load(contract.name).abi
        entry = RegistryEntry(
            chain_id=chain_id,
            name=_get_name(contract, proxied),
            contract_type=contract.contract_type,
            address=to_checksum_address(contract.address),
            abi=abi,
            tx_hash=contract.tx_hash,
            block_number=contract.block_number,
            deployer=summary.deployer,
        )
        entries.append(entry)
    return entries


def read_registry(filepath: Path) -> List[RegistryEntry]:
    registry_entries = list()
    for chain_id, contracts in _load_json(filepath).items():
        for name, record in contracts.items():
            registry_entries.append(
                RegistryEntry(
                    chain_id=int(chain_id),
                    name=name,
                    contract_type=record.get("contract_type", name),
                    address=record["address"],
                    abi=record["abi"],
                    tx_hash=record.get("tx_hash"),
                    block_number=record.get("block_number"),
                    deployer=record["deployer"],
                )
            )
    return registry_entries


def _registry_data(entries: List[RegistryEntry]) -> Dict[str, Dict[ContractName, Dict]]:
    """Groups entries by chain id; contracts and ABI items are sorted for stable diffs."""
    data = defaultdict(dict)
    for entry in sorted(entries, key=lambda e: (str(e.chain_id), e.name)):
        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "contract_type": entry.contract_type,
            "abi": sorted(entry.abi, key=lambda item: (item["type"], item.get("name", ""))),
            "tx_hash": entry.tx_hash,
            "block_number": entry.block_number,
            "deployer": entry.deployer,
        }
    return data


def write_registry(entries: List[RegistryEntry], filepath: Path, silent: bool = False) -> Path:
    """
    Writes registry entries to `filepath`, merging them into an existing registry.

    Chain ids already present in the existing registry are never overwritten; the
    entries are written next to it as `<name>.unmerged.json` instead.
    """
    if not entries:
        print("No entries provided.")
        return filepath

    data = _registry_data(entries)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    if not filepath.exists():
        if not silent:
            print(f"Creating new registry at {filepath}.")
    else:
        existing_data = _load_json(filepath)
        overlapping = sorted(set(existing_data).intersection(data))
        if overlapping:
            filepath = filepath.with_suffix(".unmerged.json")
            if not silent:
                print(
                    f"Registry already has deployments for chain id(s) {', '.join(overlapping)}; "
                    f"writing to {filepath} instead."
                )
        else:
            if not silent:
                print(f"Adding chain id(s) {', '.join(data)} to registry at {filepath}.")
            existing_data.update(data)
            data = existing_data

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_summary(
    summary: DeploymentSummary, chain_id: ChainId, loader: ArtifactLoader, output_filepath: Path
) -> Path:
    """Creates a contract registry from the outcome of a deployment run."""
    entries = registry_entries_from_summary(summary=summary, chain_id=chain_id, loader=loader)
    output_filepath = write_registry(entries=entries, filepath=output_filepath)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath


def deployments_from_registry(
    filepath: Path, chain_id: ChainId
) -> Tuple[str, List[DeployedContract]]:
    """
    Returns the deployer and the deployments recorded for `chain_id`,
    implementations before the proxies that point to them.
    """
    registry_entries = [e for e in read_registry(filepath=filepath) if e.chain_id == chain_id]
    if not registry_entries:
        raise ValueError(f"No deployments found in registry {filepath} for chain {chain_id}")

    deployments = list()
    for entry in registry_entries:
        is_implementation = entry.name == f"{entry.contract_type}{IMPLEMENTATION_SUFFIX}"
        logical_name = entry.contract_type if is_implementation else entry.name
        deployments.append(
            DeployedContract(
                name=logical_name,
                address=to_checksum_address(entry.address),
                tx_hash=entry.tx_hash,
                contract_type=entry.contract_type,
                block_number=entry.block_number,
            )
        )
    deployments.sort(key=lambda c: (c.is_proxy, c.block_number or 0))
    return registry_entries[0].deployer, deployments
