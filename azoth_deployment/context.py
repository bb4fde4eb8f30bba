from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from azoth_deployment.constants import PROXY_CONTRACT_NAME
from azoth_deployment.exceptions import ContractAlreadyRecorded, ContractNotDeployed


@dataclass(frozen=True)
class DeployedContract:
    """A confirmed contract creation."""

    name: str  # logical name, e.g. "Azoth" for both the logic contract and its proxy
    address: ChecksumAddress
    tx_hash: Optional[str]
    contract_type: str  # deployed artifact, e.g. "Azoth" or "ERC1967Proxy"
    block_number: Optional[int] = None

    @property
    def is_proxy(self) -> bool:
        return self.contract_type == PROXY_CONTRACT_NAME

    @property
    def label(self) -> str:
        if self.is_proxy:
            return f"{self.name} ({self.contract_type})"
        return self.name


class RunContext:
    """
    Addresses produced during a single deployment run.

    Every map is append-only; a name, once recorded, is never overwritten.
    """

    def __init__(self, deployer: str):
        self.deployer = to_checksum_address(deployer)
        self.implementations: Dict[str, DeployedContract] = OrderedDict()
        self.proxies: Dict[str, DeployedContract] = OrderedDict()
        self.predictions: Dict[str, ChecksumAddress] = OrderedDict()
        self._deployed: List[DeployedContract] = list()

    @staticmethod
    def _record(mapping: Dict, name: str, value, kind: str) -> None:
        if name in mapping:
            raise ContractAlreadyRecorded(
                f"{kind} for '{name}' is already recorded at {mapping[name]}"
            )
        mapping[name] = value

    def record_implementation(self, contract: DeployedContract) -> None:
        self._record(self.implementations, contract.name, contract, "Implementation")
        self._deployed.append(contract)

    def record_proxy(self, contract: DeployedContract) -> None:
        self._record(self.proxies, contract.name, contract, "Proxy")
        self._deployed.append(contract)

    def record_prediction(self, name: str, address: str) -> None:
        self._record(self.predictions, name, to_checksum_address(address), "Prediction")

    @property
    def deployed(self) -> List[DeployedContract]:
        """All recorded contracts in deployment order."""
        return list(self._deployed)

    def is_deployed(self, name: str) -> bool:
        return name in self.implementations or name in self.proxies

    def address_of(self, name: str) -> ChecksumAddress:
        """Returns the address other contracts should use for `name`; the proxy if there is one."""
        if name in self.proxies:
            return self.proxies[name].address
        if name in self.implementations:
            return self.implementations[name].address
        raise ContractNotDeployed(f"Contract '{name}' has not been deployed")

    def implementation_address(self, name: str) -> ChecksumAddress:
        try:
            return self.implementations[name].address
        except KeyError as e:
            raise ContractNotDeployed(f"Implementation of '{name}' has not been deployed") from e

    def predicted_address(self, name: str) -> ChecksumAddress:
        if name in self.predictions:
            return self.predictions[name]
        if self.is_deployed(name):
            # predictions are checked against the actual address once deployed
            return self.address_of(name)
        raise ContractNotDeployed(f"No address has been predicted for '{name}'")

    @classmethod
    def from_deployments(cls, deployer: str, deployments: List[DeployedContract]) -> "RunContext":
        """Rebuilds a context from previously recorded deployments (e.g. a registry)."""
        context = cls(deployer=deployer)
        for contract in deployments:
            if contract.is_proxy:
                context.record_proxy(contract)
            else:
                context.record_implementation(contract)
        return context


@dataclass(frozen=True)
class DeploymentSummary:
    """Ordered outcome of a deployment run."""

    deployer: ChecksumAddress
    deployments: List[DeployedContract]

    @property
    def addresses(self) -> "OrderedDict[str, ChecksumAddress]":
        """Final address of each logical contract, in deployment order."""
        addresses = OrderedDict()
        for contract in self.deployments:
            # a proxy supersedes the logic contract it was deployed for
            addresses[contract.name] = contract.address
        return addresses
