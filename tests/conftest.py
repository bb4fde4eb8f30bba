import json
from pathlib import Path

import pytest
import rlp
from eth_utils import keccak, to_canonical_address, to_checksum_address
from web3 import Web3

from azoth_deployment.artifacts import ArtifactLoader
from azoth_deployment.chain import DeploymentReceipt
from azoth_deployment.constants import AZOTH_PARAMS_FILEPATH
from azoth_deployment.exceptions import ChainQueryFailed, TransactionFailed
from azoth_deployment.params import DeploymentPlan

CHAIN_ID = 11155111
DEPLOYER = "0x6ac7ea33f8831ea9dcc53393aaa88b25a785dbf0"
OWNER = "0x1111111111111111111111111111111111111111"
FEE_RECIPIENT = "0x2222222222222222222222222222222222222222"

AZOTH_CONSTANTS = {"OWNER": OWNER, "FEE_RECIPIENT": FEE_RECIPIENT}

FACTORY_ABI = [
    {"type": "constructor", "inputs": [], "stateMutability": "nonpayable"},
    {
        "type": "function",
        "name": "createPool",
        "inputs": [{"name": "token", "type": "address"}],
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "nonpayable",
    },
]

AZOTH_ABI = [
    {
        "type": "constructor",
        "inputs": [
            {"name": "_factory", "type": "address"},
            {"name": "_nftManager", "type": "address"},
        ],
        "stateMutability": "nonpayable",
    },
    {
        "type": "function",
        "name": "initialize",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "feeRecipient", "type": "address"},
        ],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
    {
        "type": "event",
        "name": "Initialized",
        "inputs": [{"name": "version", "type": "uint64", "indexed": False}],
        "anonymous": False,
    },
]

NFT_MANAGER_ABI = [
    {
        "type": "constructor",
        "inputs": [{"name": "_azoth", "type": "address"}],
        "stateMutability": "nonpayable",
    },
    {
        "type": "function",
        "name": "initialize",
        "inputs": [],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
]

PROXY_ABI = [
    {
        "type": "constructor",
        "inputs": [
            {"name": "implementation", "type": "address"},
            {"name": "_data", "type": "bytes"},
        ],
        "stateMutability": "payable",
    },
    {"type": "fallback", "stateMutability": "payable"},
]

CONTRACT_ABIS = {
    "Factory": FACTORY_ABI,
    "Azoth": AZOTH_ABI,
    "NFTManager": NFT_MANAGER_ABI,
    "ERC1967Proxy": PROXY_ABI,
}


def create_address(sender: str, nonce: int) -> str:
    """Reference CREATE address derivation."""
    digest = Web3.keccak(rlp.encode([to_canonical_address(sender), nonce]))
    return to_checksum_address(digest[-20:])


BYTECODE = "0x6080604052348015600f57600080fd5b50"


def write_artifact(build_dir: Path, name: str, abi, bytecode=BYTECODE):
    artifact_dir = build_dir / f"{name}.sol"
    artifact_dir.mkdir(parents=True, exist_ok=True)
    artifact = {
        "abi": abi,
        "bytecode": {"object": bytecode, "sourceMap": "", "linkReferences": {}},
        "deployedBytecode": {"object": "0x", "sourceMap": "", "linkReferences": {}},
    }
    with open(artifact_dir / f"{name}.json", "w") as f:
        json.dump(artifact, f)
    return artifact_dir / f"{name}.json"


class FakePendingDeployment:
    def __init__(self, tx_hash, receipt=None, error=None):
        self.tx_hash = tx_hash
        self._receipt = receipt
        self._error = error

    def wait(self):
        if self._error is not None:
            raise self._error
        return self._receipt


class FakeChainClient:
    """
    In-memory chain: every creation transaction lands at the CREATE address
    of the sender's current nonce.
    """

    def __init__(self, address=DEPLOYER, nonce=0, chain_id=CHAIN_ID):
        self.address = to_checksum_address(address)
        self.nonce = nonce
        self.chain_id = chain_id
        self.block_number = 100
        self.deployments = list()
        self.nonce_queries = 0
        self.revert_deployment = None  # 1-based index of a deployment that reverts
        self.fail_queries = False
        self.out_of_band_transactions = dict()  # deployment index -> extra transactions

    def get_transaction_count(self, address):
        self.nonce_queries += 1
        if self.fail_queries:
            raise ChainQueryFailed("Could not fetch transaction count: connection refused")
        assert to_checksum_address(address) == self.address
        return self.nonce

    def get_chain_id(self):
        return self.chain_id

    def deploy(self, abi, bytecode, constructor_args):
        self.deployments.append((abi, bytecode, list(constructor_args)))
        index = len(self.deployments)

        nonce = self.nonce
        self.nonce += 1 + self.out_of_band_transactions.get(index, 0)
        self.block_number += 1
        tx_hash = Web3.to_hex(keccak(rlp.encode([to_canonical_address(self.address), nonce])))

        if index == self.revert_deployment:
            return FakePendingDeployment(
                tx_hash, error=TransactionFailed(f"Transaction {tx_hash} reverted")
            )
        receipt = DeploymentReceipt(
            contract_address=create_address(self.address, nonce),
            block_number=self.block_number,
        )
        return FakePendingDeployment(tx_hash, receipt=receipt)


@pytest.fixture
def build_dir(tmp_path) -> Path:
    build_dir = tmp_path / "out"
    for name, abi in CONTRACT_ABIS.items():
        write_artifact(build_dir, name, abi)
    return build_dir


@pytest.fixture
def loader(build_dir) -> ArtifactLoader:
    return ArtifactLoader(build_dir=build_dir)


@pytest.fixture
def chain_client() -> FakeChainClient:
    return FakeChainClient(nonce=7)


@pytest.fixture
def azoth_plan() -> DeploymentPlan:
    return DeploymentPlan.from_yaml(AZOTH_PARAMS_FILEPATH, constants=AZOTH_CONSTANTS)
