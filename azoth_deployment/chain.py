"""Signer and network connection used to send contract creation transactions."""

from typing import Any, Dict, List, NamedTuple, Sequence

import requests
from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception

from azoth_deployment.constants import TRANSACTION_TIMEOUT
from azoth_deployment.exceptions import ChainQueryFailed, TransactionFailed

# errors raised by web3 providers and middleware for unreachable or misbehaving nodes
NETWORK_ERRORS = (Web3Exception, requests.RequestException, ValueError, OSError)


class DeploymentReceipt(NamedTuple):
    contract_address: ChecksumAddress
    block_number: int


class PendingDeployment:
    """A sent contract creation transaction."""

    def __init__(self, client: "ChainClient", tx_hash: str):
        self.client = client
        self.tx_hash = tx_hash

    def wait(self) -> DeploymentReceipt:
        return self.client.wait_for_deployment(self.tx_hash)


class ChainClient:
    """Wraps a local signer and a JSON-RPC connection."""

    def __init__(self, w3: Web3, account: LocalAccount, timeout: int = TRANSACTION_TIMEOUT):
        self.w3 = w3
        self.account = account
        self.timeout = timeout

    @classmethod
    def from_rpc(cls, rpc_url: str, private_key: str, **kwargs) -> "ChainClient":
        w3 = Web3(Web3.HTTPProvider(rpc_url))
        account = Account.from_key(private_key)
        return cls(w3=w3, account=account, **kwargs)

    @property
    def address(self) -> ChecksumAddress:
        return to_checksum_address(self.account.address)

    def get_transaction_count(self, address: str) -> int:
        try:
            return self.w3.eth.get_transaction_count(to_checksum_address(address))
        except NETWORK_ERRORS as e:
            raise ChainQueryFailed(f"Could not fetch transaction count for {address}: {e}") from e

    def get_chain_id(self) -> int:
        try:
            return self.w3.eth.chain_id
        except NETWORK_ERRORS as e:
            raise ChainQueryFailed(f"Could not fetch chain id: {e}") from e

    def deploy(
        self, abi: List[Dict[str, Any]], bytecode: str, constructor_args: Sequence[Any]
    ) -> PendingDeployment:
        """Signs and sends a contract creation transaction."""
        container = self.w3.eth.contract(abi=abi, bytecode=bytecode)
        nonce = self.get_transaction_count(self.address)
        try:
            transaction = container.constructor(*constructor_args).build_transaction(
                {"from": self.address, "nonce": nonce}
            )
            signed = self.account.sign_transaction(transaction)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except NETWORK_ERRORS as e:
            raise TransactionFailed(f"Could not send creation transaction: {e}") from e
        return PendingDeployment(client=self, tx_hash=Web3.to_hex(tx_hash))

    def wait_for_deployment(self, tx_hash: str) -> DeploymentReceipt:
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.timeout)
        except TimeExhausted as e:
            raise TransactionFailed(
                f"Transaction {tx_hash} not confirmed within {self.timeout} seconds"
            ) from e
        except NETWORK_ERRORS as e:
            raise TransactionFailed(f"Could not confirm transaction {tx_hash}: {e}") from e

        if receipt["status"] != 1:
            raise TransactionFailed(f"Transaction {tx_hash} reverted")
        if not receipt.get("contractAddress"):
            raise TransactionFailed(f"Transaction {tx_hash} did not create a contract")
        return DeploymentReceipt(
            contract_address=to_checksum_address(receipt["contractAddress"]),
            block_number=receipt["blockNumber"],
        )
