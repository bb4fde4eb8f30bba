import rlp
from eth_typing import ChecksumAddress
from eth_utils import keccak, to_canonical_address, to_checksum_address


def predict_contract_address(sender: str, nonce: int) -> ChecksumAddress:
    """Returns the address of the contract created by `sender`'s transaction with `nonce`."""
    if nonce < 0:
        raise ValueError(f"Nonce must not be negative, got {nonce}")
    encoded = rlp.encode([to_canonical_address(sender), nonce])
    return to_checksum_address(keccak(encoded)[12:])


class AddressPredictor:
    """
    Predicts the address of a future contract creation transaction.

    The prediction is relative to the sender's transaction count at the time of
    the call; any transaction sent by the sender afterwards (other than the ones
    accounted for by `offset`) invalidates it.
    """

    def __init__(self, client):
        self.client = client

    def predict(self, sender: str, offset: int) -> ChecksumAddress:
        if not isinstance(offset, int) or isinstance(offset, bool) or offset < 1:
            raise ValueError(f"Nonce offset must be a positive integer, got {offset!r}")
        nonce = self.client.get_transaction_count(sender)
        return predict_contract_address(sender, nonce + offset)
