import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv
from eth_typing import ChecksumAddress
from eth_utils import is_address, is_hex, remove_0x_prefix, to_checksum_address

from azoth_deployment.constants import (
    ETHERSCAN_API_KEY_ENVVAR,
    FEE_RECIPIENT_ENVVAR,
    OWNER_ENVVAR,
    PRIVATE_KEY_ENVVAR,
    REQUIRED_ENVVARS,
    RPC_URL_ENVVAR,
)
from azoth_deployment.exceptions import ConfigMissing


@dataclass(frozen=True)
class DeploymentSettings:
    """Configuration required before any network call is made."""

    rpc_url: str
    private_key: str
    fee_recipient: ChecksumAddress
    owner: ChecksumAddress
    etherscan_api_key: str

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, dotenv_path: Optional[str] = None
    ) -> "DeploymentSettings":
        """
        Reads the settings from the environment, after loading `.env` if present.

        Raises:
            ConfigMissing: If a required variable is unset or an address is invalid
        """
        if environ is None:
            load_dotenv(dotenv_path=dotenv_path)
            environ = os.environ

        missing = [envvar for envvar in REQUIRED_ENVVARS if not environ.get(envvar)]
        if missing:
            raise ConfigMissing(f"Missing environment variable(s): {', '.join(missing)}")

        private_key = environ[PRIVATE_KEY_ENVVAR]
        if not (is_hex(private_key) and len(remove_0x_prefix(private_key)) == 64):
            raise ConfigMissing(f"{PRIVATE_KEY_ENVVAR} is not a 32 byte hex string")

        for envvar in (OWNER_ENVVAR, FEE_RECIPIENT_ENVVAR):
            if not is_address(environ[envvar]):
                raise ConfigMissing(f"{envvar} is not a valid address: {environ[envvar]}")

        return cls(
            rpc_url=environ[RPC_URL_ENVVAR],
            private_key=private_key,
            fee_recipient=to_checksum_address(environ[FEE_RECIPIENT_ENVVAR]),
            owner=to_checksum_address(environ[OWNER_ENVVAR]),
            etherscan_api_key=environ[ETHERSCAN_API_KEY_ENVVAR],
        )

    @property
    def constants(self) -> Dict[str, str]:
        """Values available to params files as `$OWNER` and `$FEE_RECIPIENT`."""
        return {OWNER_ENVVAR: self.owner, FEE_RECIPIENT_ENVVAR: self.fee_recipient}
