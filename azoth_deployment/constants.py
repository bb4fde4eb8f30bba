from pathlib import Path

import azoth_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(azoth_deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"
BUILD_OUTPUT_DIR = Path("out")

AZOTH_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "azoth.yml"

#
# Environment
#

RPC_URL_ENVVAR = "RPC_URL"
PRIVATE_KEY_ENVVAR = "PRIVATE_KEY"
FEE_RECIPIENT_ENVVAR = "FEE_RECIPIENT"
OWNER_ENVVAR = "OWNER"
ETHERSCAN_API_KEY_ENVVAR = "ETHERSCAN_API_KEY"

REQUIRED_ENVVARS = [
    RPC_URL_ENVVAR,
    PRIVATE_KEY_ENVVAR,
    FEE_RECIPIENT_ENVVAR,
    OWNER_ENVVAR,
    ETHERSCAN_API_KEY_ENVVAR,
]

#
# Contracts
#

PROXY_CONTRACT_NAME = "ERC1967Proxy"
INITIALIZER_NAME = "initialize"
IMPLEMENTATION_SUFFIX = "Implementation"

ZERO_ADDRESS = "0x" + "0" * 40

#
# Verification
#

COMPILER_VERSION = "v0.8.28+commit.7893614"
OPTIMIZATION_RUNS = 200
FORGE_EXECUTABLE = "forge"

#
# Chain
#

TRANSACTION_TIMEOUT = 300  # seconds
