"""Exception hierarchy for Azoth deployments."""


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""


class ConfigMissing(DeploymentError, ValueError):
    """Raised when required configuration is absent or invalid."""


class ArtifactNotFound(DeploymentError, FileNotFoundError):
    """Raised when no build output exists for a contract."""


class ArtifactMalformed(DeploymentError, ValueError):
    """Raised when build output cannot be parsed into an ABI and bytecode."""


class ChainQueryFailed(DeploymentError):
    """Raised when a read-only chain query (nonce, chain id) fails."""


class TransactionFailed(DeploymentError):
    """Raised when a creation transaction cannot be sent, reverts or is not confirmed."""


class InitializerNotFound(DeploymentError, ValueError):
    """Raised when the target ABI has no `initialize` function."""


class ArgumentArityMismatch(DeploymentError, ValueError):
    """Raised when the number of arguments does not match the ABI inputs."""


class ArgumentTypeMismatch(DeploymentError, ValueError):
    """Raised when an argument is not encodable as the declared ABI type."""


class ContractAlreadyRecorded(DeploymentError, ValueError):
    """Raised when a contract name would overwrite an existing entry."""


class ContractNotDeployed(DeploymentError, KeyError):
    """Raised when the address of a contract that was never deployed or predicted is looked up."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class AddressPredictionMismatch(DeploymentError):
    """Raised when a contract lands at an address other than the one predicted for it."""


class VerificationFailed(DeploymentError):
    """Raised when the block explorer rejects a verification request."""

    def __init__(self, name: str, message: str):
        super().__init__(f"Verification of {name} failed: {message}")
        self.name = name
        self.message = message


class DeploymentAborted(DeploymentError):
    """
    Raised when a deployment step fails.

    Contracts deployed by earlier steps remain on-chain and are listed in `deployed`.
    The original error is available as `__cause__`.
    """

    def __init__(self, step, deployed):
        self.step = step
        self.deployed = list(deployed)
        super().__init__(f"Deployment aborted at step '{step}'")

    def __str__(self) -> str:
        message = f"Deployment aborted at step '{self.step}'"
        if self.__cause__ is not None:
            message += f": {self.__cause__}"
        if self.deployed:
            addresses = ", ".join(f"{c.label}={c.address}" for c in self.deployed)
            message += f" (already deployed, not rolled back: {addresses})"
        return message
