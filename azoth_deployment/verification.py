"""Block explorer verification of deployed contracts through `forge verify-contract`."""

import subprocess
from typing import List, NamedTuple, Optional

from azoth_deployment.artifacts import ArtifactLoader
from azoth_deployment.constants import (
    COMPILER_VERSION,
    FORGE_EXECUTABLE,
    OPTIMIZATION_RUNS,
    PROXY_CONTRACT_NAME,
)
from azoth_deployment.context import RunContext
from azoth_deployment.encoding import encode_constructor_args, encode_initializer
from azoth_deployment.exceptions import VerificationFailed
from azoth_deployment.params import DeploymentPlan, DeployLogic, DeployProxy, resolve_params


class VerificationRequest(NamedTuple):
    name: str  # contract name as known to the compiler, e.g. "ERC1967Proxy"
    address: str
    chain_id: int
    constructor_args: str  # hex encoded; empty when the constructor takes no arguments
    api_key: str
    label: str  # logical name used for reporting, e.g. "Azoth proxy"
    compiler_version: str = COMPILER_VERSION
    optimization_runs: int = OPTIMIZATION_RUNS


class VerificationResult(NamedTuple):
    request: VerificationRequest
    success: bool
    output: str


def proxy_constructor_args(
    loader: ArtifactLoader, logic_address: str, init_data: bytes
) -> bytes:
    """Encodes `(logic_address, init_data)` against the proxy constructor."""
    proxy_artifact = loader.load(PROXY_CONTRACT_NAME)
    return encode_constructor_args(proxy_artifact.abi, [logic_address, init_data])


def build_verification_requests(
    plan: DeploymentPlan,
    context: RunContext,
    loader: ArtifactLoader,
    chain_id: int,
    api_key: str,
) -> List[VerificationRequest]:
    """
    Builds one request per deployment step of the plan.

    Constructor arguments are re-resolved against the context and encoded again
    rather than taken from the deployment phase, so verification can run on its
    own against a registry written by an earlier run.
    """
    verification_requests = list()
    for step in plan.deployment_steps:
        logic_artifact = loader.load(step.name)
        logic_address = context.implementation_address(step.name)

        if isinstance(step, DeployLogic):
            name = step.name
            address = logic_address
            constructor_args = encode_constructor_args(
                logic_artifact.abi, resolve_params(step.constructor_args, context)
            )
        elif isinstance(step, DeployProxy):
            name = PROXY_CONTRACT_NAME
            address = context.proxies[step.logic_name].address
            init_data = encode_initializer(
                logic_artifact.abi, resolve_params(step.initializer_args, context)
            )
            constructor_args = proxy_constructor_args(loader, logic_address, init_data)
        else:
            continue

        verification_requests.append(
            VerificationRequest(
                name=name,
                address=address,
                chain_id=chain_id,
                constructor_args="0x" + constructor_args.hex() if constructor_args else "",
                api_key=api_key,
                label=str(step),
            )
        )
    return verification_requests


class ForgeVerifier:
    """Submits verification requests with foundry's `forge verify-contract`."""

    def __init__(self, executable: str = FORGE_EXECUTABLE, watch: bool = True, cwd=None):
        self.executable = executable
        self.watch = watch
        self.cwd = cwd

    def command(self, request: VerificationRequest) -> List[str]:
        command = [
            self.executable,
            "verify-contract",
            "--chain-id",
            str(request.chain_id),
            "--num-of-optimizations",
            str(request.optimization_runs),
        ]
        if self.watch:
            command.append("--watch")
        if request.constructor_args:
            command.extend(["--constructor-args", request.constructor_args])
        command.extend(
            [
                "--etherscan-api-key",
                request.api_key,
                "--compiler-version",
                request.compiler_version,
                request.address,
                request.name,
            ]
        )
        return command

    def verify(self, request: VerificationRequest) -> str:
        """
        Runs the verification and returns forge's output.

        Raises:
            VerificationFailed: If forge is missing or exits with an error
        """
        try:
            result = subprocess.run(
                self.command(request),
                check=True,
                capture_output=True,
                text=True,
                cwd=self.cwd,
            )
        except FileNotFoundError as e:
            raise VerificationFailed(request.label, f"{self.executable} not found: {e}") from e
        except subprocess.CalledProcessError as e:
            message = (e.stderr or e.stdout or "").strip() or f"exit status {e.returncode}"
            raise VerificationFailed(request.label, message) from e

        if result.stderr:
            print(f"stderr: {result.stderr.strip()}")
        return result.stdout


def verify_deployments(
    requests: List[VerificationRequest], verifier: Optional[ForgeVerifier] = None
) -> List[VerificationResult]:
    """
    Verifies each request in turn.

    A failed verification is reported and does not stop the remaining ones.
    """
    verifier = verifier or ForgeVerifier()
    results = list()
    for request in requests:
        print(f"(i) Verifying {request.label} ({request.name}) at {request.address}...")
        try:
            output = verifier.verify(request)
        except VerificationFailed as e:
            print(f"(!) {e}")
            results.append(VerificationResult(request=request, success=False, output=e.message))
            continue
        print(f"(i) {request.label} verified")
        results.append(VerificationResult(request=request, success=True, output=output))
    return results


def print_verification_report(results: List[VerificationResult]) -> None:
    print("============================= Verify Contract =============================")
    for result in results:
        request = result.request
        status = "verified" if result.success else f"FAILED ({result.output})"
        print(f"{request.label} [{request.name}] at {request.address}: {status}")
