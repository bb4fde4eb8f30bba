from typing import Any, List, Optional

from eth_typing import ChecksumAddress

from azoth_deployment.artifacts import ArtifactLoader, ContractArtifact
from azoth_deployment.confirm import _confirm_step, _continue
from azoth_deployment.constants import PROXY_CONTRACT_NAME
from azoth_deployment.context import DeployedContract, DeploymentSummary, RunContext
from azoth_deployment.encoding import encode_constructor_args, encode_initializer
from azoth_deployment.exceptions import (
    AddressPredictionMismatch,
    DeploymentAborted,
    DeploymentError,
)
from azoth_deployment.params import (
    DeploymentPlan,
    DeployLogic,
    DeployProxy,
    PredictAddress,
    resolve_params,
)
from azoth_deployment.prediction import AddressPredictor


class Deployer:
    """
    Executes a deployment plan, one confirmed transaction at a time.

    The sender's transaction count is the only shared resource; no other
    transaction may be sent from the same account while a plan is running,
    otherwise predicted addresses are invalidated.
    """

    def __init__(
        self,
        client,
        loader: ArtifactLoader,
        autosign: bool = False,
        context: Optional[RunContext] = None,
    ):
        self.client = client
        self.loader = loader
        self.predictor = AddressPredictor(client)
        self.context = context or RunContext(deployer=client.address)
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign

    def run(self, plan: DeploymentPlan) -> DeploymentSummary:
        """
        Executes every step of the plan in order.

        Raises:
            DeploymentAborted: If a step fails. Steps already executed are not rolled back.
        """
        print(f"Account: {self.context.deployer}", f"Steps: {len(plan.steps)}", sep="\n")
        if not self._autosign:
            _continue()

        final_steps = {step.name: step for step in plan.deployment_steps}
        for step in plan.steps:
            try:
                self._execute(step)
                if final_steps.get(step.name) is step:
                    self._check_prediction(step.name)
            except DeploymentError as e:
                raise DeploymentAborted(step=step, deployed=self.context.deployed) from e

        return DeploymentSummary(
            deployer=self.context.deployer, deployments=self.context.deployed
        )

    def _execute(self, step) -> None:
        if isinstance(step, DeployLogic):
            self.deploy_logic(step)
        elif isinstance(step, DeployProxy):
            self.deploy_proxy(step)
        elif isinstance(step, PredictAddress):
            self.predict(step)
        else:
            raise ValueError(f"Unknown deployment step {step!r}")

    def predict(self, step: PredictAddress) -> ChecksumAddress:
        address = self.predictor.predict(self.context.deployer, step.offset)
        self.context.record_prediction(step.target, address)
        print(f"(i) Predicted {step.target} address (nonce +{step.offset}): {address}")
        return address

    def deploy_logic(self, step: DeployLogic) -> DeployedContract:
        artifact = self.loader.load(step.name)
        constructor_args = resolve_params(step.constructor_args, self.context)
        # validates the arguments against the constructor ABI before anything is sent
        encode_constructor_args(artifact.abi, constructor_args)

        contract = self._deploy(
            artifact, constructor_args, name=step.name, step_label=str(step)
        )
        self.context.record_implementation(contract)
        return contract

    def deploy_proxy(self, step: DeployProxy) -> DeployedContract:
        logic_artifact = self.loader.load(step.logic_name)
        proxy_artifact = self.loader.load(PROXY_CONTRACT_NAME)

        initializer_args = resolve_params(step.initializer_args, self.context)
        init_data = encode_initializer(logic_artifact.abi, initializer_args)
        logic_address = self.context.implementation_address(step.logic_name)
        constructor_args = [logic_address, init_data]
        encode_constructor_args(proxy_artifact.abi, constructor_args)

        print(
            f"\nDeploying {PROXY_CONTRACT_NAME} contract to proxy {step.logic_name} "
            f"at {logic_address}."
        )
        contract = self._deploy(
            proxy_artifact, constructor_args, name=step.logic_name, step_label=str(step)
        )
        self.context.record_proxy(contract)
        return contract

    def _deploy(
        self, artifact: ContractArtifact, constructor_args: List[Any], name: str, step_label: str
    ) -> DeployedContract:
        if not self._autosign:
            _confirm_step(step_label, constructor_args, self.context.predictions)

        print(f"\nStart deploying {step_label}...")
        pending = self.client.deploy(artifact.abi, artifact.bytecode, constructor_args)
        print(f"Transaction hash: {pending.tx_hash}")
        receipt = pending.wait()
        print(f"(i) {step_label} deployed to: {receipt.contract_address}")

        contract = DeployedContract(
            name=name,
            address=receipt.contract_address,
            tx_hash=pending.tx_hash,
            contract_type=artifact.name,
            block_number=receipt.block_number,
        )
        return contract

    def _check_prediction(self, name: str) -> None:
        predicted = self.context.predictions.get(name)
        if predicted is None:
            return
        address = self.context.address_of(name)
        if predicted != address:
            raise AddressPredictionMismatch(
                f"{name} was deployed to {address}, but {predicted} was predicted and "
                f"already used; was another transaction sent from {self.context.deployer} "
                "during the deployment?"
            )
