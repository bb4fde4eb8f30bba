import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from azoth_deployment.context import RunContext
from azoth_deployment.utils import _load_yaml

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_PROXY_PARAMETER_KEY = "proxy"
PROXY_INITIALIZER_PARAMETER_KEY = "initializer"


class VariableContext:
    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
    ):
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.constants = constants or dict()

    @property
    def position(self) -> int:
        return self.contract_names.index(self.contract_name)


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, context: RunContext) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        return isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and vars(self) == vars(other)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(map(repr, vars(self).values()))})"


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self, context: RunContext) -> Any:
        return context.deployer


class Constant(Variable):
    def __init__(self, constant_name: str, context: Optional[VariableContext] = None, value=None):
        self.constant_name = constant_name
        if context is None:
            self.constant_value = value
            return
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError as e:
            raise DeploymentPlan.Invalid(
                f"Constant '{constant_name}' not found in deployment file."
            ) from e

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self, context: RunContext) -> Any:
        return self.constant_value


class ContractName(Variable):
    """Address of a contract deployed earlier in the plan; its proxy when it has one."""

    def __init__(self, contract_name: str, context: Optional[VariableContext] = None):
        if context is not None:
            if contract_name not in context.contract_names:
                raise DeploymentPlan.Invalid(f"Contract name {contract_name} not found")
            if context.contract_names.index(contract_name) >= context.position:
                raise DeploymentPlan.Invalid(
                    f"{context.contract_name} references {contract_name}, which is not "
                    f"deployed before it; use ${PredictedAddress.PREDICT_PREFIX}{contract_name}"
                )
        self.contract_name = contract_name

    def resolve(self, context: RunContext) -> Any:
        return context.address_of(self.contract_name)


class PredictedAddress(Variable):
    """Address a contract declared later in the plan will be deployed at."""

    PREDICT_PREFIX = "predict:"

    def __init__(self, variable: str, context: Optional[VariableContext] = None):
        if variable.startswith(self.PREDICT_PREFIX):
            variable = variable[len(self.PREDICT_PREFIX) :]
        if context is not None:
            if variable not in context.contract_names:
                raise DeploymentPlan.Invalid(f"Contract name {variable} not found")
            if context.contract_names.index(variable) <= context.position:
                raise DeploymentPlan.Invalid(
                    f"{context.contract_name} predicts the address of {variable}, which is "
                    f"not deployed after it; use ${variable}"
                )
        self.contract_name = variable

    @classmethod
    def is_prediction(cls, value: str) -> bool:
        return value.startswith(cls.PREDICT_PREFIX)

    def resolve(self, context: RunContext) -> Any:
        return context.predicted_address(self.contract_name)


def _variable_from_value(variable: str, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif PredictedAddress.is_prediction(variable):
        return PredictedAddress(variable, context)
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractName(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: Any, variable_context: VariableContext) -> Tuple[Any, ...]:
    if values is None:
        return tuple()
    if isinstance(values, dict):
        # named parameters; only their order matters for encoding
        values = list(values.values())
    if not isinstance(values, list):
        raise DeploymentPlan.Invalid(
            f"Malformed parameters for {variable_context.contract_name}: expected a list."
        )
    return tuple(_process_raw_value(value, variable_context) for value in values)


def resolve_param(value: Any, context: RunContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, (list, tuple)):
        return [resolve_param(v, context) for v in value]

    if isinstance(value, Variable):
        return value.resolve(context)

    return value  # literally a value


def resolve_params(values: Sequence[Any], context: RunContext) -> List[Any]:
    return [resolve_param(value, context) for value in values]


def _referenced_contracts(values: Sequence[Any], variable_type: type) -> List[str]:
    """Names of the contracts referenced by `variable_type` variables, nested lists included."""
    names = list()
    for value in values:
        if isinstance(value, (list, tuple)):
            nested = _referenced_contracts(value, variable_type)
        elif isinstance(value, variable_type):
            nested = [value.contract_name]
        else:
            nested = []
        names.extend(name for name in nested if name not in names)
    return names


# Steps


class DeployLogic(NamedTuple):
    """Deploys a contract's own bytecode."""

    name: str
    constructor_args: Tuple[Any, ...] = tuple()

    @property
    def args(self) -> Tuple[Any, ...]:
        return self.constructor_args

    def __str__(self) -> str:
        return self.name


class DeployProxy(NamedTuple):
    """Deploys an ERC1967 proxy for `logic_name`, initialized with `initializer_args`."""

    logic_name: str
    initializer_args: Tuple[Any, ...] = tuple()

    @property
    def name(self) -> str:
        return self.logic_name

    @property
    def args(self) -> Tuple[Any, ...]:
        return self.initializer_args

    def __str__(self) -> str:
        return f"{self.logic_name} proxy"


class PredictAddress(NamedTuple):
    """
    Predicts where `target` will be deployed; sends no transaction.

    `offset` is the number of transactions sent between this step and the
    target's final deployment (its proxy, if it has one).
    """

    target: str
    offset: int

    @property
    def name(self) -> str:
        return self.target

    @property
    def args(self) -> Tuple[Any, ...]:
        return tuple()

    def __str__(self) -> str:
        return f"predict {self.target} address (+{self.offset})"


TRANSACTION_STEPS = (DeployLogic, DeployProxy)


class DeploymentPlan:
    """An ordered, fixed sequence of deployment steps."""

    class Invalid(ValueError):
        """Raised when the deployment plan is inconsistent"""

    def __init__(self, steps: Sequence[Any], config: Optional[Dict] = None):
        self.steps = tuple(steps)
        self.config = config or dict()
        self._validate()

    @property
    def deployment_steps(self) -> List[Any]:
        return [step for step in self.steps if isinstance(step, TRANSACTION_STEPS)]

    @property
    def contract_names(self) -> List[str]:
        names = list()
        for step in self.deployment_steps:
            if step.name not in names:
                names.append(step.name)
        return names

    def _final_positions(self) -> Dict[str, int]:
        """Maps each contract to the transaction index of its final deployment."""
        positions = dict()
        for position, step in enumerate(self.deployment_steps):
            positions[step.name] = position
        return positions

    def _validate(self) -> None:
        final_positions = self._final_positions()
        deployed = set()
        proxied = set()
        predicted = set()
        transactions_sent = 0
        for step in self.steps:
            if isinstance(step, TRANSACTION_STEPS):
                for name in _referenced_contracts(step.args, ContractName):
                    if name not in deployed:
                        raise self.Invalid(
                            f"{step} uses the address of {name} before it is deployed."
                        )

            if isinstance(step, DeployLogic):
                if step.name in deployed:
                    raise self.Invalid(f"{step.name} is deployed more than once.")
                deployed.add(step.name)
            elif isinstance(step, DeployProxy):
                if step.logic_name not in deployed:
                    raise self.Invalid(f"Proxy for {step.logic_name} precedes its logic contract.")
                if step.logic_name in proxied:
                    raise self.Invalid(f"{step.logic_name} is proxied more than once.")
                proxied.add(step.logic_name)
            elif isinstance(step, PredictAddress):
                if step.target not in final_positions:
                    raise self.Invalid(f"Cannot predict {step.target}; it is never deployed.")
                if step.target in predicted:
                    raise self.Invalid(f"{step.target} is predicted more than once.")
                expected_offset = final_positions[step.target] - transactions_sent
                if expected_offset < 1 or step.offset != expected_offset:
                    raise self.Invalid(
                        f"Prediction offset for {step.target} is {step.offset}, but its final "
                        f"deployment is {expected_offset} transaction(s) away."
                    )
                predicted.add(step.target)
            else:
                raise self.Invalid(f"Unknown deployment step {step!r}")

            for name in _referenced_contracts(step.args, PredictedAddress):
                if name not in predicted:
                    raise self.Invalid(f"{step} uses the address of {name} before predicting it.")

            if isinstance(step, TRANSACTION_STEPS):
                transactions_sent += 1

    @classmethod
    def from_config(
        cls, config: typing.Dict, constants: Optional[typing.Dict[str, Any]] = None
    ) -> "DeploymentPlan":
        """
        Builds a plan from a params config.

        Each contract entry deploys its logic contract followed, when it has a
        `proxy` section, by its proxy. A prediction step is inserted ahead of
        every step that uses `$predict:<Name>`, with the offset derived from the
        number of transactions until `<Name>` is deployed.
        """
        print("Processing deployment parameters...")
        contract_names = _get_contract_names(config)
        all_constants = dict(config.get("constants") or {})
        all_constants.update(constants or {})

        steps = list()
        for contract_info in config["contracts"]:
            if isinstance(contract_info, str):
                steps.append(DeployLogic(name=contract_info))
                continue

            contract_name = list(contract_info.keys())[0]  # only one entry
            contract_data = contract_info[contract_name] or dict()
            variable_context = VariableContext(
                contract_names=contract_names,
                contract_name=contract_name,
                constants=all_constants,
            )
            constructor_args = _process_raw_values(
                contract_data.get(CONTRACT_CONSTRUCTOR_PARAMETER_KEY), variable_context
            )
            steps.append(DeployLogic(name=contract_name, constructor_args=constructor_args))

            if CONTRACT_PROXY_PARAMETER_KEY in contract_data:
                proxy_data = contract_data[CONTRACT_PROXY_PARAMETER_KEY] or dict()
                initializer_args = _process_raw_values(
                    proxy_data.get(PROXY_INITIALIZER_PARAMETER_KEY), variable_context
                )
                steps.append(
                    DeployProxy(logic_name=contract_name, initializer_args=initializer_args)
                )

        return cls(steps=_insert_predictions(steps), config=config)

    @classmethod
    def from_yaml(
        cls, filepath: Path, constants: Optional[typing.Dict[str, Any]] = None
    ) -> "DeploymentPlan":
        config = _load_yaml(filepath)
        if not isinstance(config, dict):
            raise cls.Invalid(f"Malformed params file {filepath}.")
        return cls.from_config(config=config, constants=constants)


def _get_contract_names(config: typing.Dict) -> List[str]:
    contracts = config.get("contracts")
    if not contracts:
        raise DeploymentPlan.Invalid("Params file missing 'contracts' field.")

    contract_names = list()
    for contract_info in contracts:
        if isinstance(contract_info, str):
            contract_names.append(contract_info)
        elif isinstance(contract_info, dict) and len(contract_info) == 1:
            contract_names.extend(list(contract_info.keys()))
        else:
            raise DeploymentPlan.Invalid("Malformed deployment parameters YAML.")

    if len(set(contract_names)) != len(contract_names):
        raise DeploymentPlan.Invalid("Contract names in deployment parameters must be unique.")
    return contract_names


def _insert_predictions(steps: List[Any]) -> List[Any]:
    final_positions = OrderedDict()
    for position, step in enumerate(steps):
        final_positions[step.name] = position

    planned = list()
    predicted = set()
    for position, step in enumerate(steps):
        for name in _referenced_contracts(step.args, PredictedAddress):
            if name in predicted:
                continue
            planned.append(PredictAddress(target=name, offset=final_positions[name] - position))
            predicted.add(name)
        planned.append(step)
    return planned
