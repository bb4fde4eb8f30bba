import pytest

from azoth_deployment.context import DeployedContract, RunContext
from azoth_deployment.params import (
    Constant,
    ContractName,
    DeployerAccount,
    DeploymentPlan,
    DeployLogic,
    DeployProxy,
    PredictAddress,
    PredictedAddress,
    resolve_params,
)
from tests.conftest import AZOTH_CONSTANTS, DEPLOYER, FEE_RECIPIENT, OWNER


def test_azoth_plan_steps(azoth_plan):
    assert list(azoth_plan.steps) == [
        DeployLogic("Factory"),
        PredictAddress(target="NFTManager", offset=3),
        DeployLogic("Azoth", (ContractName("Factory"), PredictedAddress("NFTManager"))),
        DeployProxy(
            "Azoth",
            (
                Constant("OWNER", value=OWNER),
                Constant("FEE_RECIPIENT", value=FEE_RECIPIENT),
            ),
        ),
        DeployLogic("NFTManager", (ContractName("Azoth"),)),
        DeployProxy("NFTManager"),
    ]
    assert len(azoth_plan.deployment_steps) == 5
    assert [type(step) for step in azoth_plan.steps] == [
        DeployLogic,
        PredictAddress,
        DeployLogic,
        DeployProxy,
        DeployLogic,
        DeployProxy,
    ]
    assert azoth_plan.contract_names == ["Factory", "Azoth", "NFTManager"]
    assert azoth_plan.config["artifacts"]["filename"] == "azoth.json"


def test_prediction_offset_is_derived_from_plan():
    config = {
        "contracts": [
            {"A": {"constructor": ["$predict:D"]}},
            "B",
            {"C": {"proxy": None}},
            {"D": {"proxy": {"initializer": []}}},
        ]
    }
    plan = DeploymentPlan.from_config(config)

    # A, B, C, C proxy, D, then D proxy is the 6th transaction from A
    assert plan.steps[0] == PredictAddress(target="D", offset=5)
    assert plan.steps[1] == DeployLogic("A", (PredictedAddress("D"),))


def test_prediction_of_unproxied_contract():
    config = {"contracts": [{"A": {"constructor": ["$predict:B"]}}, "B"]}
    plan = DeploymentPlan.from_config(config)
    assert plan.steps[0] == PredictAddress(target="B", offset=1)


def test_contract_predicted_once():
    config = {
        "contracts": [
            {"Aa": {"constructor": ["$predict:Cc"]}},
            {"Bb": {"constructor": [["$predict:Cc", "$Aa"]]}},
            "Cc",
        ]
    }
    plan = DeploymentPlan.from_config(config)
    predictions = [step for step in plan.steps if isinstance(step, PredictAddress)]
    assert predictions == [PredictAddress(target="Cc", offset=2)]


def test_variables_from_config():
    config = {
        "constants": {"FEE": 300},
        "contracts": [
            "Token",
            {"Pool": {"constructor": {"token": "$Token", "admin": "$deployer", "fee": "$FEE"}}},
        ],
    }
    plan = DeploymentPlan.from_config(config)
    assert plan.steps[1].constructor_args == (
        ContractName("Token"),
        DeployerAccount(),
        Constant("FEE", value=300),
    )


def test_constants_override_config():
    config = {
        "constants": {"OWNER": "0x" + "ab" * 20},
        "contracts": [{"A": {"constructor": ["$OWNER"]}}],
    }
    plan = DeploymentPlan.from_config(config, constants=AZOTH_CONSTANTS)
    assert plan.steps[0].constructor_args == (Constant("OWNER", value=OWNER),)


@pytest.mark.parametrize(
    "config",
    [
        {"contracts": []},
        {"contracts": [{"A": {}, "B": {}}]},
        {"contracts": ["A", "A"]},
        {"contracts": [{"A": {"constructor": ["$Unknown"]}}]},
        {"contracts": [{"Aa": {"constructor": ["$Bb"]}}, "Bb"]},
        {"contracts": [{"Aa": {"constructor": ["$Aa"]}}]},
        {"contracts": ["B", {"A": {"constructor": ["$predict:B"]}}]},
        {"contracts": [{"A": {"constructor": ["$predict:A"]}}]},
        {"contracts": [{"A": {"constructor": "$B"}}, "B"]},
    ],
)
def test_invalid_plan_config(config):
    with pytest.raises(DeploymentPlan.Invalid):
        DeploymentPlan.from_config(config)


def test_missing_constant():
    with pytest.raises(DeploymentPlan.Invalid, match="MISSING"):
        DeploymentPlan.from_config({"contracts": [{"A": {"constructor": ["$MISSING"]}}]})


@pytest.mark.parametrize(
    "steps",
    [
        [DeployLogic("A"), DeployLogic("A")],
        [DeployProxy("A"), DeployLogic("A")],
        [DeployLogic("A"), DeployProxy("A"), DeployProxy("A")],
        [PredictAddress("B", 3), DeployLogic("A"), DeployLogic("B")],
        [PredictAddress("C", 1), DeployLogic("A")],
        [DeployLogic("A", (PredictedAddress("B"),)), DeployLogic("B")],
        [PredictAddress("B", 1), PredictAddress("B", 1), DeployLogic("B")],
        [DeployLogic("NFTManager", (ContractName("Azoth"),)), DeployLogic("Azoth")],
        [DeployLogic("Azoth", (ContractName("Azoth"),))],
        [
            DeployLogic("Azoth"),
            DeployProxy("Azoth", ([ContractName("Factory")],)),
            DeployLogic("Factory"),
        ],
        ["not a step"],
    ],
)
def test_invalid_plan_steps(steps):
    with pytest.raises(DeploymentPlan.Invalid):
        DeploymentPlan(steps)


def test_resolve_params():
    context = RunContext(deployer=DEPLOYER)
    logic = DeployedContract(
        name="Azoth", address="0x" + "aa" * 20, tx_hash="0x01", contract_type="Azoth"
    )
    context.record_implementation(logic)
    context.record_prediction("NFTManager", "0x" + "bb" * 20)

    resolved = resolve_params(
        [
            ContractName("Azoth"),
            PredictedAddress("NFTManager"),
            DeployerAccount(),
            [ContractName("Azoth"), 7],
            "literal",
        ],
        context,
    )
    assert resolved[0] == context.address_of("Azoth")
    assert resolved[1] == context.predictions["NFTManager"]
    assert resolved[2] == context.deployer
    assert resolved[3] == [context.address_of("Azoth"), 7]
    assert resolved[4] == "literal"

    proxy = DeployedContract(
        name="Azoth", address="0x" + "cc" * 20, tx_hash="0x02", contract_type="ERC1967Proxy"
    )
    context.record_proxy(proxy)
    assert resolve_params([ContractName("Azoth")], context) == [proxy.address]
