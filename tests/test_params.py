from collections import OrderedDict
from pathlib import Path

import pytest

from staking_deployment.constants import CHAIN_IDS, CONSTRUCTOR_PARAMS_DIR, SUPPORTED_NETWORKS
from staking_deployment.exceptions import ArgumentResolutionError, InvalidDeploymentPlan
from staking_deployment.params import (
    Constant,
    ContractName,
    ContractSpec,
    DeployerAccount,
    DeploymentPlan,
    ResolutionContext,
    Variable,
    VariableContext,
)
from tests.conftest import DEPLOYER_ADDRESS, SEPOLIA_CHAIN_ID, TOKEN_ADDRESS, stake_config

CORE_ADDRESS = "0x00000000000000000000000000000000C0dE0001"


def test_load_plan(plan):
    assert len(plan) == 2
    assert plan.contract_names == ["Core", "BeneficiaryCore"]
    assert plan.name == "test-stake"
    assert plan.chain_id == SEPOLIA_CHAIN_ID
    assert plan.registry_filepath == Path("./artifacts/") / "test.json"

    core, beneficiary_core = plan
    assert core.container_name == "StakeCore"
    assert beneficiary_core.container_name == "BeneficiaryCore"
    assert list(core.constructor_args) == [
        "tokenAddress",
        "lockDays",
        "stakerShare",
        "installmentCount",
    ]
    assert list(beneficiary_core.constructor_args) == [
        "tokenAddress",
        "ownerAddress",
        "coreAddress",
    ]


def test_variables_are_processed(plan):
    core, beneficiary_core = plan
    assert isinstance(core.constructor_args["tokenAddress"], Constant)
    assert core.constructor_args["lockDays"] == 180

    assert isinstance(beneficiary_core.constructor_args["ownerAddress"], DeployerAccount)
    core_reference = beneficiary_core.constructor_args["coreAddress"]
    assert isinstance(core_reference, ContractName)
    assert core_reference.contract_name == "Core"
    assert repr(core_reference) == "$Core"

    assert core.dependencies == []
    assert beneficiary_core.dependencies == ["Core"]


def test_is_variable():
    assert Variable.is_variable("$Core")
    assert Variable.is_variable("$deployer")
    assert not Variable.is_variable("Core")
    assert not Variable.is_variable(180)
    assert not Variable.is_variable(TOKEN_ADDRESS)


def test_resolve_arguments(plan):
    core, beneficiary_core = plan
    context = ResolutionContext(
        deployer_address=DEPLOYER_ADDRESS, deployments={"Core": CORE_ADDRESS}
    )

    # literals pass through unchanged
    assert core.resolve_arguments(context) == OrderedDict(
        tokenAddress=TOKEN_ADDRESS, lockDays=180, stakerShare=60, installmentCount=1
    )
    assert beneficiary_core.resolve_arguments(context) == OrderedDict(
        tokenAddress=TOKEN_ADDRESS, ownerAddress=DEPLOYER_ADDRESS, coreAddress=CORE_ADDRESS
    )


def test_resolve_unresolved_reference(plan):
    _, beneficiary_core = plan
    context = ResolutionContext(deployer_address=DEPLOYER_ADDRESS)
    with pytest.raises(ArgumentResolutionError, match="Core has not been deployed yet"):
        beneficiary_core.resolve_arguments(context)


def test_resolve_list_values():
    config = {
        "deployment": {"name": "lists"},
        "contracts": [
            "Token",
            {
                "Vault": {
                    "constructor": {"_tokens": ["$Token", TOKEN_ADDRESS], "_admin": "$deployer"}
                }
            },
        ],
    }
    plan = DeploymentPlan.from_config(config)
    vault = plan[1]
    assert vault.dependencies == ["Token"]

    context = ResolutionContext(
        deployer_address=DEPLOYER_ADDRESS, deployments={"Token": CORE_ADDRESS}
    )
    assert vault.resolve_arguments(context) == OrderedDict(
        _tokens=[CORE_ADDRESS, TOKEN_ADDRESS], _admin=DEPLOYER_ADDRESS
    )


def test_contract_without_parameters():
    config = {"deployment": {"name": "bare"}, "contracts": ["StakeCore"]}
    plan = DeploymentPlan.from_config(config)
    spec = plan[0]
    assert spec == ContractSpec(name="StakeCore", constructor_args=OrderedDict())
    assert plan.chain_id is None
    assert plan.registry_filepath is None


def test_forward_reference_is_rejected(config):
    config["contracts"].reverse()
    with pytest.raises(ArgumentResolutionError, match="is not deployed before it"):
        DeploymentPlan.from_config(config)


def test_self_reference_is_rejected():
    config = {
        "deployment": {"name": "loop"},
        "contracts": [{"Core": {"constructor": {"_self": "$Core"}}}],
    }
    with pytest.raises(ArgumentResolutionError):
        DeploymentPlan.from_config(config)


def test_unknown_contract_reference(config):
    config["contracts"][1]["BeneficiaryCore"]["constructor"]["coreAddress"] = "$Treasury"
    with pytest.raises(ArgumentResolutionError, match="Treasury"):
        DeploymentPlan.from_config(config)


def test_unknown_constant(config):
    config["contracts"][0]["Core"]["constructor"]["lockDays"] = "$LOCK_DAYS"
    with pytest.raises(InvalidDeploymentPlan, match="Constant 'LOCK_DAYS' not found"):
        DeploymentPlan.from_config(config)


def test_duplicate_contract_names(config):
    config["contracts"].append("Core")
    with pytest.raises(InvalidDeploymentPlan, match="declared more than once"):
        DeploymentPlan.from_config(config)


def test_duplicate_names_in_programmatic_plan():
    spec = ContractSpec(name="Core", constructor_args=OrderedDict())
    with pytest.raises(InvalidDeploymentPlan):
        DeploymentPlan(specs=[spec, spec])


def test_forward_reference_in_programmatic_plan():
    reference = ContractName(
        "Core", VariableContext(contract_names=["Core"], contract_name="BeneficiaryCore")
    )
    beneficiary_core = ContractSpec(
        name="BeneficiaryCore", constructor_args=OrderedDict(coreAddress=reference)
    )
    core = ContractSpec(name="Core", constructor_args=OrderedDict())
    with pytest.raises(ArgumentResolutionError):
        DeploymentPlan(specs=[beneficiary_core, core])


@pytest.mark.parametrize("missing", ["deployment", "contracts"])
def test_missing_sections(config, missing):
    del config[missing]
    with pytest.raises(InvalidDeploymentPlan):
        DeploymentPlan.from_config(config)


@pytest.mark.parametrize(
    "entry",
    [
        {"Core": {}, "BeneficiaryCore": {}},
        {"Core": ["not", "a", "mapping"]},
        {"Core": {"constructor": ["tokenAddress"]}},
        42,
    ],
)
def test_malformed_contract_entries(entry):
    config = {"deployment": {"name": "bad"}, "contracts": [entry]}
    with pytest.raises(InvalidDeploymentPlan):
        DeploymentPlan.from_config(config)


def test_missing_artifact_filename(config):
    config["artifacts"] = {"dir": "./artifacts/"}
    with pytest.raises(InvalidDeploymentPlan, match="artifact filename"):
        DeploymentPlan.from_config(config)


def test_with_constants(plan):
    other_token = "0x" + "11" * 20
    overridden = plan.with_constants(TOKEN_ADDRESS=other_token)

    context = ResolutionContext(
        deployer_address=DEPLOYER_ADDRESS, deployments={"Core": CORE_ADDRESS}
    )
    assert overridden[0].resolve_arguments(context)["tokenAddress"] == other_token
    assert overridden[1].resolve_arguments(context)["tokenAddress"] == other_token
    # the loaded plan is left untouched
    assert plan[0].resolve_arguments(context)["tokenAddress"] == TOKEN_ADDRESS


def test_with_unknown_constant(plan):
    with pytest.raises(InvalidDeploymentPlan, match="Unknown constant"):
        plan.with_constants(OWNER_ADDRESS=DEPLOYER_ADDRESS)


def test_from_yaml(tmp_path):
    filepath = tmp_path / "plan.yml"
    filepath.write_text(
        """deployment:
  name: yaml-stake
  chain_id: 5

contracts:
  - Core:
      contract_type: StakeCore
      constructor:
        lockDays: 180
  - BeneficiaryCore:
      constructor:
        ownerAddress: $deployer
        coreAddress: $Core
"""
    )
    plan = DeploymentPlan.from_yaml(filepath)
    assert plan.chain_id == 5
    assert plan.contract_names == ["Core", "BeneficiaryCore"]
    assert plan[1].dependencies == ["Core"]


@pytest.mark.parametrize("network", SUPPORTED_NETWORKS)
def test_shipped_plans(network):
    plan = DeploymentPlan.from_yaml(CONSTRUCTOR_PARAMS_DIR / f"{network}.yml")
    assert plan.chain_id == CHAIN_IDS[network]
    assert plan.contract_names == ["Core", "BeneficiaryCore"]
    assert plan[0].container_name == "StakeCore"

    context = ResolutionContext(
        deployer_address=DEPLOYER_ADDRESS, deployments={"Core": CORE_ADDRESS}
    )
    assert list(plan[0].resolve_arguments(context).values()) == [TOKEN_ADDRESS, 180, 60, 1]
    assert list(plan[1].resolve_arguments(context).values()) == [
        TOKEN_ADDRESS,
        DEPLOYER_ADDRESS,
        CORE_ADDRESS,
    ]


def test_stake_config_matches_shipped_plan():
    shipped = DeploymentPlan.from_yaml(CONSTRUCTOR_PARAMS_DIR / "sepolia.yml")
    plan = DeploymentPlan.from_config(stake_config())
    assert shipped.contract_names == plan.contract_names
    assert [spec.container_name for spec in shipped] == [spec.container_name for spec in plan]
