from collections import OrderedDict

from staking_deployment.constants import NULL_ADDRESS
from staking_deployment.exceptions import DeploymentCancelled


def _declined(prompt: str) -> bool:
    answer = input(prompt)
    return answer.lower().strip() == "n"


def _abort(contract_name: str, reason: str) -> None:
    print("Aborting deployment!")
    raise DeploymentCancelled(reason, contract_name=contract_name)


def _confirm_deployment(contract_name: str) -> None:
    """Asks the operator to confirm the deployment of a single contract."""
    if _declined(f"Deploy {contract_name} Y/N? "):
        _abort(contract_name, "deployment declined by operator")


def _confirm_zero_address(contract_name: str) -> None:
    if _declined("Zero Address detected for deployment parameter; Continue? Y/N? "):
        _abort(contract_name, "zero address argument declined by operator")


def _confirm_resolution(resolved_params: OrderedDict, contract_name: str) -> None:
    """
    Lists the resolved constructor arguments of a contract and asks the operator
    to confirm them. Declining raises DeploymentCancelled; nothing is submitted.
    """
    if len(resolved_params) == 0:
        print(f"\n(i) No constructor parameters for {contract_name}")
        _confirm_deployment(contract_name)
        return

    print(f"\nConstructor parameters for {contract_name}")
    for name, resolved_value in resolved_params.items():
        print(f"\t{name}={resolved_value}")
    _confirm_deployment(contract_name)
    if NULL_ADDRESS in resolved_params.values():
        _confirm_zero_address(contract_name)
