from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

from ape import networks, project
from ape.api import AccountAPI
from ape.contracts import ContractContainer
from ape.exceptions import ApeException
from eth_typing import ABI, ChecksumAddress
from eth_utils import to_checksum_address, to_hex
from ethpm_types import ContractType
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception

from staking_deployment.constants import ConfirmationStatus
from staking_deployment.exceptions import (
    ConfigurationError,
    ConfirmationError,
    InvalidConstructorArguments,
    SubmissionError,
)
from staking_deployment.utils import _load_json, find_hardhat_artifact

w3 = Web3()


class Confirmation(NamedTuple):
    """The outcome of waiting for a deployment transaction."""

    status: ConfirmationStatus
    address: Optional[ChecksumAddress] = None
    block_number: Optional[int] = None
    reason: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.status == ConfirmationStatus.CONFIRMED


class ContractBackend(ABC):
    """Creates contracts on a network on behalf of a single deployer account."""

    @abstractmethod
    def submit(self, contract_type: str, arguments: List[Any]) -> str:
        """Broadcasts a contract creation transaction and returns its hash."""
        raise NotImplementedError

    @abstractmethod
    def await_confirmation(self, tx_hash: str, timeout: Optional[float]) -> Confirmation:
        """Blocks until the contract created by tx_hash has code on chain."""
        raise NotImplementedError

    def validate_arguments(self, contract_type: str, arguments: OrderedDict) -> None:
        """Checks resolved arguments before anything is submitted."""

    def get_abi(self, contract_type: str) -> ABI:
        return []


def _validate_constructor_abi_inputs(
    contract_name: str,
    abi_inputs: List[Any],
    resolved_parameters: OrderedDict,
) -> None:
    """Validates the constructor parameters against the constructor ABI."""
    if len(resolved_parameters) != len(abi_inputs):
        raise InvalidConstructorArguments(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(resolved_parameters)}."
        )
    if not abi_inputs:
        return  # no constructor parameters

    codex = enumerate(zip(abi_inputs, resolved_parameters.items()), start=0)
    for position, (abi_input, resolved_input) in codex:
        name, value = resolved_input
        if not w3.is_encodable(abi_input.type, value):
            raise InvalidConstructorArguments(
                f"Constructor param name '{name}' at position {position} has a value '{value}' "
                f"whose type does not match expected ABI type '{abi_input.type}'"
            )


def _contract_container_from_hardhat(filepath: Path) -> ContractContainer:
    artifact = _load_json(filepath)
    contract_type = ContractType.model_validate(
        {
            "contractName": artifact["contractName"],
            "sourceId": artifact.get("sourceName"),
            "abi": artifact["abi"],
            "deploymentBytecode": {"bytecode": artifact["bytecode"]},
            "runtimeBytecode": {"bytecode": artifact["deployedBytecode"]},
        }
    )
    return ContractContainer(contract_type)


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(
    contract: str, artifacts_dir: Optional[Path] = None
) -> ContractContainer:
    if artifacts_dir is not None:
        filepath = find_hardhat_artifact(artifacts_dir=artifacts_dir, contract_name=contract)
        return _contract_container_from_hardhat(filepath)

    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


class ApeBackend(ContractBackend):
    """
    Deploys with an ape account on the connected ape provider.

    Transactions are prepared and signed by the account, then broadcast and
    awaited through the provider's web3 connection so that the wait is bounded.
    """

    def __init__(self, account: AccountAPI, artifacts_dir: Optional[Path] = None):
        self.account = account
        self.artifacts_dir = artifacts_dir
        self._containers: Dict[str, ContractContainer] = dict()

    @property
    def web3(self):
        return networks.provider.web3

    def get_container(self, contract_type: str) -> ContractContainer:
        if contract_type not in self._containers:
            try:
                container = get_contract_container(
                    contract_type, artifacts_dir=self.artifacts_dir
                )
            except KeyError as e:
                raise ConfigurationError(
                    f"Malformed hardhat artifact for '{contract_type}': missing {e}"
                ) from e
            except (ValueError, OSError) as e:
                raise ConfigurationError(str(e)) from e
            self._containers[contract_type] = container
        return self._containers[contract_type]

    def validate_arguments(self, contract_type: str, arguments: OrderedDict) -> None:
        container = self.get_container(contract_type)
        _validate_constructor_abi_inputs(
            contract_name=contract_type,
            abi_inputs=container.constructor.abi.inputs,
            resolved_parameters=arguments,
        )

    def get_abi(self, contract_type: str) -> ABI:
        container = self.get_container(contract_type)
        return [
            entry.model_dump(mode="json", by_alias=True) for entry in container.contract_type.abi
        ]

    def submit(self, contract_type: str, arguments: List[Any]) -> str:
        container = self.get_container(contract_type)
        try:
            txn = container.constructor.serialize_transaction(*arguments, sender=self.account)
            txn = self.account.prepare_transaction(txn)
            signed_txn = self.account.sign_transaction(txn)
            if signed_txn is None:
                raise SubmissionError(f"{self.account.address} did not sign the transaction")
            tx_hash = self.web3.eth.send_raw_transaction(signed_txn.serialize_transaction())
        except (ApeException, Web3Exception, ValueError, OSError) as e:
            raise SubmissionError(str(e)) from e
        return to_hex(tx_hash)

    def await_confirmation(self, tx_hash: str, timeout: Optional[float]) -> Confirmation:
        try:
            receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted:
            return Confirmation(
                status=ConfirmationStatus.TIMED_OUT,
                reason=f"not mined within {timeout} seconds",
            )
        except (Web3Exception, OSError) as e:
            raise ConfirmationError(str(e)) from e

        block_number = receipt["blockNumber"]
        if receipt["status"] != 1:
            return Confirmation(
                status=ConfirmationStatus.FAILED,
                block_number=block_number,
                reason="transaction reverted",
            )

        address = receipt["contractAddress"]
        if not address or not self.web3.eth.get_code(address):
            return Confirmation(
                status=ConfirmationStatus.FAILED,
                block_number=block_number,
                reason=f"no contract code at {address}",
            )

        return Confirmation(
            status=ConfirmationStatus.CONFIRMED,
            address=to_checksum_address(address),
            block_number=block_number,
        )
