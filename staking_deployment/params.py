import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, Iterator, List, NamedTuple, Optional

from eth_typing import ChecksumAddress

from staking_deployment.constants import DEPLOYER_VARIABLE
from staking_deployment.exceptions import ArgumentResolutionError, InvalidDeploymentPlan
from staking_deployment.utils import _load_yaml, get_artifact_filepath

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_TYPE_KEY = "contract_type"


class VariableContext:
    """What a plan entry may refer to while its raw values are being processed."""

    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
    ):
        # only contracts declared before this one
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.constants = constants or dict()


class ResolutionContext:
    """Runtime values available to variables when a contract is about to be deployed."""

    def __init__(
        self,
        deployer_address: ChecksumAddress,
        deployments: typing.Optional[Dict[str, ChecksumAddress]] = None,
    ):
        self.deployer_address = deployer_address
        self.deployments = deployments if deployments is not None else dict()


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, context: ResolutionContext) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == DEPLOYER_VARIABLE

    def resolve(self, context: ResolutionContext) -> Any:
        return context.deployer_address

    def __repr__(self) -> str:
        return f"{self.VARIABLE_PREFIX}{DEPLOYER_VARIABLE}"


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise InvalidDeploymentPlan(
                f"Constant '{constant_name}' not found in deployment file."
            )
        self.constant_name = constant_name

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self, context: ResolutionContext) -> Any:
        return self.constant_value

    def __repr__(self) -> str:
        return f"{self.VARIABLE_PREFIX}{self.constant_name}"


class ContractName(Variable):
    """The address of a contract deployed earlier in the same plan."""

    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise ArgumentResolutionError(
                f"Contract name {contract_name} referenced by {context.contract_name} "
                "is not deployed before it",
                contract_name=context.contract_name,
            )
        self.contract_name = contract_name

    def resolve(self, context: ResolutionContext) -> Any:
        """Resolves a contract address."""
        try:
            return context.deployments[self.contract_name]
        except KeyError:
            raise ArgumentResolutionError(
                f"Contract {self.contract_name} has not been deployed yet"
            )

    def __repr__(self) -> str:
        return f"{self.VARIABLE_PREFIX}{self.contract_name}"


def _resolve_param(value: Any, context: ResolutionContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, context) for v in value]

    if isinstance(value, Variable):
        return value.resolve(context)

    return value  # literally a value


def _resolve_params(parameters: OrderedDict, context: ResolutionContext) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value, context)

    return resolved_parameters


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
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


def _process_raw_values(values: Dict, variable_context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _referenced_contracts(value: Any) -> List[str]:
    if isinstance(value, list):
        return [name for v in value for name in _referenced_contracts(v)]
    if isinstance(value, ContractName):
        return [value.contract_name]
    return []


class ContractSpec(NamedTuple):
    """A single contract to deploy, as declared in a deployment plan."""

    name: str
    constructor_args: OrderedDict
    contract_type: Optional[str] = None

    @property
    def container_name(self) -> str:
        """The compiled contract to instantiate; defaults to the plan name."""
        return self.contract_type or self.name

    @property
    def dependencies(self) -> List[str]:
        """Names of the earlier contracts whose addresses this contract needs."""
        return [
            name
            for value in self.constructor_args.values()
            for name in _referenced_contracts(value)
        ]

    def resolve_arguments(self, context: ResolutionContext) -> OrderedDict:
        """Resolves the constructor arguments against what has been deployed so far."""
        return _resolve_params(self.constructor_args, context)


def _get_contract_name(contract_info: Any) -> str:
    if isinstance(contract_info, str):
        return contract_info
    if isinstance(contract_info, dict) and len(contract_info) == 1:
        return list(contract_info.keys())[0]  # only one entry
    raise InvalidDeploymentPlan("Malformed constructor parameters YAML.")


def _validate_references(specs: List[ContractSpec]) -> None:
    """Every referenced contract must be declared, exactly once, earlier in the plan."""
    seen = list()
    for spec in specs:
        if spec.name in seen:
            raise InvalidDeploymentPlan(f"Contract {spec.name} is declared more than once.")
        for dependency in spec.dependencies:
            if dependency not in seen:
                raise ArgumentResolutionError(
                    f"Contract name {dependency} referenced by {spec.name} "
                    "is not deployed before it",
                    contract_name=spec.name,
                )
        seen.append(spec.name)


class DeploymentPlan:
    """
    An ordered list of contracts to deploy plus the metadata of the plan file.
    Values are opaque: they are only substituted, never interpreted.
    """

    def __init__(
        self,
        specs: List[ContractSpec],
        name: Optional[str] = None,
        chain_id: Optional[int] = None,
        registry_filepath: Optional[Path] = None,
        config: Optional[Dict] = None,
    ):
        self.specs = list(specs)
        self.name = name
        self.chain_id = chain_id
        self.registry_filepath = registry_filepath
        self.config = config or dict()
        _validate_references(self.specs)

    def __iter__(self) -> Iterator[ContractSpec]:
        return iter(self.specs)

    def __len__(self) -> int:
        return len(self.specs)

    def __getitem__(self, index: int) -> ContractSpec:
        return self.specs[index]

    @property
    def contract_names(self) -> List[str]:
        return [spec.name for spec in self.specs]

    @property
    def constants(self) -> Dict[str, Any]:
        return dict(self.config.get("constants") or {})

    @classmethod
    def from_config(cls, config: typing.Dict) -> "DeploymentPlan":
        """Loads a deployment plan from a parsed params file."""
        print("Processing deployment plan...")
        if not isinstance(config, dict):
            raise InvalidDeploymentPlan("Deployment plan must be a mapping.")

        deployment = config.get("deployment")
        if not deployment:
            raise InvalidDeploymentPlan("deployment is not set in params file.")

        contracts = config.get("contracts")
        if not contracts:
            raise InvalidDeploymentPlan("Constructor parameters file missing 'contracts' field.")

        registry_filepath = None
        if config.get("artifacts"):
            try:
                registry_filepath = get_artifact_filepath(config=config)
            except ValueError as e:
                raise InvalidDeploymentPlan(str(e))

        constants = config.get("constants") or dict()
        specs = list()
        for contract_info in contracts:
            contract_name = _get_contract_name(contract_info)
            contract_data = dict()
            if isinstance(contract_info, dict):
                contract_data = contract_info[contract_name] or dict()
            if not isinstance(contract_data, dict):
                raise InvalidDeploymentPlan(
                    f"Malformed constructor parameter config for {contract_name}."
                )

            variable_context = VariableContext(
                contract_names=[spec.name for spec in specs],
                contract_name=contract_name,
                constants=constants,
            )
            spec = ContractSpec(
                name=contract_name,
                constructor_args=cls._process_parameters(contract_data, variable_context),
                contract_type=contract_data.get(CONTRACT_TYPE_KEY),
            )
            specs.append(spec)

        return cls(
            specs=specs,
            name=deployment.get("name"),
            chain_id=deployment.get("chain_id"),
            registry_filepath=registry_filepath,
            config=config,
        )

    @classmethod
    def from_yaml(cls, filepath: Path) -> "DeploymentPlan":
        config = _load_yaml(filepath)
        return cls.from_config(config)

    @classmethod
    def _process_parameters(
        cls, contract_data: Dict, variable_context: VariableContext
    ) -> OrderedDict:
        parameters = contract_data.get(CONTRACT_CONSTRUCTOR_PARAMETER_KEY) or OrderedDict()
        if not isinstance(parameters, dict):
            raise InvalidDeploymentPlan(
                f"Malformed constructor parameter config for {variable_context.contract_name}."
            )
        return _process_raw_values(parameters, variable_context)

    def with_constants(self, **constants: Any) -> "DeploymentPlan":
        """Returns a copy of this plan with some constants replaced."""
        unknown = set(constants) - set(self.constants)
        if unknown:
            raise InvalidDeploymentPlan(
                f"Unknown constant(s) {', '.join(sorted(unknown))} for deployment plan."
            )
        config = dict(self.config)
        config["constants"] = {**self.constants, **constants}
        return self.from_config(config)
