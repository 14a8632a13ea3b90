import signal
import threading
from collections import OrderedDict
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, NamedTuple, Optional

import click
from eth_typing import ChecksumAddress

from staking_deployment.backends import Confirmation, ContractBackend
from staking_deployment.confirm import _confirm_resolution
from staking_deployment.constants import (
    DEFAULT_CONFIRMATION_TIMEOUT,
    DEPLOYMENT_TRANSITIONS,
    DeploymentState,
)
from staking_deployment.exceptions import (
    ArgumentResolutionError,
    ConfirmationError,
    DeploymentCancelled,
    DeploymentError,
    SubmissionError,
)
from staking_deployment.networks import NetworkContext, resolve_network_context
from staking_deployment.params import ContractSpec, ResolutionContext


class DeployedContract(NamedTuple):
    """A contract whose deployment has been confirmed on chain."""

    spec: ContractSpec
    address: ChecksumAddress
    index: int
    arguments: OrderedDict
    tx_hash: str
    block_number: Optional[int] = None
    status: DeploymentState = DeploymentState.CONFIRMED

    @property
    def name(self) -> str:
        return self.spec.name


class DeploymentResult:
    """Confirmed deployments of a single run, in the order they were deployed."""

    def __init__(self, context: NetworkContext):
        self.context = context
        self._deployments: List[DeployedContract] = list()

    def __iter__(self) -> Iterator[DeployedContract]:
        return iter(self._deployments)

    def __len__(self) -> int:
        return len(self._deployments)

    def __getitem__(self, index: int) -> DeployedContract:
        return self._deployments[index]

    def get(self, name: str) -> Optional[DeployedContract]:
        for deployed in self._deployments:
            if deployed.name == name:
                return deployed
        return None

    @property
    def addresses(self) -> "OrderedDict[str, ChecksumAddress]":
        return OrderedDict((deployed.name, deployed.address) for deployed in self._deployments)

    def append(self, deployed: DeployedContract) -> None:
        if deployed.index != len(self._deployments):
            raise ValueError(
                f"{deployed.name} recorded at index {deployed.index}, "
                f"expected {len(self._deployments)}"
            )
        missing = [name for name in deployed.spec.dependencies if self.get(name) is None]
        if missing:
            raise ArgumentResolutionError(
                f"depends on undeployed contract(s) {', '.join(missing)}",
                contract_name=deployed.name,
                index=deployed.index,
            )
        self._deployments.append(deployed)


class Deployer:
    """
    Deploys contracts one at a time with a single deployer account.

    Later contracts may take the addresses of earlier ones as constructor
    arguments, and all transactions share the deployer's nonce sequence, so
    nothing is ever submitted while a previous deployment is unconfirmed.
    A failure stops the run; contracts already confirmed stay in `result`.
    """

    def __init__(
        self,
        context: NetworkContext,
        backend: ContractBackend,
        confirmation_timeout: Optional[float] = DEFAULT_CONFIRMATION_TIMEOUT,
        autosign: bool = False,
    ):
        self.context = context
        self.backend = backend
        self.confirmation_timeout = confirmation_timeout
        if autosign:
            print("WARNING: Autosign is enabled. Deployments will not be confirmed by the user.")
        self.autosign = autosign
        self.result = DeploymentResult(context=context)
        self.states: "OrderedDict[str, DeploymentState]" = OrderedDict()
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """No further contract is submitted once this is called."""
        self._cancelled.set()

    @contextmanager
    def cancel_on_signals(self, signals=(signal.SIGTERM,)):
        """
        Cancels the run when one of `signals` is received.
        Signal handlers can only be installed from the main thread;
        elsewhere this is a no-op and only `cancel()` stops the run.
        """
        if threading.current_thread() is not threading.main_thread():
            yield self
            return

        def _handler(signum, frame):
            print(f"\n(!) Received signal {signum}; no further contracts will be deployed.")
            self.cancel()

        previous = {signum: signal.signal(signum, _handler) for signum in signals}
        try:
            yield self
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)

    def _set_state(self, spec: ContractSpec, state: DeploymentState) -> None:
        current = self.states.get(spec.name, DeploymentState.PENDING)
        if state not in DEPLOYMENT_TRANSITIONS[current]:
            raise ValueError(f"Invalid transition for {spec.name}: {current} -> {state}")
        self.states[spec.name] = state

    def _resolve(self, spec: ContractSpec, index: int) -> OrderedDict:
        context = ResolutionContext(
            deployer_address=self.context.deployer_address,
            deployments=self.result.addresses,
        )
        try:
            arguments = spec.resolve_arguments(context)
            self.backend.validate_arguments(spec.container_name, arguments)
            if not self.autosign:
                _confirm_resolution(arguments, spec.name)
        except DeploymentError as e:
            e.contract_name, e.index = spec.name, index
            raise
        return arguments

    def _submit(self, spec: ContractSpec, index: int, arguments: OrderedDict) -> str:
        self._set_state(spec, DeploymentState.SUBMITTED)
        try:
            tx_hash = self.backend.submit(spec.container_name, list(arguments.values()))
        except SubmissionError as e:
            self._set_state(spec, DeploymentState.FAILED)
            e.contract_name, e.index = spec.name, index
            raise
        print(f"\nDeploying {spec.name} in transaction {tx_hash}...")
        return tx_hash

    def _await_confirmation(self, spec: ContractSpec, index: int, tx_hash: str) -> Confirmation:
        try:
            confirmation = self.backend.await_confirmation(
                tx_hash, timeout=self.confirmation_timeout
            )
        except ConfirmationError as e:
            self._set_state(spec, DeploymentState.FAILED)
            e.contract_name, e.index = spec.name, index
            raise
        if not confirmation.confirmed:
            self._set_state(spec, DeploymentState.FAILED)
            raise ConfirmationError(
                f"deployment {confirmation.status.value} ({confirmation.reason}), tx {tx_hash}",
                contract_name=spec.name,
                index=index,
            )
        return confirmation

    def deploy(self, spec: ContractSpec) -> DeployedContract:
        """Deploys a single contract and blocks until it is confirmed."""
        index = len(self.result)
        self.states.setdefault(spec.name, DeploymentState.PENDING)

        arguments = self._resolve(spec, index)
        tx_hash = self._submit(spec, index, arguments)
        confirmation = self._await_confirmation(spec, index, tx_hash)

        deployed = DeployedContract(
            spec=spec,
            address=confirmation.address,
            index=index,
            arguments=arguments,
            tx_hash=tx_hash,
            block_number=confirmation.block_number,
        )
        self.result.append(deployed)
        self._set_state(spec, DeploymentState.CONFIRMED)
        click.secho(f"{spec.name} deployed to: {deployed.address}", fg="green")
        return deployed

    def deploy_plan(self, plan: Iterable[ContractSpec]) -> DeploymentResult:
        """Deploys every contract of a plan, in order."""
        specs = list(plan)
        for spec in specs:
            self.states.setdefault(spec.name, DeploymentState.PENDING)

        try:
            for spec in specs:
                if self.cancelled:
                    raise DeploymentCancelled(
                        "deployment cancelled before submission",
                        contract_name=spec.name,
                        index=len(self.result),
                    )
                self.deploy(spec)
        except DeploymentError as e:
            e.result = self.result
            raise

        return self.result


def print_deployment_report(
    result: DeploymentResult, states: Optional["OrderedDict[str, DeploymentState]"] = None
) -> None:
    """Prints the name and address of every deployed contract."""
    click.secho("\nDeployment Information", underline=True)
    click.echo(f"Network Name: {result.context.network_name}")
    click.echo(f"Chain ID: {result.context.chain_id}")
    click.echo(f"Deployer: {result.context.deployer_address}")
    for deployed in result:
        click.secho(f"    {deployed.index + 1}. {deployed.name} {deployed.address}", fg="cyan")

    for name, state in (states or {}).items():
        if state == DeploymentState.CONFIRMED:
            continue
        color = "red" if state == DeploymentState.FAILED else "yellow"
        click.secho(f"    -  {name} {state.value}", fg=color)


def run_deployment(
    network_name: str,
    chain_id: Any,
    account: Any,
    plan: Iterable[ContractSpec],
    backend: ContractBackend,
    confirmation_timeout: Optional[float] = DEFAULT_CONFIRMATION_TIMEOUT,
    autosign: bool = False,
) -> DeploymentResult:
    """
    Resolves the network context and deploys the plan.
    Nothing reaches the backend unless the context resolves.
    """
    context = resolve_network_context(network_name=network_name, chain_id=chain_id, account=account)
    deployer = Deployer(
        context=context,
        backend=backend,
        confirmation_timeout=confirmation_timeout,
        autosign=autosign,
    )
    with deployer.cancel_on_signals():
        try:
            result = deployer.deploy_plan(plan)
        finally:
            print_deployment_report(deployer.result, deployer.states)
    return result
