from typing import Any, NamedTuple, Optional

from ape import networks
from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address

from staking_deployment.constants import LOCAL_NETWORK_NAMES
from staking_deployment.exceptions import ConfigurationError, MissingNetworkIdentifier


class NetworkContext(NamedTuple):
    """The network being deployed to and the account signing every deployment."""

    chain_id: int
    network_name: str
    deployer_address: ChecksumAddress


def is_local_network() -> bool:
    return networks.provider.network.name in LOCAL_NETWORK_NAMES


def _validate_chain_id(chain_id: Any) -> int:
    if chain_id is None:
        raise MissingNetworkIdentifier("No network id found")
    if isinstance(chain_id, bool):
        raise ConfigurationError(f"Invalid chain id {chain_id!r}")
    try:
        return int(chain_id)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid chain id {chain_id!r}")


def resolve_network_context(network_name: str, chain_id: Any, account: Any) -> NetworkContext:
    """
    Builds the network context for a deployment run.

    The chain id must be declared; there is no default. The deployer is the
    address of the given account (an ape account or anything with an address).
    """
    chain_id = _validate_chain_id(chain_id)

    address = getattr(account, "address", None)
    if not address or not is_address(address):
        raise ConfigurationError(f"Invalid deployer address {address!r}")

    context = NetworkContext(
        chain_id=chain_id,
        network_name=network_name,
        deployer_address=to_checksum_address(address),
    )
    print(
        f"Network Name: {context.network_name}",
        f"Chain ID: {context.chain_id}",
        f"Deployer: {context.deployer_address}",
        sep="\n",
    )
    return context


def validate_provider_chain_id(declared_chain_id: Optional[int]) -> int:
    """
    Checks the declared chain id against the connected ape provider.
    A mismatch is only tolerated on local networks.
    """
    declared_chain_id = _validate_chain_id(declared_chain_id)
    network = networks.provider.network
    if declared_chain_id != network.chain_id and not is_local_network():
        raise ConfigurationError(
            f"chain_id in params file ({declared_chain_id}) does not match "
            f"chain_id of current network ({network.chain_id})."
        )
    return declared_chain_id
