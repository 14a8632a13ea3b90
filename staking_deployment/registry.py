import json
from collections import defaultdict
from pathlib import Path
from typing import List, NamedTuple

from eth_typing import ABI, ChecksumAddress
from eth_utils import to_checksum_address

from staking_deployment.backends import ContractBackend
from staking_deployment.orchestrator import DeployedContract, DeploymentResult
from staking_deployment.utils import _load_json

ChainId = int
ContractName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """Represents a single deployed contract in a registry file."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: ABI
    tx_hash: str
    block_number: int
    deployer: str


def _get_entry(
    deployed: DeployedContract, result: DeploymentResult, backend: ContractBackend
) -> RegistryEntry:
    entry = RegistryEntry(
        name=deployed.name,
        address=to_checksum_address(deployed.address),
        abi=backend.get_abi(deployed.spec.container_name),
        chain_id=result.context.chain_id,
        tx_hash=deployed.tx_hash,
        block_number=deployed.block_number,
        deployer=result.context.deployer_address,
    )
    return entry


def _get_entries(result: DeploymentResult, backend: ContractBackend) -> List[RegistryEntry]:
    """Returns a list of registry entries for every confirmed deployment."""
    entries = list()
    for deployed in result:
        entry = _get_entry(deployed=deployed, result=result, backend=backend)
        entries.append(entry)
    return entries


def write_registry(entries: List[RegistryEntry], filepath: Path, silent: bool = False) -> Path:
    """Writes a contract registry to a file."""

    if not entries:
        print("No entries provided.")
        return filepath

    # common order; entries of a run are looked up by name, not position
    entries = sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name))

    data = defaultdict(dict)
    for entry in entries:
        entry_abi = list(entry.abi)
        entry_abi.sort(key=lambda d: (d["type"], d.get("name", "")))

        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": entry_abi,
            "tx_hash": entry.tx_hash,
            "block_number": int(entry.block_number),
            "deployer": entry.deployer,
        }

    # Create the parent directory if it does not exist
    filepath.parent.mkdir(parents=True, exist_ok=True)

    # If the file already exists, attempt to merge the data, if not create a new file
    if filepath.exists():
        if not silent:
            print(f"Updating existing registry at {filepath}.")
        existing_data = _load_json(filepath)

        if any(chain_id in existing_data for chain_id in data):
            filepath = filepath.with_suffix(".unmerged.json")
            if not silent:
                print(
                    "Cannot merge registries with overlapping chain IDs.\n"
                    f"Writing to {filepath} to avoid overwriting existing data."
                )
        else:
            existing_data.update(data)
            data = existing_data
    elif not silent:
        print(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_deployment(
    result: DeploymentResult,
    backend: ContractBackend,
    output_filepath: Path,
) -> Path:
    """Creates a contract registry from the confirmed deployments of a run."""
    entries = _get_entries(result=result, backend=backend)
    output_filepath = write_registry(entries=entries, filepath=output_filepath)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath
