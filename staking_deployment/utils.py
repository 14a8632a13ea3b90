import json
from pathlib import Path
from typing import Dict

import yaml

from staking_deployment.constants import ARTIFACTS_DIR


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the registry file for a deployment plan."""
    artifact_config = config.get("artifacts") or {}
    artifact_dir = Path(artifact_config.get("dir", ARTIFACTS_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise ValueError("artifact filename is not set in params file.")
    return artifact_dir / filename


def find_hardhat_artifact(artifacts_dir: Path, contract_name: str) -> Path:
    """
    Finds the compiled hardhat artifact for a contract,
    e.g. build/artifacts/src/StakeCore.sol/StakeCore.json
    """
    matches = sorted(Path(artifacts_dir).rglob(f"{contract_name}.json"))
    if not matches:
        raise ValueError(f"No hardhat artifact found for '{contract_name}' in {artifacts_dir}.")
    if len(matches) != 1:
        raise ValueError(
            f"Hardhat artifact for '{contract_name}' is ambiguous - "
            f"expected exactly one, got {len(matches)}"
        )
    return matches[0]
