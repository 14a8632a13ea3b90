from pathlib import Path

import click

from staking_deployment.constants import DEFAULT_CONFIRMATION_TIMEOUT
from staking_deployment.types import ChecksumAddress, MinInt

params_filepath_option = click.option(
    "--params-filepath",
    "-p",
    help="Filepath of the deployment plan YAML.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)

confirmation_timeout_option = click.option(
    "--confirmation-timeout",
    "-t",
    help="Seconds to wait for each deployment to be confirmed.",
    type=MinInt(1),
    default=DEFAULT_CONFIRMATION_TIMEOUT,
    show_default=True,
)

artifacts_dir_option = click.option(
    "--artifacts-dir",
    help="Directory of compiled hardhat artifacts, e.g. build/artifacts. "
    "Defaults to the contracts of the ape project.",
    type=click.Path(file_okay=False, exists=True, path_type=Path),
    required=False,
)

token_address_option = click.option(
    "--token-address",
    help="Overrides the TOKEN_ADDRESS constant of the deployment plan.",
    type=ChecksumAddress(),
    required=False,
)

registry_filepath_option = click.option(
    "--registry-filepath",
    "-o",
    help="Filepath of the output registry; overrides the plan's artifacts section.",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Deploy without asking for confirmation of each contract.",
    is_flag=True,
    default=False,
)
