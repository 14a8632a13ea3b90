from enum import Enum
from pathlib import Path

import staking_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(staking_deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

#
# Networks
#

ETHEREUM = "ethereum"
GOERLI = "goerli"
SEPOLIA = "sepolia"

CHAIN_IDS = {
    ETHEREUM: 1,
    GOERLI: 5,
    SEPOLIA: 11155111,
}

SUPPORTED_NETWORKS = list(CHAIN_IDS)

LOCAL_NETWORK_NAMES = ["local"]

#
# Deployment
#

# seconds to wait for a deployment transaction to be mined
DEFAULT_CONFIRMATION_TIMEOUT = 300

# the deployer account variable, i.e. "$deployer"
DEPLOYER_VARIABLE = "deployer"

NULL_ADDRESS = "0x" + "0" * 40


class DeploymentState(Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


# Allowed state transitions for a single contract deployment
DEPLOYMENT_TRANSITIONS = {
    DeploymentState.PENDING: {DeploymentState.SUBMITTED},
    DeploymentState.SUBMITTED: {DeploymentState.CONFIRMED, DeploymentState.FAILED},
    DeploymentState.CONFIRMED: set(),
    DeploymentState.FAILED: set(),
}


class ConfirmationStatus(Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
