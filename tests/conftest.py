import itertools
from collections import OrderedDict
from types import SimpleNamespace

import pytest
from eth_utils import to_checksum_address

from staking_deployment.backends import Confirmation, ContractBackend
from staking_deployment.constants import ConfirmationStatus
from staking_deployment.exceptions import ConfigurationError, SubmissionError
from staking_deployment.networks import NetworkContext
from staking_deployment.params import DeploymentPlan

# Common constants
TOKEN_ADDRESS = "0x46bEE5F8aF3dcff4D6C97993b815785E27cAE80c"
DEPLOYER_ADDRESS = to_checksum_address("0x" + "de" * 20)
SEPOLIA_CHAIN_ID = 11155111

CORE_ABI = [
    {"type": "constructor", "inputs": [], "stateMutability": "nonpayable"},
    {
        "type": "function",
        "name": "lockDays",
        "inputs": [],
        "outputs": [],
        "stateMutability": "view",
    },
]


class FakeBackend(ContractBackend):
    """
    In-memory chain: every submission is mined at a fresh address,
    unless the contract type is set up to be missing, rejected or to fail confirmation.
    """

    def __init__(self, rejected=(), outcomes=None, on_confirmation=None, missing=()):
        self.rejected = set(rejected)
        self.missing = set(missing)
        self.outcomes = outcomes or dict()
        self.on_confirmation = on_confirmation
        self.submissions = list()
        self.waits = list()
        self.validated = list()
        self._pending = dict()
        self._nonce = itertools.count(1)

    def validate_arguments(self, contract_type, arguments):
        if contract_type in self.missing:
            raise ConfigurationError(f"No contract found with name '{contract_type}'.")
        self.validated.append((contract_type, OrderedDict(arguments)))

    def get_abi(self, contract_type):
        return list(CORE_ABI)

    def submit(self, contract_type, arguments):
        self.submissions.append((contract_type, list(arguments)))
        if contract_type in self.rejected:
            raise SubmissionError("insufficient funds for gas * price + value")
        nonce = next(self._nonce)
        tx_hash = "0x" + f"{nonce:064x}"
        self._pending[tx_hash] = (contract_type, nonce)
        return tx_hash

    def await_confirmation(self, tx_hash, timeout):
        self.waits.append((tx_hash, timeout))
        contract_type, nonce = self._pending[tx_hash]
        if self.on_confirmation:
            self.on_confirmation(contract_type)
        status = self.outcomes.get(contract_type, ConfirmationStatus.CONFIRMED)
        if status != ConfirmationStatus.CONFIRMED:
            return Confirmation(status=status, block_number=100 + nonce, reason="simulated")
        return Confirmation(
            status=ConfirmationStatus.CONFIRMED,
            address=to_checksum_address("0x" + f"{0xC0DE0000 + nonce:040x}"),
            block_number=100 + nonce,
        )

    @property
    def submitted_types(self):
        return [contract_type for contract_type, _ in self.submissions]


def stake_config(chain_id=SEPOLIA_CHAIN_ID):
    return {
        "deployment": {"name": "test-stake", "chain_id": chain_id},
        "artifacts": {"dir": "./artifacts/", "filename": "test.json"},
        "constants": {"TOKEN_ADDRESS": TOKEN_ADDRESS},
        "contracts": [
            {
                "Core": {
                    "contract_type": "StakeCore",
                    "constructor": {
                        "tokenAddress": "$TOKEN_ADDRESS",
                        "lockDays": 180,
                        "stakerShare": 60,
                        "installmentCount": 1,
                    },
                }
            },
            {
                "BeneficiaryCore": {
                    "constructor": {
                        "tokenAddress": "$TOKEN_ADDRESS",
                        "ownerAddress": "$deployer",
                        "coreAddress": "$Core",
                    }
                }
            },
        ],
    }


# Fixtures
@pytest.fixture
def config():
    return stake_config()


@pytest.fixture
def plan(config):
    return DeploymentPlan.from_config(config)


@pytest.fixture
def account():
    return SimpleNamespace(address=DEPLOYER_ADDRESS.lower())


@pytest.fixture
def context():
    return NetworkContext(
        chain_id=SEPOLIA_CHAIN_ID, network_name="sepolia", deployer_address=DEPLOYER_ADDRESS
    )


@pytest.fixture
def backend():
    return FakeBackend()
