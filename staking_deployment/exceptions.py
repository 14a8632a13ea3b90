from typing import Optional


class DeploymentError(Exception):
    """Base class for all errors raised while deploying a plan."""

    def __init__(
        self,
        message: str = "",
        contract_name: Optional[str] = None,
        index: Optional[int] = None,
    ):
        super().__init__(message)
        self.contract_name = contract_name
        self.index = index
        # contracts confirmed before the failure, if any
        self.result = None

    def __str__(self) -> str:
        message = super().__str__()
        if self.contract_name is None:
            return message
        if self.index is None:
            return f"{self.contract_name}: {message}"
        return f"{self.contract_name} (#{self.index}): {message}"


class ConfigurationError(DeploymentError):
    """Raised before any network call when the run is misconfigured."""


class MissingNetworkIdentifier(ConfigurationError):
    """Raised when no chain id is available for the selected network."""


class InvalidDeploymentPlan(ConfigurationError):
    """Raised when a deployment plan file is malformed."""


class ArgumentResolutionError(DeploymentError):
    """Raised when a constructor argument cannot be resolved before submission."""


class InvalidConstructorArguments(ArgumentResolutionError):
    """Raised when resolved arguments do not match the constructor ABI."""


class SubmissionError(DeploymentError):
    """Raised when the network rejects a contract creation transaction."""


class ConfirmationError(DeploymentError):
    """Raised when a submitted deployment reverts or is not confirmed in time."""


class DeploymentCancelled(DeploymentError):
    """Raised when the run was cancelled before the next submission."""
