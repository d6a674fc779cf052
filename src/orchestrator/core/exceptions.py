"""Exception hierarchy shared by the settlement services."""


class OrchestratorError(Exception):
    """Base class for all orchestrator errors."""


class ConfigurationError(OrchestratorError):
    """Required configuration is missing or invalid."""


class SettlementError(OrchestratorError):
    """A settlement step could not be completed."""

    def __init__(self, message: str, *, step: str | None = None, tx_hash: str | None = None):
        super().__init__(message)
        self.step = step
        self.tx_hash = tx_hash


class StepExecutionError(SettlementError):
    """A chain-mutating call failed or reverted."""


class StepTimeoutError(SettlementError):
    """A submitted transaction was not confirmed within the bounded wait."""


class InsufficientBalanceError(SettlementError):
    """Funds required by a step are not where the step expects them."""


class BridgeProtocolError(SettlementError):
    """The bridge transfer failed or could not be verified.

    Bridge transfers burn on the source chain before minting on the
    destination, so these are never retried automatically.
    """
