"""Bridge transport contract.

A transport moves an amount of the settlement asset from the operator's
custody on one chain to the operator's custody on the other, and reports
what it did step by step.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class Chain(str, Enum):
    """Settlement chains."""

    SOURCE = "source"
    DESTINATION = "destination"


class BridgeState(str, Enum):
    """Terminal or in-flight state of a transfer or one of its steps."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class BridgeStep:
    """One step of a bridge transfer (approve, burn, attestation, mint)."""

    name: str
    state: BridgeState
    tx_hash: str | None = None
    error: str | None = None


@dataclass
class BridgeResult:
    """Outcome of a bridge transfer."""

    state: BridgeState
    steps: list[BridgeStep] = field(default_factory=list)

    def step(self, name: str) -> BridgeStep | None:
        """Get a step by name."""
        return next((s for s in self.steps if s.name == name), None)

    @property
    def mint_tx_hash(self) -> str | None:
        """Hash of the destination mint, if one was submitted."""
        mint = self.step("mint")
        return mint.tx_hash if mint else None

    @property
    def error(self) -> str | None:
        """First step error, if any."""
        return next((s.error for s in self.steps if s.error), None)

    @property
    def is_success(self) -> bool:
        """Transfer succeeded and the mint step confirmed."""
        mint = self.step("mint")
        return (
            self.state == BridgeState.SUCCESS
            and mint is not None
            and mint.state == BridgeState.SUCCESS
        )


class BridgeTransport(ABC):
    """Directional value transfer between the two settlement chains."""

    @abstractmethod
    async def transfer(self, amount: int, source: Chain, destination: Chain) -> BridgeResult:
        """Move ``amount`` base units from ``source`` to ``destination``.

        Implementations report failures in the returned result. An ERROR
        result with a mint tx hash means the mint was submitted but its
        outcome is unknown.
        """
        ...
