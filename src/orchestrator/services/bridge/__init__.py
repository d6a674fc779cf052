"""Cross-chain bridge transports."""

from orchestrator.services.bridge.cctp import (
    AttestationTimeoutError,
    CCTPBridgeTransport,
    CCTPEndpoint,
)
from orchestrator.services.bridge.transport import (
    BridgeResult,
    BridgeState,
    BridgeStep,
    BridgeTransport,
    Chain,
)

__all__ = [
    "BridgeTransport",
    "BridgeResult",
    "BridgeState",
    "BridgeStep",
    "Chain",
    "CCTPBridgeTransport",
    "CCTPEndpoint",
    "AttestationTimeoutError",
]
