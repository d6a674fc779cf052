"""Cross-chain vault settlement orchestrator."""

__version__ = "0.1.0"
