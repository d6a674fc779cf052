"""Blockchain infrastructure module."""

from orchestrator.infrastructure.blockchain.client import ChainClient, EVMClient
from orchestrator.infrastructure.blockchain.contracts import (
    ERC20_ABI,
    MESSAGE_TRANSMITTER_ABI,
    TOKEN_MESSENGER_ABI,
    TREASURY_ABI,
    VAULT_ABI,
    ContractManager,
)
from orchestrator.infrastructure.blockchain.events import (
    EventParser,
    EventType,
    ParsedEvent,
    event_topic,
)
from orchestrator.infrastructure.blockchain.transaction import (
    TransactionResult,
    TransactionService,
    TransactionStatus,
)

__all__ = [
    # Client
    "ChainClient",
    "EVMClient",
    # Contracts
    "ContractManager",
    "VAULT_ABI",
    "TREASURY_ABI",
    "ERC20_ABI",
    "TOKEN_MESSENGER_ABI",
    "MESSAGE_TRANSMITTER_ABI",
    # Events
    "EventParser",
    "EventType",
    "ParsedEvent",
    "event_topic",
    # Transactions
    "TransactionService",
    "TransactionResult",
    "TransactionStatus",
]
