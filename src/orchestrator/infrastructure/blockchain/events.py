"""Event parsing for settlement intent events."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from eth_abi import decode
from web3 import Web3

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Intent events emitted by the savings vault."""

    DEPOSIT_INTENT = "BridgeToDestinationRequested"
    REDEMPTION_INTENT = "BridgeFromDestinationRequested"


# Event signatures (for topic calculation)
EVENT_SIGNATURES: dict[EventType, str] = {
    # BridgeToDestinationRequested(address indexed user, uint256 amount, bytes32 indexed requestId)
    EventType.DEPOSIT_INTENT: "BridgeToDestinationRequested(address,uint256,bytes32)",
    # BridgeFromDestinationRequested(bytes32 indexed requestId, uint256 amount)
    EventType.REDEMPTION_INTENT: "BridgeFromDestinationRequested(bytes32,uint256)",
}


def to_hex(value: Any) -> str:
    """Normalise bytes / HexBytes / str to a lowercase 0x-prefixed hex string."""
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value).lower()
    text = str(value).lower()
    return text if text.startswith("0x") else f"0x{text}"


def event_topic(event_type: EventType) -> str:
    """Get topic0 for an event type."""
    return to_hex(Web3.keccak(text=EVENT_SIGNATURES[event_type]))


@dataclass
class ParsedEvent:
    """Parsed blockchain event."""

    event_type: EventType
    tx_hash: str
    block_number: int
    log_index: int
    block_timestamp: datetime
    contract_address: str
    args: dict[str, Any]
    raw_data: dict[str, Any]


class EventParser:
    """Parses vault intent event logs."""

    def __init__(self):
        """Initialize event parser."""
        self.topic_to_event: dict[str, EventType] = {
            event_topic(event_type): event_type for event_type in EVENT_SIGNATURES
        }

    def parse_log(
        self, log: dict[str, Any], block_timestamp: int | None = None
    ) -> ParsedEvent | None:
        """Parse a single log entry.

        Args:
            log: Raw log entry from eth_getLogs
            block_timestamp: Block timestamp (if known)

        Returns:
            ParsedEvent or None if not recognized
        """
        topics = log.get("topics", [])
        if not topics:
            return None

        topic0 = to_hex(topics[0])
        event_type = self.topic_to_event.get(topic0)

        if not event_type:
            logger.debug(f"Unknown event topic: {topic0}")
            return None

        try:
            args = self._decode_event_args(event_type, log)
        except Exception as e:
            logger.error(f"Failed to decode event {event_type.value}: {e}")
            return None

        address = log.get("address", "")
        if hasattr(address, "lower"):
            address = address.lower()

        timestamp = (
            datetime.fromtimestamp(block_timestamp, tz=timezone.utc)
            if block_timestamp
            else datetime.now(timezone.utc)
        )

        return ParsedEvent(
            event_type=event_type,
            tx_hash=to_hex(log.get("transactionHash", b"")),
            block_number=log.get("blockNumber", 0),
            log_index=log.get("logIndex", 0),
            block_timestamp=timestamp,
            contract_address=address,
            args=args,
            raw_data=log,
        )

    def _decode_event_args(
        self, event_type: EventType, log: dict[str, Any]
    ) -> dict[str, Any]:
        """Decode event arguments based on event type."""
        topics = log.get("topics", [])
        data = log.get("data", b"")

        if isinstance(data, str):
            data = bytes.fromhex(data[2:] if data.startswith("0x") else data)

        if event_type == EventType.DEPOSIT_INTENT:
            return self._decode_deposit_intent(topics, bytes(data))
        return self._decode_redemption_intent(topics, bytes(data))

    def _decode_deposit_intent(self, topics: list, data: bytes) -> dict[str, Any]:
        """Decode BridgeToDestinationRequested."""
        if len(topics) < 3:
            raise ValueError("deposit intent log is missing indexed topics")
        (amount,) = decode(["uint256"], data)
        return {
            "user": self._decode_address(topics[1]),
            "amount": amount,
            "request_id": to_hex(topics[2]),
        }

    def _decode_redemption_intent(self, topics: list, data: bytes) -> dict[str, Any]:
        """Decode BridgeFromDestinationRequested."""
        if len(topics) < 2:
            raise ValueError("redemption intent log is missing indexed topics")
        (amount,) = decode(["uint256"], data)
        return {
            "request_id": to_hex(topics[1]),
            "amount": amount,
        }

    def _decode_address(self, topic: Any) -> str:
        """Decode address from indexed topic."""
        # Address is last 40 characters (20 bytes)
        return Web3.to_checksum_address("0x" + to_hex(topic)[-40:])

    def parse_logs(
        self,
        logs: list[dict[str, Any]],
        block_timestamps: dict[int, int] | None = None,
    ) -> list[ParsedEvent]:
        """Parse multiple logs, keeping chain order."""
        events = []
        for log in logs:
            block_number = log.get("blockNumber", 0)
            timestamp = block_timestamps.get(block_number) if block_timestamps else None

            event = self.parse_log(log, timestamp)
            if event:
                events.append(event)

        events.sort(key=lambda e: (e.block_number, e.log_index))
        return events
