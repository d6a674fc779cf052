"""Base class for intent event handlers."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone

from orchestrator.infrastructure.blockchain.events import EventType, ParsedEvent

logger = logging.getLogger(__name__)


@dataclass
class HandlerStats:
    """Statistics for an event handler."""

    handler_name: str
    event_type: EventType
    events_processed: int = 0
    events_failed: int = 0
    retries_processed: int = 0
    total_processing_time_ms: float = 0.0
    last_processed: datetime | None = None
    last_error: str = ""


class EventHandlerBase(ABC):
    """Base class for event handlers."""

    def __init__(self, event_type: EventType):
        """Initialize handler.

        Args:
            event_type: Type of events this handler processes
        """
        self.event_type = event_type
        self.stats = HandlerStats(
            handler_name=self.__class__.__name__,
            event_type=event_type,
        )

    @abstractmethod
    async def handle(self, event: ParsedEvent) -> None:
        """Handle an event.

        Args:
            event: Parsed blockchain event
        """
        pass

    async def __call__(self, event: ParsedEvent) -> None:
        """Process event with timing and error handling."""
        start_time = datetime.now(timezone.utc)

        try:
            await self.handle(event)
            self.stats.events_processed += 1
            self.stats.last_processed = datetime.now(timezone.utc)

        except Exception as e:
            self.stats.events_failed += 1
            self.stats.last_error = str(e)
            logger.error(f"{self.__class__.__name__} failed: {e}")
            raise

        finally:
            elapsed = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
            self.stats.total_processing_time_ms += elapsed
