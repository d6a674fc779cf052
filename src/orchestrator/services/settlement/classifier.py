"""Settlement failure classification.

Maps a failure raised by a settlement step to the retry policy applied to
the request: retry from the last committed step, or stop for good.
"""

from dataclasses import dataclass
from enum import Enum

from orchestrator.core.exceptions import BridgeProtocolError, InsufficientBalanceError


class FailureClass(str, Enum):
    """How a failed settlement attempt is treated."""

    INSUFFICIENT_BALANCE = "insufficient_balance"
    BRIDGE_FAILURE = "bridge_failure"
    RETRYABLE = "retryable"


INSUFFICIENT_MARKERS = ("insufficient",)
BRIDGE_MARKERS = ("bridge", "cctp", "attestation", "mint", "burn")


@dataclass(frozen=True)
class FailureDecision:
    """Outcome of classifying one failed attempt."""

    failure_class: FailureClass
    retry_count: int
    permanent: bool


def _messages(exc: BaseException) -> list[str]:
    """Lowercased messages of ``exc`` and its explicit causes."""
    messages = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        messages.append(str(current).lower())
        current = current.__cause__
    return messages


def classify_failure(exc: BaseException) -> FailureClass:
    """Classify a settlement failure.

    Args:
        exc: Exception raised by a pipeline step

    Returns:
        FailureClass for the retry policy
    """
    messages = _messages(exc)

    if isinstance(exc, InsufficientBalanceError) or any(
        marker in message for message in messages for marker in INSUFFICIENT_MARKERS
    ):
        return FailureClass.INSUFFICIENT_BALANCE

    if isinstance(exc, BridgeProtocolError) or any(
        marker in message for message in messages for marker in BRIDGE_MARKERS
    ):
        return FailureClass.BRIDGE_FAILURE

    return FailureClass.RETRYABLE


def decide(exc: BaseException, current_retry_count: int, max_retries: int) -> FailureDecision:
    """Compute the retry count and finality of a failed attempt.

    Terminal classes jump straight to ``max_retries`` so no later pass picks
    the request up again.
    """
    failure_class = classify_failure(exc)
    if failure_class != FailureClass.RETRYABLE:
        return FailureDecision(failure_class, max_retries, True)

    retry_count = current_retry_count + 1
    return FailureDecision(failure_class, retry_count, retry_count >= max_retries)
