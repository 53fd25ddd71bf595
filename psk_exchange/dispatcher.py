"""Server side of the exchange: validate, respond, notify."""

from enum import Enum
from typing import Any, List, Optional, Sequence

from .types import PublicMessage, SharedSecret
from .constraints import ConstraintPolicy
from .provider import KexProvider
from .sink import NotificationSink
from .error import ConstraintViolation, ProviderError, SinkError
from .logger import get_logger

logger = get_logger(__name__)


class ExchangeState(Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    RESPONDED = "responded"
    SINK_INVOKED = "sink_invoked"
    COMPLETED = "completed"
    REJECTED = "rejected"
    ABORTED = "aborted"


class Dispatcher:
    """
    Answers exchange requests as responder.

    Holds no per-request state: the policy is immutable, so one dispatcher
    serves any number of concurrent requests.
    """

    def __init__(
        self,
        provider: KexProvider,
        sink: NotificationSink,
        policy: Optional[ConstraintPolicy] = None,
    ):
        self.provider = provider
        self.sink = sink
        self.policy = policy or ConstraintPolicy()

    def handle(
        self,
        metadata: Any,
        request: Sequence[PublicMessage],
        request_size: Optional[int] = None,
    ) -> List[PublicMessage]:
        """
        Run one exchange as responder.

        Args:
            metadata: Transport derived value, handed to the sink unchanged
            request: Initiator messages, in order
            request_size: Serialized size of the request in bytes, if known

        Returns:
            Responder messages, one per initiator message, in order

        Raises:
            ConstraintViolation: Request rejected by the policy
            ProviderError: A key exchange primitive failed
            SinkError: The sink rejected the result
        """
        state = ExchangeState.RECEIVED
        algorithms = [msg.algorithm for msg in request]

        rules = self.policy.violations(algorithms, request_size)
        if rules:
            state = ExchangeState.REJECTED
            logger.warning("Exchange %s for %s: %s", state.value, metadata, "; ".join(rules))
            raise ConstraintViolation(rules)
        state = ExchangeState.VALIDATED

        try:
            replies, secrets = self._respond(request)
        except ProviderError as e:
            logger.error("Exchange %s for %s in state %s: %s",
                         ExchangeState.ABORTED.value, metadata, state.value, e)
            raise
        state = ExchangeState.RESPONDED

        # Response is withheld until the sink returns
        try:
            state = ExchangeState.SINK_INVOKED
            self.sink.notify(metadata, secrets)
        except Exception as e:
            logger.error("Exchange %s for %s in state %s: %s",
                         ExchangeState.ABORTED.value, metadata, state.value, e)
            if isinstance(e, SinkError):
                raise
            raise SinkError(f"Notification sink failed: {e}") from e

        state = ExchangeState.COMPLETED
        logger.info(
            "Exchange %s for %s: %s, %s",
            state.value, metadata, ", ".join(str(a) for a in algorithms) or "no algorithms",
            f"{request_size} bytes" if request_size is not None else "size unknown",
        )
        return replies

    def _respond(self, request: Sequence[PublicMessage]):
        replies: List[PublicMessage] = []
        secrets: List[SharedSecret] = []
        for msg in request:
            reply, secret = self.provider.respond(msg.algorithm, msg)
            replies.append(reply)
            secrets.append(secret)
        return replies, secrets
