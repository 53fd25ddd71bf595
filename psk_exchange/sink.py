"""Notification sinks receiving the secrets of each completed server side exchange."""

import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

from .types import SharedSecret
from .psk import generate_psk
from .error import InvalidPeer, SinkError
from .logger import get_logger

logger = get_logger(__name__)


class NotificationSink(ABC):
    """Side effect run once per exchange, before the response is sent.

    Raising from ``notify`` fails the exchange for the client.
    """

    @abstractmethod
    def notify(self, metadata: Any, secrets: List[SharedSecret]) -> None:
        ...


class CallbackSink(NotificationSink):
    """Adapts a plain function ``f(metadata, secrets)``.

    Exceptions from the function are wrapped in SinkError.
    """

    def __init__(self, callback: Callable[[Any, List[SharedSecret]], None]):
        self.callback = callback

    def notify(self, metadata: Any, secrets: List[SharedSecret]) -> None:
        try:
            self.callback(metadata, secrets)
        except SinkError:
            raise
        except Exception as e:
            raise SinkError(f"Error in kex callback: {e}") from e


class ScriptSink(NotificationSink):
    """
    Installs the PSK by running ``script <peer public key> <psk>``.

    Metadata must carry the WireGuard peer the request came from,
    see ``WireguardPeerExtractor``.
    """

    def __init__(self, script: Union[str, Path], timeout: Optional[float] = None):
        self.script = Path(script)
        self.timeout = timeout

    def notify(self, metadata: Any, secrets: List[SharedSecret]) -> None:
        peer = getattr(metadata, "peer", None)
        if peer is None:
            raise InvalidPeer("No information about this wireguard peer")

        psk = generate_psk(secrets)
        try:
            result = subprocess.run(
                [str(self.script), peer.public_key, psk],
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise SinkError(f"Unable to run script {self.script}: {e}") from e

        if result.returncode != 0:
            raise SinkError(f"Script {self.script} exited with status {result.returncode}")
        logger.info("Negotiated new psk for %s", peer.public_key)
