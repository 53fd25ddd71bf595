"""Client side of the exchange: initiate, one RPC round trip, finalize."""

import uuid
from ipaddress import IPv6Address, ip_address
from typing import List, Optional, Sequence

import httpx

from .types import (
    KEX_METHOD,
    DEFAULT_CLIENT_ALGORITHMS,
    AlgorithmId,
    PublicMessage,
    SharedSecret,
    decode_messages,
    encode_messages,
)
from .provider import ExchangeSession, KemProvider, KexProvider
from .psk import generate_psk
from .rpc import RPCRequest, RPCResponse
from .error import ProtocolError, RemoteError, TransportError
from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT: float = 30.0


def format_server_uri(server: str, port: int) -> str:
    """Build the server URI from a host name or IP address and a port."""
    try:
        if isinstance(ip_address(server), IPv6Address):
            server = f"[{server}]"
    except ValueError:
        pass
    return f"http://{server}:{port}/"


class KexRpcClient:
    """JSON-RPC client for the ``kex`` method."""

    def __init__(
        self,
        server_uri: str,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.Client] = None,
    ):
        self.server_uri = server_uri
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def kex(self, messages: Sequence[PublicMessage]) -> List[PublicMessage]:
        """
        Send initiator messages and return the responder messages.

        Raises:
            TransportError: The call failed or got no usable reply
            RemoteError: The server answered with an error
            ProtocolError: The reply does not hold a message array
        """
        request = RPCRequest(method=KEX_METHOD, params=[encode_messages(messages)], id=str(uuid.uuid4()))
        try:
            http_response = self._http.post(self.server_uri, json=request.to_dict())
            http_response.raise_for_status()
            response = RPCResponse.from_dict(http_response.json())
        except httpx.HTTPError as e:
            raise TransportError(f"RPC call to {self.server_uri} failed: {e}") from e
        except (ValueError, RecursionError) as e:
            raise TransportError(f"Invalid RPC response from {self.server_uri}: {e}") from e

        if response.error is not None:
            raise RemoteError(
                f"Server returned an error: {response.error.get('message')}",
                code=response.error["code"],
            )
        if response.id != request.id:
            raise ProtocolError(f"Response id {response.id!r} does not match request {request.id!r}")
        try:
            return decode_messages(response.result)
        except ValueError as e:
            raise ProtocolError(f"Malformed kex result: {e}") from e


class KexClient:
    """
    Runs multi-algorithm key exchanges against one server.

    Each ``exchange`` call owns its sessions, so a client may be used from
    several threads at once.
    """

    def __init__(
        self,
        server_uri: str,
        provider: Optional[KexProvider] = None,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.Client] = None,
    ):
        self.provider = provider or KemProvider()
        self.rpc = KexRpcClient(server_uri, timeout=timeout, http_client=http_client)

    def close(self) -> None:
        self.rpc.close()

    def __enter__(self) -> "KexClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def exchange(self, algorithms: Sequence[AlgorithmId]) -> List[SharedSecret]:
        """
        Agree on one shared secret per algorithm with the server.

        Args:
            algorithms: Algorithms to run, in order; may repeat or be empty

        Returns:
            Shared secrets in the order of ``algorithms``

        Raises:
            ProviderError: A key exchange primitive failed
            TransportError: The RPC call failed
            ProtocolError: The server reply does not match the request
        """
        sessions: List[ExchangeSession] = []
        try:
            for algorithm in algorithms:
                session, _message = self.provider.initiate(algorithm)
                sessions.append(session)

            replies = self.rpc.kex([session.message for session in sessions])
            if len(replies) != len(sessions):
                raise ProtocolError(
                    f"Expected {len(sessions)} messages in response, got {len(replies)}"
                )
            for index, (session, reply) in enumerate(zip(sessions, replies)):
                if reply.algorithm != session.algorithm:
                    raise ProtocolError(
                        f"Response message {index} is for {reply.algorithm}, expected {session.algorithm}"
                    )

            return [self.provider.finalize(session, reply) for session, reply in zip(sessions, replies)]
        finally:
            # Abandon whatever was not finalized
            for session in sessions:
                session.discard()


def establish_psk(
    server_uri: str,
    algorithms: Sequence[AlgorithmId] = DEFAULT_CLIENT_ALGORITHMS,
    timeout: float = DEFAULT_TIMEOUT,
) -> str:
    """Run one exchange and return the resulting base64 PSK."""
    with KexClient(server_uri, timeout=timeout) as client:
        secrets = client.exchange(algorithms)
    logger.debug("Established %d shared secrets with %s", len(secrets), server_uri)
    return generate_psk(secrets)
