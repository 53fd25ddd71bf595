"""
psk-exchange: quantum-safe pre-shared keys over JSON-RPC

Two parties run one or more post-quantum key exchanges in a single RPC
round trip and hash the resulting shared secrets into a WireGuard PSK.

Features:
- Several algorithms per exchange, combined with SHA-512/256
- Server side admission control: request size, allowed algorithms,
  message count and per-algorithm occurrence limits
- Pluggable key exchange provider, with a built-in one on ML-KEM,
  Kyber768 and X25519
- Pluggable notification sink, e.g. a script installing the PSK on the
  WireGuard peer the request came from

The PSK stays secure as long as at least one of the algorithms used does.
"""

__version__ = "0.1.0"

from .types import (
    KEX_METHOD,
    FRODO_SEED_LEN,
    PSK_LEN,
    ALGORITHM_NAMES,
    DEFAULT_CLIENT_ALGORITHMS,
    KexAlgorithm,
    AlgorithmId,
    PublicMessage,
    SharedSecret,
    encode_messages,
    decode_messages,
)
from .provider import ExchangeSession, KexProvider, KexBackend, KemBackend, X25519Backend, KemProvider
from .constraints import ConstraintPolicy, check
from .psk import combine, generate_psk
from .sink import NotificationSink, CallbackSink, ScriptSink
from .metadata import KexMetadata, Peer, remote_address_metadata
from .dispatcher import Dispatcher, ExchangeState
from .client import KexClient, KexRpcClient, establish_psk, format_server_uri
from .server import create_app, run_server
from .wg import WireguardPeerExtractor, get_peers, parse_peers
from .error import (
    PskExchangeError,
    TransportError,
    RemoteError,
    ConstraintViolation,
    ProviderError,
    SessionConsumed,
    ProtocolError,
    SinkError,
    InvalidPeer,
    ConfigError,
)

__all__ = [
    # Constants
    "KEX_METHOD",
    "FRODO_SEED_LEN",
    "PSK_LEN",
    "ALGORITHM_NAMES",
    "DEFAULT_CLIENT_ALGORITHMS",
    # Types
    "KexAlgorithm",
    "AlgorithmId",
    "PublicMessage",
    "SharedSecret",
    "encode_messages",
    "decode_messages",
    # Provider
    "ExchangeSession",
    "KexProvider",
    "KexBackend",
    "KemBackend",
    "X25519Backend",
    "KemProvider",
    # Constraints
    "ConstraintPolicy",
    "check",
    # PSK
    "combine",
    "generate_psk",
    # Server
    "NotificationSink",
    "CallbackSink",
    "ScriptSink",
    "KexMetadata",
    "Peer",
    "remote_address_metadata",
    "Dispatcher",
    "ExchangeState",
    "create_app",
    "run_server",
    "WireguardPeerExtractor",
    "get_peers",
    "parse_peers",
    # Client
    "KexClient",
    "KexRpcClient",
    "establish_psk",
    "format_server_uri",
    # Errors
    "PskExchangeError",
    "TransportError",
    "RemoteError",
    "ConstraintViolation",
    "ProviderError",
    "SessionConsumed",
    "ProtocolError",
    "SinkError",
    "InvalidPeer",
    "ConfigError",
]
