"""Key exchange primitives: provider interface, sessions and the KEM backed provider."""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from kyber_py.kyber import Kyber768
from kyber_py.ml_kem import ML_KEM_512, ML_KEM_768, ML_KEM_1024
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey

from .types import AlgorithmId, KexAlgorithm, PublicMessage, SharedSecret
from .error import ProviderError, SessionConsumed


class ExchangeSession:
    """Initiator state of one key exchange, consumed exactly once by finalize."""

    def __init__(self, message: PublicMessage, private: bytes):
        self._lock = threading.Lock()
        self._message = message
        self._private: Optional[bytearray] = bytearray(private)

    @property
    def algorithm(self) -> AlgorithmId:
        return self._message.algorithm

    @property
    def message(self) -> PublicMessage:
        """The initiator message to send to the responder."""
        return self._message

    @property
    def consumed(self) -> bool:
        with self._lock:
            return self._private is None

    def take(self) -> bytes:
        """
        Hand the private state over to the caller and invalidate the session.

        Raises:
            SessionConsumed: If the session was already taken or discarded
        """
        with self._lock:
            if self._private is None:
                raise SessionConsumed(f"{self.algorithm} session already used")
            private = bytes(self._private)
            self._wipe()
            return private

    def discard(self) -> None:
        """Abandon the session, overwriting its private state."""
        with self._lock:
            if self._private is not None:
                self._wipe()

    def _wipe(self) -> None:
        # Python doesn't guarantee memory clearing, but we overwrite anyway
        for i in range(len(self._private)):
            self._private[i] = 0
        self._private = None

    def __repr__(self) -> str:
        state = "consumed" if self.consumed else "open"
        return f"ExchangeSession({self.algorithm}, {state})"


class KexProvider(ABC):
    """Per-algorithm key exchange primitives."""

    @abstractmethod
    def initiate(self, algorithm: AlgorithmId) -> Tuple[ExchangeSession, PublicMessage]:
        """Start an exchange as initiator."""

    @abstractmethod
    def respond(self, algorithm: AlgorithmId, message: PublicMessage) -> Tuple[PublicMessage, SharedSecret]:
        """Answer an initiator message, deriving the shared secret."""

    @abstractmethod
    def finalize(self, session: ExchangeSession, message: PublicMessage) -> SharedSecret:
        """Consume the session with the responder message, deriving the shared secret."""


class KexBackend(ABC):
    """Raw key agreement for a single algorithm."""

    @abstractmethod
    def keygen(self) -> Tuple[bytes, bytes]:
        """Return (public message payload, private state)."""

    @abstractmethod
    def respond(self, public: bytes) -> Tuple[bytes, bytes]:
        """Return (responder payload, shared secret)."""

    @abstractmethod
    def finalize(self, private: bytes, reply: bytes) -> bytes:
        """Return the shared secret."""


class KemBackend(KexBackend):
    """
    Key exchange on top of a KEM.

    The initiator message is an encapsulation key, the responder
    encapsulates to it and answers with the ciphertext.
    """

    def __init__(self, kem, ek_len: int, ct_len: int):
        self.kem = kem
        self.ek_len = ek_len
        self.ct_len = ct_len

    def keygen(self) -> Tuple[bytes, bytes]:
        ek, dk = self.kem.keygen()
        return ek, dk

    def respond(self, public: bytes) -> Tuple[bytes, bytes]:
        if len(public) != self.ek_len:
            raise ValueError(f"encapsulation key must be {self.ek_len} bytes, got {len(public)}")
        shared_secret, ciphertext = self.kem.encaps(public)
        return ciphertext, shared_secret

    def finalize(self, private: bytes, reply: bytes) -> bytes:
        if len(reply) != self.ct_len:
            raise ValueError(f"ciphertext must be {self.ct_len} bytes, got {len(reply)}")
        return self.kem.decaps(private, reply)


class X25519Backend(KexBackend):
    """Classical ephemeral X25519 Diffie-Hellman."""

    def keygen(self) -> Tuple[bytes, bytes]:
        private_key = X25519PrivateKey.generate()
        return private_key.public_key().public_bytes_raw(), private_key.private_bytes_raw()

    def respond(self, public: bytes) -> Tuple[bytes, bytes]:
        private_key = X25519PrivateKey.generate()
        shared_secret = private_key.exchange(X25519PublicKey.from_public_bytes(public))
        return private_key.public_key().public_bytes_raw(), shared_secret

    def finalize(self, private: bytes, reply: bytes) -> bytes:
        private_key = X25519PrivateKey.from_private_bytes(private)
        return private_key.exchange(X25519PublicKey.from_public_bytes(reply))


_ML_KEM_768 = KemBackend(ML_KEM_768, ek_len=1184, ct_len=1088)

BACKENDS: Dict[KexAlgorithm, KexBackend] = {
    KexAlgorithm.DEFAULT: _ML_KEM_768,
    KexAlgorithm.MLWE_KYBER: KemBackend(Kyber768, ek_len=1184, ct_len=1088),
    KexAlgorithm.ML_KEM_512: KemBackend(ML_KEM_512, ek_len=800, ct_len=768),
    KexAlgorithm.ML_KEM_768: _ML_KEM_768,
    KexAlgorithm.ML_KEM_1024: KemBackend(ML_KEM_1024, ek_len=1568, ct_len=1568),
    KexAlgorithm.X25519: X25519Backend(),
}


class KemProvider(KexProvider):
    """Provider backed by kyber-py and cryptography.

    Algorithms without a backend in ``backends`` fail to initialize.
    """

    def __init__(self, backends: Optional[Dict[KexAlgorithm, KexBackend]] = None):
        self.backends = dict(BACKENDS if backends is None else backends)

    def supports(self, algorithm: AlgorithmId) -> bool:
        return algorithm.tag in self.backends

    def _backend(self, algorithm: AlgorithmId) -> KexBackend:
        try:
            return self.backends[algorithm.tag]
        except KeyError:
            raise ProviderError(f"No backend for algorithm {algorithm}") from None

    def initiate(self, algorithm: AlgorithmId) -> Tuple[ExchangeSession, PublicMessage]:
        backend = self._backend(algorithm)
        try:
            public, private = backend.keygen()
        except (ValueError, TypeError) as e:
            raise ProviderError(f"{algorithm} key generation failed: {e}") from e
        message = PublicMessage(algorithm, public)
        return ExchangeSession(message, private), message

    def respond(self, algorithm: AlgorithmId, message: PublicMessage) -> Tuple[PublicMessage, SharedSecret]:
        if message.algorithm != algorithm:
            raise ProviderError(f"Message for {message.algorithm} given to {algorithm}")
        backend = self._backend(algorithm)
        try:
            reply, shared_secret = backend.respond(message.payload)
        except (ValueError, TypeError) as e:
            raise ProviderError(f"Malformed {algorithm} initiator message: {e}") from e
        return PublicMessage(algorithm, reply), SharedSecret(algorithm, shared_secret)

    def finalize(self, session: ExchangeSession, message: PublicMessage) -> SharedSecret:
        algorithm = session.algorithm
        if message.algorithm != algorithm:
            session.discard()
            raise ProviderError(f"Message for {message.algorithm} given to {algorithm} session")
        backend = self._backend(algorithm)
        private = session.take()
        try:
            shared_secret = backend.finalize(private, message.payload)
        except (ValueError, TypeError) as e:
            raise ProviderError(f"Malformed {algorithm} responder message: {e}") from e
        return SharedSecret(algorithm, shared_secret)
