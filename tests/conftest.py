"""Shared fixtures: a deterministic provider for any algorithm and an in-process server."""

import hashlib
import os
import threading

import pytest
from fastapi.testclient import TestClient

from psk_exchange import (
    CallbackSink,
    ConstraintPolicy,
    Dispatcher,
    ExchangeSession,
    KexClient,
    KexProvider,
    ProviderError,
    PublicMessage,
    SharedSecret,
    create_app,
)

SERVER_URI = "http://testserver/"


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


class HashProvider(KexProvider):
    """
    Toy provider accepting every algorithm tag.

    Not secure: the initiator publishes H(private), the responder a random
    nonce, and both sides derive H(H(private) || nonce).
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.respond_calls = 0
        self.finalize_calls = 0

    def initiate(self, algorithm):
        private = os.urandom(32)
        message = PublicMessage(algorithm, sha256(private))
        return ExchangeSession(message, private), message

    def respond(self, algorithm, message):
        with self._lock:
            self.respond_calls += 1
        if len(message.payload) != 32:
            raise ProviderError(f"Malformed {algorithm} initiator message")
        nonce = os.urandom(32)
        return PublicMessage(algorithm, nonce), SharedSecret(algorithm, sha256(message.payload + nonce))

    def finalize(self, session, message):
        with self._lock:
            self.finalize_calls += 1
        private = session.take()
        if len(message.payload) != 32:
            raise ProviderError(f"Malformed {session.algorithm} responder message")
        return SharedSecret(session.algorithm, sha256(sha256(private) + message.payload))


class RecordingSink(CallbackSink):
    """Sink remembering every (metadata, secrets) it was given."""

    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail
        super().__init__(self._record)

    def _record(self, metadata, secrets):
        self.calls.append((metadata, list(secrets)))
        if self.fail:
            raise RuntimeError("psk could not be installed")


@pytest.fixture
def provider():
    return HashProvider()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_client(provider, sink):
    """Factory for a KexClient talking to an in-process server."""

    def factory(policy=None, server_sink=None, server_provider=None, client_provider=None):
        dispatcher = Dispatcher(server_provider or provider, server_sink or sink, policy or ConstraintPolicy())
        http = TestClient(create_app(dispatcher))
        return KexClient(SERVER_URI, provider=client_provider or provider, http_client=http)

    return factory
