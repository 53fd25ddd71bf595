"""End-to-end tests: client orchestrator against an in-process server."""

import httpx
import pytest

from psk_exchange import (
    ConstraintPolicy,
    KemProvider,
    KexAlgorithm,
    KexClient,
    KexMetadata,
    KexRpcClient,
    ProtocolError,
    ProviderError,
    PublicMessage,
    RemoteError,
    TransportError,
    format_server_uri,
    generate_psk,
)
from psk_exchange.types import (
    RLWE_NEWHOPE,
    CODE_MCBITS,
    SIDH_CLN16,
    MLWE_KYBER,
    NTRU,
    ML_KEM_768,
    X25519,
)

from conftest import SERVER_URI, RecordingSink

DEFAULT_ALGOS = [RLWE_NEWHOPE, CODE_MCBITS, SIDH_CLN16]
EXOTIC_ALGOS = [MLWE_KYBER, NTRU]


def default_constraints(max_total=3, max_occurrences=1):
    return ConstraintPolicy(
        allowed_algorithms=frozenset(a.tag for a in DEFAULT_ALGOS),
        max_total_messages=max_total,
        max_occurrences_per_algorithm=max_occurrences,
    )


def verify_kex_succeeds(client, algorithms, sink):
    client_secrets = client.exchange(algorithms)
    (_metadata, server_secrets), = sink.calls

    assert len(client_secrets) == len(algorithms)
    assert [s.algorithm for s in client_secrets] == list(algorithms)
    assert client_secrets == server_secrets
    for secret in client_secrets:
        assert secret.payload


def verify_kex_fails(client, algorithms, sink):
    with pytest.raises(RemoteError):
        client.exchange(algorithms)
    assert sink.calls == []


def test_regular_request(make_client, sink):
    verify_kex_succeeds(make_client(), DEFAULT_ALGOS, sink)


def test_exotic_request(make_client, sink):
    verify_kex_succeeds(make_client(), EXOTIC_ALGOS, sink)


def test_null_request(make_client, sink):
    """An empty algorithm list still makes one round trip."""
    assert make_client().exchange([]) == []
    assert len(sink.calls) == 1


def test_regular_request_constrained(make_client, sink):
    verify_kex_succeeds(make_client(default_constraints()), DEFAULT_ALGOS, sink)


def test_only_enabled_algo_allowed(make_client, sink):
    verify_kex_fails(make_client(default_constraints()), EXOTIC_ALGOS, sink)


def test_max_algorithm_constraint(make_client, sink):
    policy = ConstraintPolicy(max_total_messages=2)
    verify_kex_fails(make_client(policy), [RLWE_NEWHOPE] * 3, sink)


def test_max_occurrences_constraint(make_client, sink):
    verify_kex_fails(make_client(default_constraints(max_total=3)), [RLWE_NEWHOPE] * 2, sink)


def test_max_request_size(make_client, sink, provider):
    verify_kex_fails(make_client(ConstraintPolicy(max_request_bytes=64)), DEFAULT_ALGOS, sink)
    assert provider.respond_calls == 0


def test_sink_sees_metadata_and_secret(make_client, sink):
    client_secrets = make_client().exchange([RLWE_NEWHOPE])

    (metadata, server_secrets), = sink.calls
    assert isinstance(metadata, KexMetadata)
    assert metadata.remote_addr[0] == "testclient"
    assert server_secrets[0].payload == client_secrets[0].payload
    assert generate_psk(server_secrets) == generate_psk(client_secrets)


def test_sink_failure_fails_exchange(make_client):
    """The client cannot tell a sink failure from any other server error."""
    failing = RecordingSink(fail=True)
    client = make_client(server_sink=failing)

    with pytest.raises(RemoteError) as sink_failure:
        client.exchange([RLWE_NEWHOPE])
    assert len(failing.calls) == 1

    with pytest.raises(RemoteError) as rejection:
        make_client(default_constraints()).exchange(EXOTIC_ALGOS)
    assert str(sink_failure.value) == str(rejection.value)
    assert sink_failure.value.code == rejection.value.code


def test_real_provider_end_to_end(make_client, sink):
    provider = KemProvider()
    client = make_client(server_provider=provider, client_provider=provider)

    verify_kex_succeeds(client, [MLWE_KYBER, ML_KEM_768, X25519], sink)


def test_initiate_failure_before_network(sink):
    """Nothing is sent when an algorithm cannot be initialized."""
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(500)

    http = httpx.Client(transport=httpx.MockTransport(handler))
    client = KexClient(SERVER_URI, provider=KemProvider(), http_client=http)

    with pytest.raises(ProviderError):
        client.exchange([X25519, RLWE_NEWHOPE])
    assert requests == []


class StubRpc:
    """Replaces the RPC client with a canned reply."""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.requests = []

    def kex(self, messages):
        self.requests.append(list(messages))
        if self.error is not None:
            raise self.error
        return self.reply(messages)


def test_transport_failure_abandons_sessions(provider):
    client = KexClient(SERVER_URI, provider=provider)
    client.rpc = StubRpc(error=TransportError("connection refused"))
    sessions = []
    initiate = provider.initiate

    def tracking_initiate(algorithm):
        session, message = initiate(algorithm)
        sessions.append(session)
        return session, message

    provider.initiate = tracking_initiate

    with pytest.raises(TransportError):
        client.exchange(DEFAULT_ALGOS)
    assert len(sessions) == 3
    assert all(s.consumed for s in sessions)
    assert provider.finalize_calls == 0


def test_response_length_mismatch(provider):
    client = KexClient(SERVER_URI, provider=provider)
    client.rpc = StubRpc(reply=lambda messages: [provider.respond(m.algorithm, m)[0] for m in messages][:-1])

    with pytest.raises(ProtocolError):
        client.exchange(DEFAULT_ALGOS)
    assert provider.finalize_calls == 0


def test_response_algorithm_mismatch(provider):
    client = KexClient(SERVER_URI, provider=provider)
    client.rpc = StubRpc(reply=lambda messages: [provider.respond(NTRU, PublicMessage(NTRU, m.payload))[0]
                                                 for m in messages])

    with pytest.raises(ProtocolError):
        client.exchange([RLWE_NEWHOPE])
    assert provider.finalize_calls == 0


def test_finalize_failure_discards_partial_results(provider):
    def reply(messages):
        replies = [provider.respond(m.algorithm, m)[0] for m in messages]
        replies[1] = PublicMessage(replies[1].algorithm, b"bad")
        return replies

    client = KexClient(SERVER_URI, provider=provider)
    client.rpc = StubRpc(reply=reply)

    with pytest.raises(ProviderError):
        client.exchange(DEFAULT_ALGOS)
    assert provider.finalize_calls == 2


def rpc_client_with(handler):
    return KexRpcClient(SERVER_URI, http_client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_rpc_connection_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError):
        rpc_client_with(handler).kex([])


def test_rpc_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TransportError):
        rpc_client_with(handler).kex([])


def test_rpc_http_error_status():
    with pytest.raises(TransportError):
        rpc_client_with(lambda request: httpx.Response(502)).kex([])


def test_rpc_invalid_json():
    with pytest.raises(TransportError):
        rpc_client_with(lambda request: httpx.Response(200, content=b"<html>")).kex([])


def test_rpc_deeply_nested_json():
    """A reply too deeply nested to decode is a transport failure, not a crash."""
    with pytest.raises(TransportError):
        rpc_client_with(lambda request: httpx.Response(200, content=b"[" * 200000)).kex([])


def test_rpc_malformed_result():
    import json

    def handler(request):
        rpc_id = json.loads(request.content)["id"]
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": rpc_id, "result": {"not": "a list"}})

    with pytest.raises(ProtocolError):
        rpc_client_with(handler).kex([])


def test_rpc_request_format():
    """The request is a JSON-RPC 2.0 kex call with the messages as its only parameter."""
    import json

    seen = []

    def handler(request):
        body = json.loads(request.content)
        seen.append(body)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": []})

    rpc_client_with(handler).kex([PublicMessage(RLWE_NEWHOPE, b"\x01\x02")])

    body, = seen
    assert body["jsonrpc"] == "2.0"
    assert body["method"] == "kex"
    assert body["params"] == [[{"algorithm": "RlweNewhope", "data": [1, 2]}]]


def test_format_server_uri():
    assert format_server_uri("10.99.0.1", 1984) == "http://10.99.0.1:1984/"
    assert format_server_uri("::1", 1984) == "http://[::1]:1984/"
    assert format_server_uri("vpn.example.com", 80) == "http://vpn.example.com:80/"


def test_algorithm_tags_round_trip_the_wire(make_client, sink):
    client_secrets = make_client().exchange([NTRU, RLWE_NEWHOPE, NTRU])

    assert [s.algorithm.tag for s in client_secrets] == [
        KexAlgorithm.NTRU, KexAlgorithm.RLWE_NEWHOPE, KexAlgorithm.NTRU,
    ]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
