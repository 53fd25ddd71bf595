"""Tests for algorithm identifiers and the message wire format."""

import pytest

from psk_exchange import AlgorithmId, KexAlgorithm, PublicMessage, decode_messages, encode_messages
from psk_exchange.types import RLWE_NEWHOPE, CODE_MCBITS, ALGORITHM_NAMES, bytes_from_json


def test_algorithm_equality_includes_seed():
    """Frodo algorithms with different seeds are different algorithms."""
    a = AlgorithmId.frodo(bytes(16))
    b = AlgorithmId.frodo(bytes(16))
    c = AlgorithmId.frodo(bytes(range(16)))

    assert a == b
    assert hash(a) == hash(b)
    assert a != c
    assert len({a, b, c}) == 2
    assert AlgorithmId(KexAlgorithm.RLWE_NEWHOPE) == RLWE_NEWHOPE


def test_seed_only_for_frodo():
    with pytest.raises(ValueError):
        AlgorithmId(KexAlgorithm.RLWE_NEWHOPE, seed=bytes(16))
    with pytest.raises(ValueError):
        AlgorithmId(KexAlgorithm.LWE_FRODO)
    with pytest.raises(ValueError):
        AlgorithmId.frodo(bytes(15))


def test_unit_algorithm_wire_form():
    assert RLWE_NEWHOPE.to_json() == "RlweNewhope"
    assert AlgorithmId.from_json("CodeMcbits") == CODE_MCBITS


def test_frodo_wire_form():
    seed = bytes(range(16))
    frodo = AlgorithmId.frodo(seed)

    assert frodo.to_json() == {"LweFrodo": {"seed": list(seed)}}
    assert AlgorithmId.from_json({"LweFrodo": {"seed": list(seed)}}) == frodo


def test_message_wire_form():
    """Payloads travel as arrays of byte values."""
    msg = PublicMessage(RLWE_NEWHOPE, b"\x00\x01\xff")

    assert msg.to_json() == {"algorithm": "RlweNewhope", "data": [0, 1, 255]}
    assert decode_messages(encode_messages([msg, msg])) == [msg, msg]


@pytest.mark.parametrize("data", [
    {"algorithm": "Unknown", "data": []},
    {"algorithm": "RlweNewhope", "data": [256]},
    {"algorithm": "RlweNewhope", "data": [True, False]},
    {"algorithm": {"LweFrodo": {"seed": [True] * 16}}, "data": []},
    {"algorithm": "RlweNewhope", "data": "AAEC"},
    {"algorithm": "RlweNewhope"},
    {"algorithm": {"LweFrodo": {"seed": [0] * 4}}, "data": []},
    {"algorithm": {"RlweNewhope": {"seed": [0] * 16}}, "data": []},
    ["RlweNewhope", []],
])
def test_decode_rejects_malformed_message(data):
    with pytest.raises(ValueError):
        decode_messages([data])


def test_booleans_are_not_bytes():
    """JSON true and false are not byte values, even though Python treats them as ints."""
    with pytest.raises(ValueError):
        bytes_from_json([1, True, 0])
    assert bytes_from_json([1, 0]) == b"\x01\x00"


def test_decode_requires_array():
    with pytest.raises(ValueError):
        decode_messages({"algorithm": "RlweNewhope", "data": []})


def test_command_line_names():
    assert ALGORITHM_NAMES["newhope"] == RLWE_NEWHOPE
    assert ALGORITHM_NAMES["kyber"].tag is KexAlgorithm.MLWE_KYBER


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
