"""Constants and types for the PSK exchange protocol."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


# JSON-RPC method carrying the exchange
KEX_METHOD: str = "kex"

# Seed length for the parameterized LWE Frodo algorithm
FRODO_SEED_LEN: int = 16

# WireGuard PSKs are 32 bytes
PSK_LEN: int = 32


class KexAlgorithm(Enum):
    """Tags of the supported key exchange algorithms (wire names as values)."""

    DEFAULT = "Default"
    RLWE_BCNS15 = "RlweBcns15"
    RLWE_NEWHOPE = "RlweNewhope"
    RLWE_MSRLN16 = "RlweMsrln16"
    LWE_FRODO = "LweFrodo"
    SIDH_CLN16 = "SidhCln16"
    SIDH_CLN16_COMPRESSED = "SidhCln16Compressed"
    CODE_MCBITS = "CodeMcbits"
    NTRU = "Ntru"
    SIDH_IQC_REF = "SidhIqcRef"
    MLWE_KYBER = "MlweKyber"
    ML_KEM_512 = "MlKem512"
    ML_KEM_768 = "MlKem768"
    ML_KEM_1024 = "MlKem1024"
    X25519 = "X25519"


@dataclass(frozen=True)
class AlgorithmId:
    """A key exchange algorithm together with its parameters.

    Only ``LweFrodo`` carries a parameter (its seed); every other tag must
    be constructed without one.
    """

    tag: KexAlgorithm
    seed: Optional[bytes] = None

    def __post_init__(self):
        if not isinstance(self.tag, KexAlgorithm):
            raise TypeError(f"tag must be a KexAlgorithm, got {self.tag!r}")
        if self.tag is KexAlgorithm.LWE_FRODO:
            if self.seed is None or len(self.seed) != FRODO_SEED_LEN:
                raise ValueError(f"LweFrodo requires a {FRODO_SEED_LEN} byte seed")
            object.__setattr__(self, "seed", bytes(self.seed))
        elif self.seed is not None:
            raise ValueError(f"{self.tag.value} does not take a seed")

    @classmethod
    def frodo(cls, seed: bytes) -> "AlgorithmId":
        return cls(KexAlgorithm.LWE_FRODO, seed)

    def to_json(self) -> Any:
        """Wire form: the tag name, or ``{"LweFrodo": {"seed": [...]}}``."""
        if self.seed is not None:
            return {self.tag.value: {"seed": list(self.seed)}}
        return self.tag.value

    @classmethod
    def from_json(cls, data: Any) -> "AlgorithmId":
        """Parse the wire form, raises ValueError if malformed."""
        if isinstance(data, str):
            return cls(KexAlgorithm(data))
        if isinstance(data, dict) and len(data) == 1:
            (name, params), = data.items()
            if not isinstance(params, dict) or set(params) != {"seed"}:
                raise ValueError(f"Invalid parameters for {name}")
            return cls(KexAlgorithm(name), bytes_from_json(params["seed"]))
        raise ValueError(f"Invalid algorithm: {data!r}")

    def __str__(self) -> str:
        return self.tag.value


# Unit algorithms, the usual way to refer to them
DEFAULT = AlgorithmId(KexAlgorithm.DEFAULT)
RLWE_BCNS15 = AlgorithmId(KexAlgorithm.RLWE_BCNS15)
RLWE_NEWHOPE = AlgorithmId(KexAlgorithm.RLWE_NEWHOPE)
RLWE_MSRLN16 = AlgorithmId(KexAlgorithm.RLWE_MSRLN16)
SIDH_CLN16 = AlgorithmId(KexAlgorithm.SIDH_CLN16)
SIDH_CLN16_COMPRESSED = AlgorithmId(KexAlgorithm.SIDH_CLN16_COMPRESSED)
CODE_MCBITS = AlgorithmId(KexAlgorithm.CODE_MCBITS)
NTRU = AlgorithmId(KexAlgorithm.NTRU)
SIDH_IQC_REF = AlgorithmId(KexAlgorithm.SIDH_IQC_REF)
MLWE_KYBER = AlgorithmId(KexAlgorithm.MLWE_KYBER)
ML_KEM_512 = AlgorithmId(KexAlgorithm.ML_KEM_512)
ML_KEM_768 = AlgorithmId(KexAlgorithm.ML_KEM_768)
ML_KEM_1024 = AlgorithmId(KexAlgorithm.ML_KEM_1024)
X25519 = AlgorithmId(KexAlgorithm.X25519)

# Command line names
ALGORITHM_NAMES: Dict[str, AlgorithmId] = {
    "bcns15": RLWE_BCNS15,
    "newhope": RLWE_NEWHOPE,
    "msrln16": RLWE_MSRLN16,
    "sidhcln16": SIDH_CLN16,
    "sidhcln16_compressed": SIDH_CLN16_COMPRESSED,
    "mcbits": CODE_MCBITS,
    "ntru": NTRU,
    "kyber": MLWE_KYBER,
    "mlkem512": ML_KEM_512,
    "mlkem768": ML_KEM_768,
    "mlkem1024": ML_KEM_1024,
    "x25519": X25519,
}

DEFAULT_CLIENT_ALGORITHMS: List[AlgorithmId] = [MLWE_KYBER, ML_KEM_768, X25519]


def bytes_from_json(data: Any) -> bytes:
    """Decode a JSON array of byte values."""
    if not isinstance(data, list):
        raise ValueError("Expected an array of bytes")
    if any(isinstance(b, bool) for b in data):
        raise ValueError("Invalid byte array: booleans are not bytes")
    try:
        return bytes(data)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid byte array: {e}") from e


@dataclass(frozen=True)
class PublicMessage:
    """Public message of one key exchange: initiator or responder side."""

    algorithm: AlgorithmId
    payload: bytes = field(repr=False)

    def to_json(self) -> Dict[str, Any]:
        return {"algorithm": self.algorithm.to_json(), "data": list(self.payload)}

    @classmethod
    def from_json(cls, data: Any) -> "PublicMessage":
        if not isinstance(data, dict) or set(data) != {"algorithm", "data"}:
            raise ValueError("Invalid message")
        return cls(AlgorithmId.from_json(data["algorithm"]), bytes_from_json(data["data"]))


@dataclass(frozen=True)
class SharedSecret:
    """Shared secret derived from one completed key exchange."""

    algorithm: AlgorithmId
    payload: bytes = field(repr=False)


def encode_messages(messages: Sequence[PublicMessage]) -> List[Dict[str, Any]]:
    """Serialize an exchange request or response."""
    return [msg.to_json() for msg in messages]


def decode_messages(data: Any) -> List[PublicMessage]:
    """Deserialize an exchange request or response, raises ValueError if malformed."""
    if not isinstance(data, list):
        raise ValueError("Expected an array of messages")
    return [PublicMessage.from_json(item) for item in data]
