"""Server admission control over inbound exchange requests."""

from collections import Counter
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Union

from .types import AlgorithmId, KexAlgorithm


@dataclass(frozen=True)
class ConstraintPolicy:
    """Limits a server puts on a single exchange request.

    A field left as ``None`` leaves that dimension unconstrained, so the
    default policy accepts every request.
    """

    max_request_bytes: Optional[int] = None
    allowed_algorithms: Optional[FrozenSet[KexAlgorithm]] = None
    max_total_messages: Optional[int] = None
    # Same threshold for every algorithm
    max_occurrences_per_algorithm: Optional[int] = None

    def __post_init__(self):
        if self.allowed_algorithms is not None:
            object.__setattr__(
                self, "allowed_algorithms", frozenset(_tag(a) for a in self.allowed_algorithms)
            )
        self.validate()

    def validate(self) -> None:
        """Validate the limits, raises ValueError if invalid."""
        for name in ("max_request_bytes", "max_total_messages", "max_occurrences_per_algorithm"):
            value = getattr(self, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")

    def check_size(self, request_size: int) -> bool:
        """Size check alone, usable before the request body is read or decoded."""
        return self.max_request_bytes is None or request_size <= self.max_request_bytes

    def violations(
        self,
        algorithms: Iterable[Union[AlgorithmId, KexAlgorithm]],
        request_size: Optional[int] = None,
    ) -> List[str]:
        """
        Evaluate every rule against a request.

        Args:
            algorithms: Algorithm of each message in the request, in order
            request_size: Serialized request size in bytes, if known

        Returns:
            Description of each violated rule, empty if the request is accepted
        """
        tags = [_tag(a) for a in algorithms]
        rules = []

        if request_size is not None and not self.check_size(request_size):
            rules.append(f"request size {request_size} exceeds {self.max_request_bytes} bytes")

        if self.max_total_messages is not None and len(tags) > self.max_total_messages:
            rules.append(f"{len(tags)} messages exceed max of {self.max_total_messages}")

        if self.allowed_algorithms is not None:
            disallowed = sorted({t.value for t in tags if t not in self.allowed_algorithms})
            if disallowed:
                rules.append("algorithms not allowed: " + ", ".join(disallowed))

        if self.max_occurrences_per_algorithm is not None:
            for tag, count in sorted(Counter(tags).items(), key=lambda item: item[0].value):
                if count > self.max_occurrences_per_algorithm:
                    rules.append(
                        f"{tag.value} occurs {count} times, max is {self.max_occurrences_per_algorithm}"
                    )

        return rules

    def check(
        self,
        algorithms: Iterable[Union[AlgorithmId, KexAlgorithm]],
        request_size: Optional[int] = None,
    ) -> bool:
        """Return True if the request meets every constraint."""
        return not self.violations(algorithms, request_size)


def _tag(algorithm: Union[AlgorithmId, KexAlgorithm]) -> KexAlgorithm:
    if isinstance(algorithm, AlgorithmId):
        return algorithm.tag
    return KexAlgorithm(algorithm)


def check(
    policy: ConstraintPolicy,
    algorithms: Iterable[Union[AlgorithmId, KexAlgorithm]],
    request_size: Optional[int] = None,
) -> bool:
    """Return True if a request with these algorithms meets ``policy``."""
    return policy.check(algorithms, request_size)
