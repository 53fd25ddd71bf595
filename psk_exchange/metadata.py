"""Request metadata derived from the transport, handed through to the notification sink."""

from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address
from typing import Optional, Tuple, Union

from starlette.requests import Request

IPAddress = Union[IPv4Address, IPv6Address]


@dataclass(frozen=True)
class Peer:
    """A WireGuard peer."""

    public_key: str
    tunnel_ips: Tuple[IPAddress, ...]


@dataclass(frozen=True)
class KexMetadata:
    """What the server knows about the party behind one exchange request."""

    remote_addr: Optional[Tuple[str, int]] = None
    peer: Optional[Peer] = None

    def __str__(self) -> str:
        if self.peer is not None:
            return f"peer {self.peer.public_key}"
        if self.remote_addr is not None:
            return "%s:%d" % self.remote_addr
        return "unknown peer"


def remote_address_metadata(request: Request) -> KexMetadata:
    """Metadata holding only the remote address of the connection."""
    if request.client is None:
        return KexMetadata()
    return KexMetadata(remote_addr=(request.client.host, request.client.port))
