"""WireGuard peer lookup, used to tie an exchange to the peer that requested it."""

import subprocess
from ipaddress import ip_address
from typing import List, Sequence

from starlette.requests import Request

from .metadata import IPAddress, KexMetadata, Peer
from .error import PskExchangeError
from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_INTERFACE = "wg0"
WG_COMMAND: Sequence[str] = ("/usr/bin/sudo", "/usr/bin/wg")


class WgError(PskExchangeError):
    """Unable to query wg for peers."""
    pass


def get_peers(iface: str, command: Sequence[str] = WG_COMMAND) -> List[Peer]:
    """Runs ``wg show <iface> dump`` and returns the peers on that interface."""
    try:
        output = subprocess.run(
            [*command, "show", iface, "dump"],
            capture_output=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise WgError(f"Unable to run the wg command: {e}") from e

    try:
        stdout = output.stdout.decode("utf-8")
    except UnicodeDecodeError as e:
        raise WgError("Invalid output from wg") from e
    return parse_peers(stdout)


def parse_peers(dump: str) -> List[Peer]:
    """
    Parse ``wg show dump`` output.

    The first line describes the interface itself and has fewer fields, so
    it is skipped along with any other line that is not a peer.
    """
    peers = []
    for line in dump.splitlines():
        parts = line.split("\t")
        if len(parts) != 8:
            continue
        try:
            tunnel_ips = tuple(parse_cidr_to_ip(cidr) for cidr in parts[3].split(","))
        except ValueError:
            continue
        peers.append(Peer(public_key=parts[0], tunnel_ips=tunnel_ips))
    return peers


def parse_cidr_to_ip(cidr: str) -> IPAddress:
    """Extract the IP part of a network in CIDR notation."""
    address, sep, _prefix = cidr.partition("/")
    if not sep:
        raise ValueError(f"Not in CIDR notation: {cidr!r}")
    return ip_address(address)


class WireguardPeerExtractor:
    """
    Metadata extractor finding the peer owning the request's tunnel IP.

    On any failure the returned metadata has no peer, which makes
    ``ScriptSink`` refuse the exchange.
    """

    def __init__(self, iface: str = DEFAULT_INTERFACE, command: Sequence[str] = WG_COMMAND):
        self.iface = iface
        self.command = command

    def __call__(self, request: Request) -> KexMetadata:
        if request.client is None:
            logger.warning("No remote addr for the requesting peer")
            return KexMetadata()
        remote_addr = (request.client.host, request.client.port)

        try:
            tunnel_ip = ip_address(request.client.host)
            peers = get_peers(self.iface, self.command)
        except (ValueError, WgError) as e:
            logger.error("Unable to find peer for %s: %s", request.client.host, e)
            return KexMetadata(remote_addr=remote_addr)

        for peer in peers:
            if tunnel_ip in peer.tunnel_ips:
                return KexMetadata(remote_addr=remote_addr, peer=peer)

        logger.warning("Could not find peer with tunnel IP %s", tunnel_ip)
        return KexMetadata(remote_addr=remote_addr)
