"""
Node naming for advertisements and lookups.
"""

import logging
import socket

logger = logging.getLogger(__name__)


def trim_host_name_suffix(full_name: str) -> str:
    """
    Drop everything from the first '.' on ("alice.lan" -> "alice").

    A name that starts with '.' is returned unchanged.
    """
    index = full_name.find(".")
    if index > 0:
        return full_name[:index]
    return full_name


def default_node_name() -> str:
    """The advertised name when `join --name` is not given."""
    return trim_host_name_suffix(socket.gethostname())


def local_ipv4_addresses() -> list[str]:
    """
    Collect the non-loopback IPv4 addresses of this host.

    Falls back to the address of the default outbound interface when the
    hostname does not resolve to anything useful.
    """
    addresses: list[str] = []
    try:
        _, _, ips = socket.gethostbyname_ex(socket.gethostname())
        for ip in ips:
            if not ip.startswith("127.") and ip not in addresses:
                addresses.append(ip)
    except OSError as e:
        logger.debug(f"Error resolving local IPs: {e}")

    if not addresses:
        primary = _primary_ipv4()
        if primary:
            addresses.append(primary)
    return addresses


def _primary_ipv4() -> str | None:
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # Doesn't send anything, just picks the outbound interface
        s.connect(("8.8.8.8", 80))
        return s.getsockname()[0]
    except OSError:
        return None
    finally:
        s.close()
