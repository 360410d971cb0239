"""
mDNS/Zeroconf discovery service.

Advertises this node as an `_ftr._tcp` instance, and browses or resolves
other instances on the same LAN. Every operation opens its own
AsyncZeroconf and closes it when done.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from zeroconf import Error as ZeroconfError
from zeroconf import IPVersion, NonUniqueNameException, ServiceStateChange
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from ftr.config import DOMAIN, LIST_TIMEOUT, LOOKUP_TIMEOUT, RESOLVE_REQUEST_MS, SERVICE_TYPE
from ftr.discovery.identity import local_ipv4_addresses, trim_host_name_suffix
from ftr.discovery.models import PeerEntry
from ftr.errors import DiscoveryUnavailable, PeerNotFound

logger = logging.getLogger(__name__)

TXT_STRING_MAX = 255


# --- TXT record helpers ---

def encode_txt(strings: list[str]) -> bytes:
    """Pack strings into a raw TXT record (one length byte per string)."""
    out = bytearray()
    for s in strings:
        data = s.encode("utf-8")
        if len(data) > TXT_STRING_MAX:
            logger.warning(f"TXT string truncated to {TXT_STRING_MAX} bytes: {s!r}")
            data = data[:TXT_STRING_MAX]
        out.append(len(data))
        out += data
    return bytes(out)


def decode_txt(raw: bytes | None) -> list[str]:
    """Unpack a raw TXT record into its strings, in order."""
    strings: list[str] = []
    if not raw:
        return strings
    i = 0
    while i < len(raw):
        length = raw[i]
        i += 1
        chunk = raw[i:i + length]
        i += length
        if chunk:
            strings.append(chunk.decode("utf-8", errors="replace"))
    return strings


def instance_name(full_name: str, service_type: str = SERVICE_TYPE) -> str:
    """'alice._ftr._tcp.local.' -> 'alice'"""
    suffix = "." + service_type
    if full_name.endswith(suffix):
        return full_name[: -len(suffix)]
    return full_name


def entry_from_info(info) -> PeerEntry | None:
    """Build a PeerEntry from a resolved service info, or None without IPv4."""
    addresses = info.parsed_addresses(IPVersion.V4Only)
    if not addresses:
        return None
    return PeerEntry(
        host_name=instance_name(info.name),
        addresses=addresses,
        port=info.port,
        metadata=decode_txt(info.text),
    )


class PeerDiscovery:
    """Advertise, browse and resolve `_ftr._tcp` peers."""

    def __init__(self, service_type: str = SERVICE_TYPE) -> None:
        self._service_type = service_type

    def _open(self) -> AsyncZeroconf:
        try:
            return AsyncZeroconf(ip_version=IPVersion.V4Only)
        except OSError as e:
            raise DiscoveryUnavailable(f"cannot open mDNS sockets: {e}") from e

    @asynccontextmanager
    async def advertise(
        self, name: str, port: int, metadata: list[str]
    ) -> AsyncIterator[AsyncServiceInfo]:
        """
        Register this node for the life of the context.

        Args:
            name: Instance name; anything after the first '.' is dropped.
            port: Port the receiver listens on.
            metadata: TXT strings, conventionally [drop_dir].
        """
        name = trim_host_name_suffix(name)
        addresses = local_ipv4_addresses()
        if not addresses:
            logger.warning("No IPv4 address found; peers may not be able to reach us")

        info = AsyncServiceInfo(
            self._service_type,
            f"{name}.{self._service_type}",
            parsed_addresses=addresses,
            port=port,
            properties=encode_txt(metadata),
            server=f"{name}.{DOMAIN}",
        )

        aiozc = self._open()
        try:
            try:
                task = await aiozc.async_register_service(info, allow_name_change=False)
                await task
            except NonUniqueNameException as e:
                raise DiscoveryUnavailable(
                    f"the name {name!r} is already advertised on this network"
                ) from e
            except (OSError, ZeroconfError) as e:
                raise DiscoveryUnavailable(f"failed to advertise {name!r}: {e}") from e

            logger.info(f"Advertising {name} on {', '.join(addresses) or '-'} port {port}")
            try:
                yield info
            finally:
                task = await aiozc.async_unregister_service(info)
                await task
                logger.info(f"Withdrew advertisement for {name}")
        finally:
            await aiozc.async_close()

    async def browse(self, timeout: float = LIST_TIMEOUT) -> AsyncIterator[PeerEntry]:
        """
        Yield each responding peer once, until `timeout` seconds have passed.

        The browser callbacks resolve every new instance in a background
        task and publish the result on a queue drained here.
        """
        aiozc = self._open()
        queue: asyncio.Queue[PeerEntry] = asyncio.Queue()
        pending: set[asyncio.Task] = set()
        seen: set[str] = set()

        async def resolve_and_publish(service_type: str, name: str) -> None:
            info = AsyncServiceInfo(service_type, name)
            if not await info.async_request(aiozc.zeroconf, RESOLVE_REQUEST_MS):
                logger.debug(f"Could not resolve {name}")
                return
            entry = entry_from_info(info)
            if entry is not None:
                await queue.put(entry)

        def on_service_state_change(
            zeroconf, service_type: str, name: str, state_change: ServiceStateChange
        ) -> None:
            if state_change is not ServiceStateChange.Added or name in seen:
                return
            seen.add(name)
            task = asyncio.ensure_future(resolve_and_publish(service_type, name))
            pending.add(task)
            task.add_done_callback(pending.discard)

        browser = None
        try:
            try:
                browser = AsyncServiceBrowser(
                    aiozc.zeroconf, [self._service_type], handlers=[on_service_state_change]
                )
            except (OSError, ZeroconfError) as e:
                raise DiscoveryUnavailable(f"failed to browse: {e}") from e

            deadline = time.monotonic() + timeout
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                try:
                    entry = await asyncio.wait_for(queue.get(), remaining)
                except asyncio.TimeoutError:
                    break
                yield entry
        finally:
            for task in list(pending):
                task.cancel()
            if browser is not None:
                await browser.async_cancel()
            await aiozc.async_close()

    async def resolve(self, name: str, timeout: float = LOOKUP_TIMEOUT) -> PeerEntry:
        """
        Look up one peer by its exact instance name.

        Raises:
            PeerNotFound: nothing answered within `timeout` seconds.
        """
        name = trim_host_name_suffix(name)
        aiozc = self._open()
        try:
            info = AsyncServiceInfo(self._service_type, f"{name}.{self._service_type}")
            try:
                found = await asyncio.wait_for(
                    info.async_request(aiozc.zeroconf, int(timeout * 1000)), timeout
                )
            except asyncio.TimeoutError:
                found = False
            except ZeroconfError as e:
                logger.debug(f"Lookup of {name} failed: {e}")
                found = False

            entry = entry_from_info(info) if found else None
            if entry is None:
                raise PeerNotFound(name, timeout)
            logger.debug(f"Resolved {name} to {entry.addresses} port {entry.port}")
            return entry
        finally:
            await aiozc.async_close()
