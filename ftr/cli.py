"""
Command-line entry point: `ftr join | list | send | help`.
"""

import argparse
import asyncio
import logging
import os
import sys

import uvicorn

from ftr.config import API_HOST, DEFAULT_PORT, LIST_TIMEOUT, LOOKUP_TIMEOUT, default_drop_dir
from ftr.discovery.identity import default_node_name, trim_host_name_suffix
from ftr.discovery.service import PeerDiscovery
from ftr.errors import FtrError, TransferError
from ftr.main import create_app
from ftr.security.crypto import generate_pass_key
from ftr.transfer.models import ReceiverConfig, TransferRequest
from ftr.transfer.sender import send

logger = logging.getLogger(__name__)

USAGE = """\
Usage:
    Join the network: `ftr join --name <name> --port <port> --dropdir <path-to-dir> --key <key>`
    List all peers: `ftr list`
    Send file to peer: `ftr send --key <key> <path> <peer>`"""

ROW_FORMAT = "{:<20} {:<15} {:<5} {:<20}"


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that exits with 1 on bad arguments."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="ftr", description="Send files and directories to peers on the LAN.")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", parser_class=_Parser)

    join = sub.add_parser("join", help="advertise this node and receive files")
    join.add_argument("--name", default=None, help="the name for the host (default: hostname)")
    join.add_argument("--port", type=int, default=DEFAULT_PORT,
                      help="the port the server will listen at")
    join.add_argument("--dropdir", default=None,
                      help="the directory received files are written to (default: ~/Downloads)")
    join.add_argument("--key", default=None,
                      help="the pre-shared key used to authn the file transfer (default: random)")

    lst = sub.add_parser("list", help="list peers on the network")
    lst.add_argument("--timeout", type=float, default=LIST_TIMEOUT,
                     help="seconds to keep listening")

    snd = sub.add_parser("send", help="send a file or directory to a peer")
    snd.add_argument("--key", "--psk", dest="key", default="", help="the peer's pre-shared key")
    snd.add_argument("--timeout", type=float, default=LOOKUP_TIMEOUT,
                     help="seconds to wait for the peer to answer")
    snd.add_argument("path", help="file or directory to send")
    snd.add_argument("peer", help="name the peer joined with")

    sub.add_parser("help", help="show usage")
    return parser


# --- join ---

def run_join(args) -> int:
    name = trim_host_name_suffix(args.name or default_node_name())
    pass_key = args.key or generate_pass_key()
    try:
        config = ReceiverConfig(
            drop_dir=args.dropdir or default_drop_dir(),
            pass_key=pass_key,
            port=args.port,
        )
        app = create_app(config, node_name=name)
    except (ValueError, OSError) as e:
        raise FtrError(f"Failed to start the receiver server: {e}") from e

    print(f"Advertise within the network with name {name}, port {config.port} and key {pass_key}")
    server = uvicorn.Server(uvicorn.Config(
        app,
        host=API_HOST,
        port=config.port,
        lifespan="on",
        log_level="debug" if args.verbose else "info",
    ))
    server.run()
    if not server.started:
        raise FtrError("Receiver server error: the server did not start")
    return 0


# --- list ---

async def list_peers(discovery: PeerDiscovery, timeout: float) -> int:
    print(ROW_FORMAT.format("HostName", "IPv4", "Port", "DropDir"))
    count = 0
    async for entry in discovery.browse(timeout):
        print(ROW_FORMAT.format(entry.host_name, entry.address, entry.port, entry.drop_dir))
        count += 1
    logger.debug(f"Listed {count} peer(s)")
    return count


def run_list(args) -> int:
    asyncio.run(list_peers(PeerDiscovery(), args.timeout))
    return 0


# --- send ---

async def send_to_peer(discovery: PeerDiscovery, path: str, peer: str, key: str,
                       timeout: float) -> None:
    if not os.path.exists(path):
        raise TransferError(f"failed to stat the source file: {path} does not exist")

    entry = await discovery.resolve(peer, timeout)
    print(f"Found the peer {entry.host_name} with ip {entry.address} and port {entry.port}")
    print("Start sending the file...")

    request = TransferRequest.for_path(path, key, entry.address, entry.port)
    await send(request)
    print("File sent successfully")


def run_send(args) -> int:
    asyncio.run(send_to_peer(PeerDiscovery(), args.path, args.peer, args.key, args.timeout))
    return 0


COMMANDS = {
    "join": run_join,
    "list": run_list,
    "send": run_send,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command is None:
        print("Subcommand is not provided")
        print(USAGE)
        return 1
    if args.command == "help":
        print(USAGE)
        return 0

    try:
        return COMMANDS[args.command](args)
    except FtrError as e:
        print(f"Error: {e.message}")
        return 1
    except KeyboardInterrupt:
        return 0
