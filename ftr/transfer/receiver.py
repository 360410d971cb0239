"""
Receiver side of an upload: land the body in the drop dir, then unpack it
if the sender framed it as a directory.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import BinaryIO

from ftr.config import CHUNK_SIZE
from ftr.errors import InvalidUpload, NameCollision, TransferError
from ftr.transfer.archive import unpack
from ftr.transfer.models import FileKind, ReceiverConfig

logger = logging.getLogger(__name__)


def ensure_drop_dir(drop_dir: str) -> None:
    """Create the drop dir if it is missing."""
    if not os.path.isdir(drop_dir):
        logger.info(f"The directory {drop_dir} does not exist, creating it")
        os.makedirs(drop_dir, mode=0o755, exist_ok=True)


def safe_base_name(file_name: str | None) -> str:
    """
    Reduce an uploaded filename to its last path component.

    Both '/' and '\\' count as separators and trailing separators are
    ignored, so "a/b/" gives "b".

    Raises:
        InvalidUpload: nothing usable is left ("", "." or "..") or the
            name holds a NUL byte.
    """
    name = (file_name or "").replace("\\", "/").rstrip("/")
    base = name.rsplit("/", 1)[-1]
    if base in ("", ".", "..") or "\x00" in base:
        raise InvalidUpload(f"invalid file name: {file_name!r}")
    return base


def store_upload(
    config: ReceiverConfig,
    file_name: str | None,
    body: BinaryIO,
    kind: FileKind,
) -> Path:
    """
    Write one uploaded file into the drop dir.

    The destination is opened with exclusive create, so two uploads of the
    same name can never both land. A DIRECTORY upload is unpacked into the
    drop dir afterwards and the archive is left next to the result.

    Returns:
        The path the upload was written to.

    Raises:
        InvalidUpload: the filename is unusable.
        NameCollision: the destination already exists.
        TransferError: the write failed.
        ArchiveError: unpacking a DIRECTORY upload failed.
    """
    name = safe_base_name(file_name)
    dst = Path(config.drop_dir) / name

    try:
        out = open(dst, "xb")
    except FileExistsError as e:
        raise NameCollision(f"{name} already exists") from e
    except OSError as e:
        raise TransferError(f"failed to create {dst}: {e}") from e

    try:
        with out:
            shutil.copyfileobj(body, out, CHUNK_SIZE)
    except OSError as e:
        dst.unlink(missing_ok=True)
        raise TransferError(f"failed to save {dst}: {e}") from e

    logger.info(f"Received {name} ({dst.stat().st_size} bytes)")

    if kind is FileKind.DIRECTORY:
        unpack(dst, config.drop_dir)
        logger.info(f"Unpacked {name} into {config.drop_dir}")

    return dst
