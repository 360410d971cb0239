"""
Sender side of an upload.

One multipart POST per transfer. Directories are packed into a
temporary tarball beside the source first; the tarball is removed
whatever the outcome.
"""

import asyncio
import logging
import os
from pathlib import Path

import httpx

from ftr.config import FILE_TYPE_HEADER, PASSKEY_HEADER, UPLOAD_TIMEOUT
from ftr.errors import AuthRejected, InvalidUpload, NameCollision, TransferError
from ftr.transfer.archive import pack
from ftr.transfer.models import FileKind, TransferRequest

logger = logging.getLogger(__name__)

_STATUS_ERRORS = {
    400: InvalidUpload,
    401: AuthRejected,
    409: NameCollision,
}


def _raise_for_status(response: httpx.Response, upload_name: str) -> None:
    if response.status_code == 200:
        return
    detail = response.reason_phrase
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("detail", detail)
    error = _STATUS_ERRORS.get(response.status_code, TransferError)
    raise error(f"failed to send {upload_name}, server returned {response.status_code}: {detail}")


async def upload_file(
    client: httpx.AsyncClient,
    request: TransferRequest,
    upload_path: Path,
) -> httpx.Response:
    """POST `upload_path` as the `file` part, framed by `request.kind`."""
    headers = {
        PASSKEY_HEADER: request.pass_key,
        FILE_TYPE_HEADER: request.kind.value,
    }
    with open(upload_path, "rb") as f:
        files = {"file": (upload_path.name, f, "application/octet-stream")}
        return await client.post(request.url, headers=headers, files=files)


async def send(request: TransferRequest, client: httpx.AsyncClient | None = None) -> None:
    """
    Perform a single authenticated upload.

    Args:
        request: What to send and where.
        client: Optional client to reuse; a fresh one is created otherwise.

    Raises:
        AuthRejected, NameCollision, InvalidUpload: the receiver said no.
        TransferError: any other failure, local or remote.
        ArchiveError: the source directory could not be packed.
    """
    upload_path = Path(request.source_path)
    archive: Path | None = None

    try:
        if request.kind is FileKind.DIRECTORY:
            archive = await asyncio.to_thread(pack, upload_path)
            upload_path = archive

        logger.info(f"Uploading {upload_path.name} to {request.url} as {request.kind.value}")
        try:
            if client is None:
                async with httpx.AsyncClient(timeout=UPLOAD_TIMEOUT) as own_client:
                    response = await upload_file(own_client, request, upload_path)
            else:
                response = await upload_file(client, request, upload_path)
        except OSError as e:
            raise TransferError(f"failed to read {upload_path}: {e}") from e
        except httpx.HTTPError as e:
            raise TransferError(f"failed to send the request: {e}") from e

        _raise_for_status(response, upload_path.name)
        logger.info(f"Sent {upload_path.name} to {request.target_host}:{request.target_port}")
    finally:
        if archive is not None:
            try:
                os.remove(archive)
            except OSError as e:
                logger.warning(f"Failed to remove temporary archive {archive}: {e}")
