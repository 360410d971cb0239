"""REST API routes for the ftr receiver."""

import asyncio
import logging

from fastapi import APIRouter, File, HTTPException, Request, UploadFile

from ftr.config import FILE_TYPE_HEADER, UPLOAD_PATH
from ftr.errors import ArchiveError, InvalidUpload, NameCollision, TransferError
from ftr.transfer.models import FileKind, ReceiverConfig
from ftr.transfer.receiver import store_upload

logger = logging.getLogger(__name__)

router = APIRouter()


def get_config(request: Request) -> ReceiverConfig:
    """The ReceiverConfig the app was built with."""
    return request.app.state.config


# --- Upload ---

@router.post(UPLOAD_PATH)
@router.post("/", include_in_schema=False)
async def upload(request: Request, file: UploadFile | None = File(None)):
    """
    Store one uploaded file in the drop dir.

    The passkey has already been checked by the app middleware. A
    `X-Ftr-File-Type: dir` header marks the file as a directory tarball to
    unpack; any other value, or none, means a plain file.
    """
    if file is None:
        raise HTTPException(status_code=400, detail="Failed to get the file from form")

    config = get_config(request)
    kind = FileKind.from_header(request.headers.get(FILE_TYPE_HEADER))

    try:
        dst = await asyncio.to_thread(store_upload, config, file.filename, file.file, kind)
    except InvalidUpload as e:
        logger.warning(f"Rejected upload: {e}")
        raise HTTPException(status_code=400, detail="Invalid file name")
    except NameCollision as e:
        logger.warning(f"Rejected upload: {e}")
        raise HTTPException(status_code=409, detail="File already exists")
    except TransferError as e:
        logger.error(f"Upload failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to save the file on server")
    except ArchiveError as e:
        logger.error(f"Unpack failed: {e}")
        raise HTTPException(
            status_code=500, detail="Failed to unzip and untar the file on server"
        )
    finally:
        await file.close()

    return {"status": "received", "name": dst.name}
