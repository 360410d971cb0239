"""Pydantic models for file transfer."""

import os
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ftr.config import DEFAULT_PORT, UPLOAD_PATH
from ftr.errors import TransferError


class FileKind(str, Enum):
    """Type-framing header values."""
    FILE = "file"
    DIRECTORY = "dir"

    @classmethod
    def from_header(cls, value: str | None) -> "FileKind":
        # Anything but an exact "dir" is a plain file.
        if value == cls.DIRECTORY.value:
            return cls.DIRECTORY
        return cls.FILE


class TransferRequest(BaseModel):
    """One upload attempt from this node to a peer."""
    source_path: str
    kind: FileKind
    pass_key: str
    target_host: str
    target_port: int = Field(ge=0, le=65535)

    @classmethod
    def for_path(
        cls, source_path: str, pass_key: str, target_host: str, target_port: int
    ) -> "TransferRequest":
        """Stat `source_path` and pick the kind from what is on disk."""
        path = os.path.abspath(source_path)
        if not os.path.exists(path):
            raise TransferError(f"source {source_path!r} does not exist")
        kind = FileKind.DIRECTORY if os.path.isdir(path) else FileKind.FILE
        return cls(
            source_path=path,
            kind=kind,
            pass_key=pass_key,
            target_host=target_host,
            target_port=target_port,
        )

    @property
    def url(self) -> str:
        return f"http://{self.target_host}:{self.target_port}{UPLOAD_PATH}"


class ReceiverConfig(BaseModel):
    """Fixed at startup; the upload handler only ever reads it."""
    model_config = ConfigDict(frozen=True)

    drop_dir: str
    pass_key: str = Field(min_length=1)
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)

    @field_validator("drop_dir")
    @classmethod
    def _absolute_drop_dir(cls, value: str) -> str:
        if not value:
            raise ValueError("the drop dir is empty")
        return os.path.abspath(os.path.expanduser(value))
