"""Exception taxonomy shared by the CLI, the sender and the receiver."""


class FtrError(Exception):
    """Base class for every error reported to the operator."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# --- Discovery ---

class DiscoveryUnavailable(FtrError):
    """The local network stack cannot advertise or browse."""


class PeerNotFound(FtrError):
    """No peer with the requested name answered before the timeout."""

    def __init__(self, name: str, timeout: float) -> None:
        super().__init__(f"peer {name!r} not found within {timeout:g}s")
        self.name = name
        self.timeout = timeout


# --- Upload ---

class AuthRejected(FtrError):
    """The receiver refused the passkey."""


class InvalidUpload(FtrError):
    """The upload form or its filename is unusable."""


class NameCollision(FtrError):
    """Something already exists at the destination path."""


class TransferError(FtrError):
    """Filesystem or transport failure while moving bytes."""


# --- Archives ---

class ArchiveError(FtrError):
    """An archive could not be written or read."""


class UnsafeArchiveEntry(ArchiveError):
    """An entry would land outside the extraction root."""

    def __init__(self, entry_name: str) -> None:
        super().__init__(f"unsafe archive entry: {entry_name!r}")
        self.entry_name = entry_name


class UnsupportedEntryType(ArchiveError):
    """An entry is neither a regular file nor a directory."""

    def __init__(self, entry_name: str, entry_type: bytes) -> None:
        super().__init__(f"unsupported archive entry type {entry_type!r} for {entry_name!r}")
        self.entry_name = entry_name
        self.entry_type = entry_type
