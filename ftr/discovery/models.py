"""Pydantic models for peer discovery."""

from pydantic import BaseModel, ConfigDict, Field


class PeerEntry(BaseModel):
    """A peer resolved from its mDNS advertisement."""
    model_config = ConfigDict(frozen=True)

    host_name: str  # instance name, unique per advertisement
    addresses: list[str] = Field(min_length=1)  # IPv4, in advertised order
    port: int = Field(ge=0, le=65535)
    metadata: list[str] = []  # TXT strings; metadata[0] is the drop dir

    @property
    def address(self) -> str:
        return self.addresses[0]

    @property
    def drop_dir(self) -> str:
        """Display only. Never used to decide where anything is written."""
        return self.metadata[0] if self.metadata else ""
