"""TCP transport configuration constants and models."""

from typing import Final

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CONNECT_TIMEOUT_SECS: Final = 30.0
"""Seconds to wait for the connect signal before a dial fails with a timeout."""

CLOSE_TIMEOUT_SECS: Final = 2.0
"""Grace period for open connections when a listener closes. The rest are aborted."""

DEFAULT_READ_LIMIT: Final = 2**16
"""Buffer limit of the asyncio StreamReader behind each connection."""


class StrictBaseModel(BaseModel):
    """A strict, immutable pydantic base model."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        strict=True,
        validate_default=True,
    )


class TcpConfig(StrictBaseModel):
    """Runtime configuration for a TcpTransport."""

    connect_timeout_secs: float | None = Field(default=DEFAULT_CONNECT_TIMEOUT_SECS, gt=0)
    """
    Deadline for outbound connection establishment.

    None disables the deadline and leaves it to the operating system.
    """

    close_timeout_secs: float = Field(default=CLOSE_TIMEOUT_SECS, ge=0)
    """Grace period given to open connections when a listener closes."""

    read_limit: int = Field(default=DEFAULT_READ_LIMIT, gt=0)
    """Buffer limit for each connection's StreamReader."""


class DialOptions(StrictBaseModel):
    """Per-dial overrides of the transport configuration."""

    timeout_secs: float | None = Field(default=None, gt=0)
    """Connect deadline for this dial only. None falls back to TcpConfig."""
