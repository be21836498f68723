"""
Runtime configuration for publisher and subscriber nodes.

Protocol constants shared by both roles, plus one settings model per role.
"""

from pathlib import Path
from typing import Final

from lrt_pids.config import PIDS_ENV
from lrt_pids.protocol.codec import WireProfile
from lrt_pids.protocol.exchange import EXCHANGE_TIMEOUT_SECONDS
from lrt_pids.types import StrictBaseModel

APPLICATION_PROTOCOL: Final = "lrt-jabodebek-2306214510"
"""ALPN identifier both peers must offer during the TLS handshake."""

DEFAULT_PORT: Final = 4510
"""UDP port displays listen on."""

DEFAULT_KEY_LOG_FILE: Final = Path("ssl-key.log")
"""Conventional TLS key log file name used by field engineers."""

IDLE_TIMEOUT_SECONDS: Final = 60.0 if PIDS_ENV == "prod" else 5.0
"""Connection idle timeout. Short in tests so broken peers fail fast."""


class PublisherConfig(StrictBaseModel):
    """Settings for a station-control publisher."""

    host: str
    """Display address to connect to."""

    port: int = DEFAULT_PORT
    """Display UDP port."""

    alpn: str = APPLICATION_PROTOCOL
    """Application protocol to negotiate."""

    key_log_path: Path | None = None
    """Where to append TLS secrets. None disables key logging."""

    profile: WireProfile = WireProfile.PACKED
    """Wire profile agreed with the display."""

    exchange_timeout: float | None = EXCHANGE_TIMEOUT_SECONDS
    """Seconds allowed for each request/acknowledgment round trip."""

    idle_timeout: float = IDLE_TIMEOUT_SECONDS
    """Connection idle timeout in seconds."""


class SubscriberConfig(StrictBaseModel):
    """Settings for a PIDS display subscriber."""

    host: str = "0.0.0.0"
    """Local address to bind."""

    port: int = DEFAULT_PORT
    """Local UDP port."""

    alpn: str = APPLICATION_PROTOCOL
    """Application protocol to accept."""

    key_log_path: Path | None = None
    """Where to append TLS secrets. None disables key logging."""

    profile: WireProfile = WireProfile.PACKED
    """Wire profile agreed with publishers."""

    idle_timeout: float = IDLE_TIMEOUT_SECONDS
    """Connection idle timeout in seconds."""
