"""Passenger-facing announcement texts."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Final

from .packet import PidsPacket

logger = logging.getLogger(__name__)

ARRIVAL_TEMPLATE: Final = "Mohon perhatian, kereta tujuan {destination} akan tiba di Peron 1."
"""Announcement for an arriving train."""

DEPARTURE_TEMPLATE: Final = (
    "Mohon perhatian, kereta tujuan {destination} akan diberangkatkan dari Peron 1."
)
"""Announcement for a departing train."""

Announcer = Callable[[str], None]
"""Receives each announcement text a display should show."""


def announcement_for(packet: PidsPacket) -> str | None:
    """
    Select the announcement for a request.

    Arrival takes precedence when both event flags are set. Requests with
    neither flag produce no announcement but are still acknowledged.
    """
    if packet.is_train_arriving:
        return ARRIVAL_TEMPLATE.format(destination=packet.destination)
    if packet.is_train_departing:
        return DEPARTURE_TEMPLATE.format(destination=packet.destination)
    return None


def log_announcement(text: str) -> None:
    """Default announcer: write the text to the log."""
    logger.info("%s", text)
