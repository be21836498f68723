"""
PIDS node roles.

A publisher (station control) sends train events; a subscriber (platform
display) announces them and acknowledges each one.
"""

from .config import APPLICATION_PROTOCOL, DEFAULT_PORT, PublisherConfig, SubscriberConfig
from .publisher import Publisher, TransactionOutcome, default_events
from .subscriber import Subscriber

__all__ = [
    "APPLICATION_PROTOCOL",
    "DEFAULT_PORT",
    "Publisher",
    "PublisherConfig",
    "Subscriber",
    "SubscriberConfig",
    "TransactionOutcome",
    "default_events",
]
