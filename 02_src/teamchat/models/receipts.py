"""Delivery status model."""

from enum import Enum


class DeliveryStatus(str, Enum):
    """Per-message, per-viewer display status."""

    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        """Position in the sending -> read progression."""
        return _ORDER.index(self)

    def advance(self, other: "DeliveryStatus") -> "DeliveryStatus":
        """Return whichever status is further along."""
        return other if other.rank > self.rank else self


_ORDER = [
    DeliveryStatus.SENDING,
    DeliveryStatus.SENT,
    DeliveryStatus.DELIVERED,
    DeliveryStatus.READ,
]
