"""Presence module."""

from .registry import IPresenceRegistry, PresenceChange, PresenceRegistry

__all__ = ["IPresenceRegistry", "PresenceChange", "PresenceRegistry"]
