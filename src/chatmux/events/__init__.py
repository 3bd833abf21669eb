"""Engine-to-UI notification plumbing."""

from .bus import Event, EventBus
from . import domain

__all__ = ["Event", "EventBus", "domain"]
