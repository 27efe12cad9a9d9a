"""Campus events with capacity and admission rules."""

from .models import Event, EventStatus, EventType
from .service import EventService

__all__ = ["Event", "EventService", "EventStatus", "EventType"]
