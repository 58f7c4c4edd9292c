from .event import Event, EventRegistration, EventTicket
from .notification import PlayerNotification
from .player import PlayerProfile, UserCredential
from .registration import Registration
from .tournament import Tournament

__all__ = [
    "Tournament",
    "Registration",
    "PlayerProfile",
    "UserCredential",
    "Event",
    "EventRegistration",
    "EventTicket",
    "PlayerNotification",
]
