"""Database package for merchant onboarding."""
from .connection import DatabaseGateway, close_db, get_db, get_gateway, init_db
from .models import (
    Acquirer,
    AcquirerApplicationTemplate,
    Agent,
    Base,
    OutboxEvent,
    Prospect,
    ProspectApplication,
    ProspectOwner,
    ProspectSignature,
    User,
)

__all__ = [
    "Acquirer",
    "AcquirerApplicationTemplate",
    "Agent",
    "Base",
    "DatabaseGateway",
    "OutboxEvent",
    "Prospect",
    "ProspectApplication",
    "ProspectOwner",
    "ProspectSignature",
    "User",
    "close_db",
    "get_db",
    "get_gateway",
    "init_db",
]
