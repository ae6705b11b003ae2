"""Session, authentication and booking core for the Samaya wellness app."""

from .app import SamayaClient, build_client
from .auth import AuthFlow
from .bookings import BookingOrchestrator
from .config import Settings
from .errors import (
    BookingStateError,
    NetworkError,
    RemoteError,
    RequestTimeoutError,
    SamayaError,
    StaleSessionError,
    ValidationError,
)
from .gateway import RequestGateway
from .pricing import PricingEngine
from .session import FileTokenStore, InMemoryTokenStore, Session, TokenStore

__all__ = [
    "AuthFlow",
    "BookingOrchestrator",
    "BookingStateError",
    "FileTokenStore",
    "InMemoryTokenStore",
    "NetworkError",
    "PricingEngine",
    "RemoteError",
    "RequestGateway",
    "RequestTimeoutError",
    "SamayaClient",
    "SamayaError",
    "Session",
    "Settings",
    "StaleSessionError",
    "TokenStore",
    "ValidationError",
    "build_client",
]
