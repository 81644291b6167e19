"""Real-time chat synchronization client for the guest-post marketplace."""

from .config import ClientConfig, load_config
from .models import ConnectionState
from .service import ChatService

__all__ = ["ChatService", "ClientConfig", "ConnectionState", "load_config"]
