"""WebSocket компоненты Chat Service."""

from .connection_gateway import ConnectionGateway, WebSocketConnection
from .message_parser import WebSocketMessageParser

__all__ = [
    "ConnectionGateway",
    "WebSocketConnection",
    "WebSocketMessageParser",
]
