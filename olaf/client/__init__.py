"""
Olaf client: the command-line side of the handshake.
"""

from .callback_listener import CallbackListener
from .orchestrator import ClientOrchestrator, HandshakeState, authenticate

__all__ = [
    "CallbackListener",
    "ClientOrchestrator",
    "HandshakeState",
    "authenticate",
]
