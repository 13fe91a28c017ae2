"""
Realtime transport: per-user session registry and change fan-out.
"""

from app.realtime.sessions import SessionRegistry, TransportSession

__all__ = ["SessionRegistry", "TransportSession"]
