"""Relay state layer.

Holds the only mutable state shared between the event channel, the timer
channel and explicit callers: the in-memory token, the delivery record
and the single-slot delivery gate.
"""

from sessionrelay.state.events import CandidateOrigin, CandidateToken, CookieChange
from sessionrelay.state.store import RelayState

__all__ = ["CandidateOrigin", "CandidateToken", "CookieChange", "RelayState"]
