"""
Runtime state package for pogonode.

This package holds the single session state aggregate shared by the
reconciler, the controller and the collaborators.

Typical usage (e.g. in main.py):

    from pogonode.runtime_state import SessionState, save_state

    state = SessionState.create(settings.start_lat, settings.start_lng)
    reconciler = Reconciler(state, settings)
    # ... controller runs, reconciler mutates state ...
    save_state(state, settings.state_path)
"""

from .session import (
    Position,
    ApiBookkeeping,
    PathState,
    SessionState,
    save_state,
)

__all__ = [
    "Position",
    "ApiBookkeeping",
    "PathState",
    "SessionState",
    "save_state",
]
