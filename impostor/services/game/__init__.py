"""Game domain services: session state machine and round scoring.

This package holds the game logic imported by HTTP routes and socket
handlers, keeping transport concerns separated from core game mechanics.
"""

from .scoring import RoundOutcome, compute_round_outcome, most_voted
from .store import SessionStore, StageResult, VoteReceipt

__all__ = [
    'RoundOutcome',
    'SessionStore',
    'StageResult',
    'VoteReceipt',
    'compute_round_outcome',
    'most_voted',
]
