"""
Game exceptions.

Every rejected operation raises a GameError subclass; the API layer turns
them into a JSON error for the requesting client only.
"""


class GameError(Exception):
    """Base class for all game errors."""
    kind = 'GameError'
    status_code = 400


class DuplicateName(GameError):
    kind = 'DuplicateName'

    def __init__(self, name):
        self.name = name
        super().__init__(f"Name '{name}' is already taken")


class UnknownPlayer(GameError):
    kind = 'UnknownPlayer'

    def __init__(self, player_id):
        self.player_id = player_id
        super().__init__(f"Player {player_id} is not in the game")


class MissingFields(GameError):
    kind = 'MissingFields'


class SelfVote(GameError):
    kind = 'SelfVote'

    def __init__(self):
        super().__init__('You cannot vote for yourself')


class AlreadyVoted(GameError):
    kind = 'AlreadyVoted'

    def __init__(self, voter_id):
        self.voter_id = voter_id
        super().__init__('You have already voted in this round')


class NotFound(GameError):
    kind = 'NotFound'
    status_code = 404


class SessionInvariantError(GameError):
    """Session state would break an invariant; the operation was rolled back."""
    kind = 'SessionInvariantError'
    status_code = 500
