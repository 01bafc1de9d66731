from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple


class Stage(str, Enum):
    WAITING = 'waiting'
    ASKING = 'asking'
    VOTING = 'voting'
    RESULTS = 'results'


class Highlight(str, Enum):
    NONE = 'none'
    READY = 'ready'
    CAUGHT = 'caught'
    WINNER = 'winner'


# Stages in which the word and the impostor are still hidden from the table
LIVE_STAGES = (Stage.ASKING, Stage.VOTING)


@dataclass
class Player:
    id: str
    name: str
    photo_ref: str
    score: int = 0
    secret_role: Optional[str] = None
    highlight: Highlight = Highlight.NONE

    def to_dict(self, include_role=True):
        return {
            'id': self.id,
            'name': self.name,
            'photo_ref': self.photo_ref,
            'score': self.score,
            'highlight': self.highlight.value,
            'secret_role': self.secret_role if include_role else None,
        }


@dataclass
class VoteEntry:
    count: int = 0
    voters: List[str] = field(default_factory=list)

    def to_dict(self):
        return {'count': self.count, 'voters': list(self.voters)}


@dataclass
class Session:
    """The mutable game state. Only SessionStore touches it."""
    roster: List[Player] = field(default_factory=list)
    stage: Stage = Stage.WAITING
    shared_word: Optional[str] = None
    impostor_id: Optional[str] = None
    ready_set: Set[str] = field(default_factory=set)
    questioner_index: int = 0
    # Insertion order is first-vote order, which the tie-break relies on
    vote_tally: Dict[str, VoteEntry] = field(default_factory=dict)
    voted_set: Set[str] = field(default_factory=set)
    version: int = 0
    round_number: int = 0
    round_history: List[dict] = field(default_factory=list)

    def find(self, player_id) -> Optional[Player]:
        for player in self.roster:
            if player.id == player_id:
                return player
        return None

    def find_by_name(self, name) -> Optional[Player]:
        for player in self.roster:
            if player.name == name:
                return player
        return None

    @property
    def current_questioner(self) -> Optional[Player]:
        if not self.roster:
            return None
        return self.roster[self.questioner_index]


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable copy of a Session taken under the store lock."""
    version: int
    players: Tuple[Player, ...]
    stage: Stage
    current_word: Optional[str]
    impostor_id: Optional[str]
    ready_players: Tuple[str, ...]
    votes: Tuple[Tuple[str, VoteEntry], ...]
    current_question_index: int
    round_number: int
    round_history: Tuple[dict, ...]

    @classmethod
    def capture(cls, session: Session) -> 'SessionSnapshot':
        return cls(
            version=session.version,
            players=tuple(replace(p) for p in session.roster),
            stage=session.stage,
            current_word=session.shared_word,
            impostor_id=session.impostor_id,
            # Roster order keeps the payload stable across deliveries
            ready_players=tuple(p.id for p in session.roster if p.id in session.ready_set),
            votes=tuple(
                (pid, VoteEntry(entry.count, list(entry.voters)))
                for pid, entry in session.vote_tally.items()
            ),
            current_question_index=session.questioner_index,
            round_number=session.round_number,
            round_history=tuple(dict(item) for item in session.round_history),
        )

    @property
    def current_questioner(self) -> Optional[Player]:
        if not self.players:
            return None
        return self.players[self.current_question_index]

    def player(self, player_id) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def to_dict(self, viewer_id=None):
        """Render the payload as seen by ``viewer_id``.

        While a round is live only the viewer's own secret role is included;
        the word, the impostor and everyone else's role are withheld until
        the results stage.
        """
        revealed = self.stage not in LIVE_STAGES
        questioner = self.current_questioner
        return {
            'version': self.version,
            'players': [p.to_dict(include_role=revealed or p.id == viewer_id) for p in self.players],
            'stage': self.stage.value,
            'current_word': self.current_word if revealed else None,
            'impostor_id': self.impostor_id if revealed else None,
            'current_questioner': (
                questioner.to_dict(include_role=revealed or questioner.id == viewer_id)
                if questioner else None
            ),
            'ready_players': list(self.ready_players),
            'votes': {pid: entry.to_dict() for pid, entry in self.votes},
            'current_question_index': self.current_question_index,
            'round_number': self.round_number,
            'round_history': [dict(item) for item in self.round_history],
        }
