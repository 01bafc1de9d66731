import copy
import logging
import random
import threading
import uuid
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, Iterable, List, NamedTuple, Optional

from impostor.exceptions import (
    AlreadyVoted,
    DuplicateName,
    MissingFields,
    NotFound,
    SelfVote,
    SessionInvariantError,
    UnknownPlayer,
)
from impostor.models import Highlight, Player, Session, SessionSnapshot, Stage, VoteEntry
from .scoring import RoundOutcome, compute_round_outcome


logger = logging.getLogger(__name__)

Listener = Callable[[SessionSnapshot], None]


class StageResult(NamedTuple):
    stage: Stage
    current_questioner: Optional[Player]


class VoteReceipt(NamedTuple):
    voter: Player
    voted_player: Player
    # False when the vote arrived outside the voting stage and was ignored
    recorded: bool


class SessionStore:
    """Authoritative state of one game session.

    Every public operation holds the store lock for its whole duration, so
    compound checks such as "everyone is ready" see a consistent session.
    Mutating operations either commit completely or leave the session as it
    was. After a commit the new snapshot is handed to the registered
    listeners once the lock has been released.

    Operations that arrive in the wrong stage (readiness outside ``waiting``,
    votes outside ``voting``, advancing while ``waiting``) change nothing but
    still count as a commit, so observers get a fresh snapshot.
    """

    def __init__(
        self,
        words: Iterable[str],
        impostor_role: str = 'Impostor',
        min_players: int = 3,
        round_points: int = 100,
        rng: Optional[random.Random] = None,
        id_factory: Optional[Callable[[], str]] = None,
        history_limit: int = 10,
    ):
        self._words = list(words)
        if not self._words:
            raise ValueError('word list must not be empty')
        if impostor_role in self._words:
            raise ValueError(f"impostor role '{impostor_role}' collides with a word")
        if history_limit < 0:
            raise ValueError('history_limit must not be negative')
        if min_players < 1:
            raise ValueError('min_players must be positive')
        self._impostor_role = impostor_role
        self._min_players = min_players
        self._round_points = round_points
        # 0 keeps every round
        self._history_limit = history_limit
        self._rng = rng or random.Random()
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._session = Session()
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    @property
    def impostor_role(self) -> str:
        return self._impostor_role

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ---- public operations ----

    def register_player(self, name: str, photo_ref: str) -> Player:
        if not name:
            raise MissingFields('Name is required')
        with self._mutation() as session:
            if session.find_by_name(name) is not None:
                raise DuplicateName(name)
            player = Player(id=self._new_id(session), name=name, photo_ref=photo_ref)
            session.roster.append(player)
            created = replace(player)
            roster_size = len(session.roster)
        logger.info(f"[register] player={created.id} name={name!r} roster={roster_size}")
        return created

    def mark_ready(self, player_id: str) -> bool:
        """Mark a player ready; returns True when this started a round."""
        if not player_id:
            raise MissingFields('Player ID is required')
        started = False
        with self._mutation() as session:
            player = session.find(player_id)
            if player is None:
                raise UnknownPlayer(player_id)
            if session.stage == Stage.WAITING:
                session.ready_set.add(player_id)
                player.highlight = Highlight.READY
                if len(session.ready_set) == len(session.roster) >= self._min_players:
                    self._start_round(session)
                    started = True
            ready, total = len(session.ready_set), len(session.roster)
        if not started:
            logger.info(f"[ready] player={player_id} ready={ready}/{total}")
        return started

    def advance_stage(self) -> StageResult:
        with self._mutation() as session:
            previous = session.stage
            if session.stage == Stage.ASKING:
                session.questioner_index = (session.questioner_index + 1) % len(session.roster)
                if session.questioner_index == 0:
                    session.stage = Stage.VOTING
            elif session.stage == Stage.VOTING:
                self._finish_round(session)
            elif session.stage == Stage.RESULTS:
                self._reset_round(session)
            questioner = session.current_questioner
            result = StageResult(session.stage, replace(questioner) if questioner else None)
        logger.info(f"[advance] {previous.value} -> {result.stage.value}")
        return result

    def cast_vote(self, voter_id: str, voted_player_id: str) -> VoteReceipt:
        if not voter_id or not voted_player_id:
            raise MissingFields('Voter ID and voted player ID are required')
        if voter_id == voted_player_id:
            raise SelfVote()
        with self._mutation() as session:
            if voter_id in session.voted_set:
                raise AlreadyVoted(voter_id)
            voter = session.find(voter_id)
            if voter is None:
                raise UnknownPlayer(voter_id)
            voted_player = session.find(voted_player_id)
            if voted_player is None:
                raise UnknownPlayer(voted_player_id)

            recorded = session.stage == Stage.VOTING
            if recorded:
                session.voted_set.add(voter_id)
                entry = session.vote_tally.setdefault(voted_player_id, VoteEntry())
                entry.count += 1
                entry.voters.append(voter.name)
                if len(session.voted_set) == len(session.roster):
                    self._finish_round(session)
            receipt = VoteReceipt(replace(voter), replace(voted_player), recorded)
        if recorded:
            logger.info(f"[vote] voter={voter_id} voted={voted_player_id}")
        else:
            logger.info(f"[vote-ignored] voter={voter_id} stage is not voting")
        return receipt

    def get_player_by_name(self, name: str) -> Player:
        if not name:
            raise MissingFields('Player name is required')
        with self._lock:
            player = self._session.find_by_name(name)
            if player is None:
                raise NotFound(f"Player '{name}' not found")
            return replace(player)

    def get_state(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot.capture(self._session)

    # ---- transitions (called with the lock held) ----

    def _start_round(self, session: Session) -> None:
        session.shared_word = self._rng.choice(self._words)
        session.impostor_id = self._rng.choice(session.roster).id
        for player in session.roster:
            if player.id == session.impostor_id:
                player.secret_role = self._impostor_role
            else:
                player.secret_role = session.shared_word
            player.highlight = Highlight.NONE
        session.stage = Stage.ASKING
        session.questioner_index = 0
        session.ready_set.clear()
        session.vote_tally.clear()
        session.voted_set.clear()
        session.round_number += 1
        logger.info(f"[round-start] round={session.round_number} players={len(session.roster)}")
        logger.debug(f"[round-start] word={session.shared_word!r} impostor={session.impostor_id}")

    def _finish_round(self, session: Session) -> RoundOutcome:
        outcome = compute_round_outcome(session.vote_tally, session.impostor_id)
        session.stage = Stage.RESULTS
        # Tally stays for display; voters are only tracked while voting
        session.voted_set.clear()
        for player in session.roster:
            player.highlight = Highlight.NONE
        if outcome.decided:
            impostor = session.find(session.impostor_id)
            if impostor is None:
                raise SessionInvariantError('Votes were tallied but no impostor is assigned')
            if outcome.caught_impostor:
                impostor.highlight = Highlight.CAUGHT
                for player in session.roster:
                    if player.id != impostor.id:
                        player.score += self._round_points
            else:
                impostor.score += self._round_points
                impostor.highlight = Highlight.WINNER
        session.round_history.append({
            'round': session.round_number,
            'word': session.shared_word,
            'impostor_id': session.impostor_id,
            'most_voted_id': outcome.most_voted_id,
            'caught_impostor': outcome.caught_impostor,
        })
        if self._history_limit:
            del session.round_history[:-self._history_limit]
        logger.info(
            f"[round-end] round={session.round_number} most_voted={outcome.most_voted_id} "
            f"caught={outcome.caught_impostor}"
        )
        return outcome

    def _reset_round(self, session: Session) -> None:
        session.stage = Stage.WAITING
        session.vote_tally.clear()
        session.voted_set.clear()
        session.questioner_index = 0
        session.shared_word = None
        session.impostor_id = None
        for player in session.roster:
            player.secret_role = None
            player.highlight = Highlight.READY if player.id in session.ready_set else Highlight.NONE
        logger.info(f"[reset] round={session.round_number} back to waiting")

    # ---- internals ----

    @contextmanager
    def _mutation(self):
        with self._lock:
            backup = copy.deepcopy(self._session)
            try:
                yield self._session
                self._check_invariants(self._session)
            except SessionInvariantError as exc:
                self._session = backup
                logger.error(f"[invariant] {exc}; operation rolled back")
                raise
            except Exception:
                self._session = backup
                raise
            self._session.version += 1
            snapshot = SessionSnapshot.capture(self._session)
        for listener in list(self._listeners):
            listener(snapshot)

    def _new_id(self, session: Session) -> str:
        player_id = self._id_factory()
        while session.find(player_id) is not None:
            player_id = self._id_factory()
        return player_id

    def _check_invariants(self, session: Session) -> None:
        ids = [p.id for p in session.roster]
        if len(set(ids)) != len(ids):
            raise SessionInvariantError('Duplicate player id in roster')
        names = [p.name for p in session.roster]
        if len(set(names)) != len(names):
            raise SessionInvariantError('Duplicate player name in roster')
        if session.impostor_id is not None and session.impostor_id not in ids:
            raise SessionInvariantError(f"Impostor {session.impostor_id} is not in the roster")
        if session.roster and not 0 <= session.questioner_index < len(session.roster):
            raise SessionInvariantError(f"Questioner index {session.questioner_index} out of range")
        if not session.ready_set.issubset(ids):
            raise SessionInvariantError('Ready set references unknown players')
        if session.vote_tally and session.stage not in (Stage.VOTING, Stage.RESULTS):
            raise SessionInvariantError(f"Votes present in stage {session.stage.value}")
        if session.voted_set and session.stage != Stage.VOTING:
            raise SessionInvariantError(f"Voters tracked in stage {session.stage.value}")
        if any(p.score < 0 for p in session.roster):
            raise SessionInvariantError('Negative score')
