from typing import Mapping, NamedTuple, Optional

from impostor.models import VoteEntry


class RoundOutcome(NamedTuple):
    most_voted_id: Optional[str]
    caught_impostor: bool

    @property
    def decided(self) -> bool:
        return self.most_voted_id is not None


def most_voted(tally: Mapping[str, VoteEntry]) -> Optional[str]:
    """Return the plurality-voted candidate.

    Candidates are scanned in the order they first received a vote and only a
    strictly higher count replaces the leader, so on a tie the candidate that
    reached the maximum first keeps it.
    """
    leader = None
    best = 0
    for candidate_id, entry in tally.items():
        if entry.count > best:
            leader = candidate_id
            best = entry.count
    return leader


def compute_round_outcome(tally: Mapping[str, VoteEntry], impostor_id: Optional[str]) -> RoundOutcome:
    leader = most_voted(tally)
    return RoundOutcome(
        most_voted_id=leader,
        caught_impostor=leader is not None and leader == impostor_id,
    )
