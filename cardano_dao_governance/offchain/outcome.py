"""
Outcome of a proposal once its voting period has ended.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from cardano_dao_governance.onchain.proposal import (
    FailedQuorum,
    FailedThreshold,
    Passed,
    ProposalStatus,
)


@dataclass
class Outcome:
    status: ProposalStatus
    total_votes: int
    winning_option: Optional[int] = None
    # options sharing the maximum vote count, the lowest index wins
    tied_options: List[int] = field(default_factory=list)

    @property
    def is_tie(self) -> bool:
        return len(self.tied_options) > 1


def evaluate_outcome(tally: List[int], quorum: int, threshold: int) -> Outcome:
    """
    Terminal status of a proposal with the given tally.

    Quorum is checked first. Otherwise the option with most votes (lowest index on ties)
    passes if its share of all votes, in percent, reaches the threshold.
    """
    total = sum(tally)
    if total < quorum:
        return Outcome(FailedQuorum(), total)
    if total == 0:
        return Outcome(FailedThreshold(), total)
    max_votes = max(tally)
    winner = tally.index(max_votes)
    tied = [i for i, votes in enumerate(tally) if votes == max_votes]
    # 100 * max_votes / total >= threshold, without rounding
    if 100 * max_votes >= threshold * total:
        return Outcome(Passed(winner), total, winner, tied)
    return Outcome(FailedThreshold(), total, winner, tied)
