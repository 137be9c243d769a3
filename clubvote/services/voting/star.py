"""STAR (Score Then Automatic Runoff) tallying.

Scores are summed per candidate, the two highest totals become finalists,
and the finalist preferred by more voters in a head-to-head comparison of
the same ballots wins.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from clubvote.services.voting.ballots import normalize_scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateAggregate:
    candidate_id: str
    total_score: int
    vote_count: int
    average_score: float

    def to_dict(self):
        return {
            "candidate_id": self.candidate_id,
            "total_score": self.total_score,
            "vote_count": self.vote_count,
            "average_score": self.average_score,
        }


@dataclass(frozen=True)
class RunoffResult:
    finalist_a: str
    finalist_b: str
    wins_a: int
    wins_b: int
    ties: int

    @property
    def winner(self):
        # Equal win counts (including 0/0) go to finalist A, the score leader.
        if self.wins_b > self.wins_a:
            return self.finalist_b
        return self.finalist_a

    def votes_for(self, candidate_id):
        if candidate_id == self.finalist_a:
            return self.wins_a
        if candidate_id == self.finalist_b:
            return self.wins_b
        return None

    def to_dict(self):
        return {
            "finalist_a": self.finalist_a,
            "finalist_b": self.finalist_b,
            "wins_a": self.wins_a,
            "wins_b": self.wins_b,
            "ties": self.ties,
            "winner": self.winner,
        }


@dataclass(frozen=True)
class TallyResult:
    election_scope: Optional[str]
    aggregates: Tuple[CandidateAggregate, ...]
    finalists: Tuple[str, ...]
    runoff: Optional[RunoffResult]
    winner: Optional[str]
    winners: Tuple[str, ...]

    @property
    def is_degenerate(self):
        return self.runoff is None

    def to_dict(self):
        candidates = []
        for row in self.aggregates:
            entry = row.to_dict()
            if self.runoff is not None and row.candidate_id in self.finalists:
                entry["runoff_votes"] = self.runoff.votes_for(row.candidate_id)
            entry["winner"] = row.candidate_id in self.winners
            candidates.append(entry)

        return {
            "election_scope": self.election_scope,
            "candidates": candidates,
            "total_candidates": len(candidates),
            "finalists": list(self.finalists),
            "runoff": self.runoff.to_dict() if self.runoff is not None else None,
            "winner": self.winner,
            "winners": list(self.winners),
            "is_degenerate": self.is_degenerate,
        }


def _live_ballots(ballots):
    # A later ballot for the same voter and candidate replaces the earlier one.
    latest = {}
    for ballot in ballots:
        latest[(ballot.voter_id, ballot.candidate_id)] = ballot
    return [ballot for ballot in latest.values() if ballot.score > 0]


def _ranking_key(row):
    return (-row.total_score, -row.average_score, row.candidate_id)


def aggregate_scores(ballots):
    totals = {}
    counts = {}

    for ballot in _live_ballots(ballots):
        totals[ballot.candidate_id] = totals.get(ballot.candidate_id, 0) + ballot.score
        counts[ballot.candidate_id] = counts.get(ballot.candidate_id, 0) + 1

    aggregates = []
    for candidate_id, total in totals.items():
        count = counts[candidate_id]
        aggregates.append(
            CandidateAggregate(
                candidate_id=candidate_id,
                total_score=total,
                vote_count=count,
                average_score=total / count if count else 0.0,
            )
        )

    aggregates.sort(key=_ranking_key)
    return tuple(aggregates)


def select_finalists(aggregates):
    ranked = sorted((row for row in aggregates if row.vote_count > 0), key=_ranking_key)
    return tuple(row.candidate_id for row in ranked[:2])


def compute_runoff(finalist_a, finalist_b, ballots):
    """Count head-to-head preferences between two finalists.

    Only voters who scored both finalists take part; a voter who scored
    just one of them is left out of wins and ties alike.
    """
    if finalist_a == finalist_b:
        raise ValueError("Runoff needs two distinct finalists")

    finalists = (finalist_a, finalist_b)
    scores_by_voter = {}
    for ballot in _live_ballots(ballots):
        if ballot.candidate_id in finalists:
            scores_by_voter.setdefault(ballot.voter_id, {})[ballot.candidate_id] = ballot.score

    wins_a = 0
    wins_b = 0
    ties = 0
    for scores in scores_by_voter.values():
        if finalist_a not in scores or finalist_b not in scores:
            continue
        score_a = scores[finalist_a]
        score_b = scores[finalist_b]
        if score_a > score_b:
            wins_a += 1
        elif score_b > score_a:
            wins_b += 1
        else:
            ties += 1

    return RunoffResult(
        finalist_a=finalist_a,
        finalist_b=finalist_b,
        wins_a=wins_a,
        wins_b=wins_b,
        ties=ties,
    )


def tally_star_votes(ballots, election_scope=None):
    ballots = list(ballots)
    aggregates = aggregate_scores(ballots)
    finalists = select_finalists(aggregates)

    if len(finalists) < 2:
        # Fewer than two scored candidates: no runoff, and whoever is left
        # is flagged as a winner.
        logger.info(
            "Degenerate STAR election (scope %s): %d scored candidate(s)",
            election_scope,
            len(finalists),
        )
        return TallyResult(
            election_scope=election_scope,
            aggregates=aggregates,
            finalists=finalists,
            runoff=None,
            winner=finalists[0] if finalists else None,
            winners=finalists,
        )

    runoff = compute_runoff(finalists[0], finalists[1], ballots)
    logger.info(
        "STAR tally (scope %s): %d candidates, runoff %s %d - %d %s (%d ties), winner %s",
        election_scope,
        len(aggregates),
        runoff.finalist_a,
        runoff.wins_a,
        runoff.wins_b,
        runoff.finalist_b,
        runoff.ties,
        runoff.winner,
    )
    return TallyResult(
        election_scope=election_scope,
        aggregates=aggregates,
        finalists=finalists,
        runoff=runoff,
        winner=runoff.winner,
        winners=(runoff.winner,),
    )


def tally(store, election_scope=None):
    """Tally the current ballots of one election scope.

    Read-only over ``store``. StorageUnavailable from the store propagates
    unchanged.
    """
    election_scope = normalize_scope(election_scope)
    return tally_star_votes(store.read_ballots(election_scope), election_scope)


def tally_score_totals(store, election_scope=None):
    return aggregate_scores(store.read_ballots(election_scope))
