from clubvote.services.voting.ballots import (
    MAX_SCORE,
    MIN_SCORE,
    Ballot,
    normalize_scope,
    validate_identifier,
    validate_score,
)
from clubvote.services.voting.errors import (
    InvalidBallot,
    InvalidScore,
    StorageUnavailable,
    VotingError,
)
from clubvote.services.voting.star import (
    CandidateAggregate,
    RunoffResult,
    TallyResult,
    aggregate_scores,
    compute_runoff,
    select_finalists,
    tally,
    tally_score_totals,
    tally_star_votes,
)
from clubvote.services.voting.store import (
    BallotStore,
    InMemoryBallotStore,
    SqlBallotStore,
)

__all__ = [
    "MAX_SCORE",
    "MIN_SCORE",
    "Ballot",
    "BallotStore",
    "CandidateAggregate",
    "InMemoryBallotStore",
    "InvalidBallot",
    "InvalidScore",
    "RunoffResult",
    "SqlBallotStore",
    "StorageUnavailable",
    "TallyResult",
    "VotingError",
    "aggregate_scores",
    "compute_runoff",
    "normalize_scope",
    "select_finalists",
    "tally",
    "tally_score_totals",
    "tally_star_votes",
    "validate_identifier",
    "validate_score",
]
