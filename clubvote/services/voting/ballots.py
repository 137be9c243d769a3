from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from clubvote.services.voting.errors import InvalidBallot, InvalidScore

MIN_SCORE = 0
MAX_SCORE = 5
MAX_IDENTIFIER_LENGTH = 255


@dataclass(frozen=True)
class Ballot:
    voter_id: str
    candidate_id: str
    score: int
    election_scope: Optional[str] = None
    id: Optional[int] = None
    updated_at: Optional[datetime] = None

    @property
    def key(self):
        return (self.voter_id, self.candidate_id, self.election_scope)

    def to_dict(self):
        return {
            "id": self.id,
            "voter_id": self.voter_id,
            "candidate_id": self.candidate_id,
            "score": self.score,
            "election_scope": self.election_scope,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def validate_score(value):
    """Coerce a submitted score to an int in 0..5 or raise InvalidScore.

    Integer-valued floats and numeric strings are accepted; booleans,
    fractions and anything out of range are not.
    """
    if isinstance(value, bool):
        raise InvalidScore(value)

    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text)
        except ValueError:
            try:
                value = float(text)
            except ValueError:
                raise InvalidScore(value) from None

    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidScore(value)
        value = int(value)

    if not isinstance(value, int):
        raise InvalidScore(value)
    if value < MIN_SCORE or value > MAX_SCORE:
        raise InvalidScore(value)
    return value


def validate_identifier(field, value):
    if not isinstance(value, str):
        raise InvalidBallot(field, "must be a string")
    value = value.strip()
    if not value:
        raise InvalidBallot(field, "is required")
    if len(value) > MAX_IDENTIFIER_LENGTH:
        raise InvalidBallot(
            field, f"must be at most {MAX_IDENTIFIER_LENGTH} characters"
        )
    return value


def normalize_scope(election_scope):
    # Blank scopes collapse to the legacy ungrouped election.
    if election_scope is None:
        return None
    if not isinstance(election_scope, str):
        raise InvalidBallot("election_scope", "must be a string")
    election_scope = election_scope.strip()
    if not election_scope:
        return None
    if len(election_scope) > MAX_IDENTIFIER_LENGTH:
        raise InvalidBallot(
            "election_scope", f"must be at most {MAX_IDENTIFIER_LENGTH} characters"
        )
    return election_scope
