from datetime import datetime, timezone

from clubvote.extensions import db
from clubvote.services.voting.ballots import Ballot

# The legacy, ungrouped election is stored as an empty scope so that the
# unique constraint covers it; NULLs would compare as distinct.
LEGACY_SCOPE = ""


def _utcnow():
    return datetime.now(timezone.utc)


class ScoreBallot(db.Model):
    __tablename__ = "score_ballots"
    __table_args__ = (
        db.UniqueConstraint(
            "voter_id",
            "candidate_id",
            "election_scope",
            name="uq_score_ballots_voter_candidate_scope",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    voter_id = db.Column(db.String(255), nullable=False, index=True)
    candidate_id = db.Column(db.String(255), nullable=False)
    score = db.Column(db.Integer, nullable=False)
    election_scope = db.Column(
        db.String(255),
        nullable=False,
        default=LEGACY_SCOPE,
        server_default=LEGACY_SCOPE,
        index=True,
    )
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    @staticmethod
    def stored_scope(election_scope):
        return LEGACY_SCOPE if election_scope is None else election_scope

    def to_ballot(self):
        return Ballot(
            voter_id=self.voter_id,
            candidate_id=self.candidate_id,
            score=self.score,
            election_scope=self.election_scope or None,
            id=self.id,
            updated_at=self.updated_at,
        )
