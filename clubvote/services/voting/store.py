import threading
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from clubvote.extensions import db
from clubvote.models import ScoreBallot
from clubvote.services.voting.ballots import (
    Ballot,
    normalize_scope,
    validate_identifier,
    validate_score,
)
from clubvote.services.voting.errors import StorageUnavailable


class BallotStore:
    """Read/write contract the tally engine depends on.

    Scope filtering is exact-match: ``None`` selects the legacy ungrouped
    election, never "every scope".
    """

    def upsert_ballot(self, voter_id, candidate_id, score, election_scope=None):
        raise NotImplementedError

    def read_ballots(self, election_scope=None):
        raise NotImplementedError

    def read_ballots_for_voter(self, voter_id, election_scope=None):
        raise NotImplementedError

    def health_check(self):
        return True


def _clean_ballot_fields(voter_id, candidate_id, score, election_scope):
    return (
        validate_identifier("voter_id", voter_id),
        validate_identifier("candidate_id", candidate_id),
        validate_score(score),
        normalize_scope(election_scope),
    )


class InMemoryBallotStore(BallotStore):
    def __init__(self, ballots=()):
        self._lock = threading.Lock()
        self._ballots = {}
        self._next_id = 1
        for ballot in ballots:
            self.upsert_ballot(
                ballot.voter_id,
                ballot.candidate_id,
                ballot.score,
                ballot.election_scope,
            )

    def upsert_ballot(self, voter_id, candidate_id, score, election_scope=None):
        voter_id, candidate_id, score, election_scope = _clean_ballot_fields(
            voter_id, candidate_id, score, election_scope
        )
        key = (voter_id, candidate_id, election_scope)
        with self._lock:
            existing = self._ballots.get(key)
            if existing is None:
                ballot_id = self._next_id
                self._next_id += 1
            else:
                ballot_id = existing.id
            ballot = Ballot(
                voter_id=voter_id,
                candidate_id=candidate_id,
                score=score,
                election_scope=election_scope,
                id=ballot_id,
                updated_at=datetime.now(timezone.utc),
            )
            self._ballots[key] = ballot
        return ballot

    def read_ballots(self, election_scope=None):
        election_scope = normalize_scope(election_scope)
        with self._lock:
            ballots = [
                ballot
                for ballot in self._ballots.values()
                if ballot.election_scope == election_scope
            ]
        return sorted(ballots, key=lambda b: (b.voter_id, b.candidate_id))

    def read_ballots_for_voter(self, voter_id, election_scope=None):
        return [
            ballot
            for ballot in self.read_ballots(election_scope)
            if ballot.voter_id == voter_id
        ]


class SqlBallotStore(BallotStore):
    """Ballot store backed by the ``score_ballots`` table.

    Must be used inside a Flask application context.
    """

    def _find_row(self, voter_id, candidate_id, election_scope):
        return ScoreBallot.query.filter_by(
            voter_id=voter_id,
            candidate_id=candidate_id,
            election_scope=ScoreBallot.stored_scope(election_scope),
        ).first()

    def upsert_ballot(self, voter_id, candidate_id, score, election_scope=None):
        voter_id, candidate_id, score, election_scope = _clean_ballot_fields(
            voter_id, candidate_id, score, election_scope
        )

        # A concurrent insert of the same triple surfaces as an IntegrityError;
        # the second attempt finds that row and overwrites it.
        for attempt in range(2):
            try:
                row = self._find_row(voter_id, candidate_id, election_scope)
                if row is None:
                    row = ScoreBallot(
                        voter_id=voter_id,
                        candidate_id=candidate_id,
                        score=score,
                        election_scope=ScoreBallot.stored_scope(election_scope),
                    )
                    db.session.add(row)
                else:
                    row.score = score
                db.session.commit()
                ballot = row.to_ballot()
                break
            except IntegrityError as exc:
                db.session.rollback()
                if attempt:
                    current_app.logger.exception("Ballot upsert conflict persisted")
                    raise StorageUnavailable("Failed to save ballot") from exc
            except SQLAlchemyError as exc:
                db.session.rollback()
                current_app.logger.exception("Database error upserting ballot")
                raise StorageUnavailable("Failed to save ballot") from exc

        current_app.logger.info(
            "Ballot saved: voter %s, candidate %s, scope %s",
            voter_id,
            candidate_id,
            election_scope,
        )
        return ballot

    def read_ballots(self, election_scope=None):
        election_scope = normalize_scope(election_scope)
        try:
            rows = (
                ScoreBallot.query.filter_by(
                    election_scope=ScoreBallot.stored_scope(election_scope)
                )
                .order_by(ScoreBallot.voter_id, ScoreBallot.candidate_id, ScoreBallot.id)
                .all()
            )
            return [row.to_ballot() for row in rows]
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Database error reading ballots")
            raise StorageUnavailable("Failed to read ballots") from exc

    def read_ballots_for_voter(self, voter_id, election_scope=None):
        election_scope = normalize_scope(election_scope)
        try:
            rows = (
                ScoreBallot.query.filter_by(
                    voter_id=voter_id,
                    election_scope=ScoreBallot.stored_scope(election_scope),
                )
                .order_by(ScoreBallot.candidate_id, ScoreBallot.id)
                .all()
            )
            return [row.to_ballot() for row in rows]
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Database error reading voter ballots")
            raise StorageUnavailable("Failed to read ballots") from exc

    def health_check(self):
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Database health check failed")
            return False
        return True
