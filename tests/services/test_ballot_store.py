import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from clubvote.extensions import db
from clubvote.models import ScoreBallot
from clubvote.services.voting import (
    InMemoryBallotStore,
    InvalidBallot,
    InvalidScore,
    SqlBallotStore,
    StorageUnavailable,
    tally,
    validate_score,
)


@pytest.mark.parametrize("value, expected", [(0, 0), (5, 5), ("3", 3), (4.0, 4), (" 2 ", 2)])
def test_validate_score_accepts_integers_in_range(value, expected):
    assert validate_score(value) == expected


@pytest.mark.parametrize("value", [-1, 6, 2.5, "abc", "", None, True, [3]])
def test_validate_score_rejects_bad_values(value):
    with pytest.raises(InvalidScore):
        validate_score(value)


def test_sql_upsert_overwrites_existing_triple(db_session):
    store = SqlBallotStore()

    first = store.upsert_ballot("v1", "A", 2, "board")
    second = store.upsert_ballot("v1", "A", 5, "board")

    assert second.id == first.id
    assert second.score == 5
    assert ScoreBallot.query.count() == 1


def test_sql_upsert_overwrites_legacy_scope_ballot(db_session):
    store = SqlBallotStore()

    store.upsert_ballot("v1", "A", 2)
    store.upsert_ballot("v1", "A", 3, election_scope="  ")

    rows = ScoreBallot.query.all()
    assert len(rows) == 1
    assert rows[0].score == 3
    assert rows[0].election_scope == ""
    assert rows[0].to_ballot().election_scope is None


def test_sql_upsert_rejects_invalid_score_before_writing(db_session):
    store = SqlBallotStore()

    with pytest.raises(InvalidScore):
        store.upsert_ballot("v1", "A", 7)
    with pytest.raises(InvalidBallot):
        store.upsert_ballot("   ", "A", 3)

    assert ScoreBallot.query.count() == 0


def test_sql_read_ballots_is_exact_scope_match(db_session):
    store = SqlBallotStore()
    store.upsert_ballot("v1", "A", 4)
    store.upsert_ballot("v1", "A", 1, "board")
    store.upsert_ballot("v2", "B", 3, "treasurer")

    legacy = store.read_ballots()
    board = store.read_ballots("board")

    assert [(b.voter_id, b.candidate_id, b.score) for b in legacy] == [("v1", "A", 4)]
    assert [(b.voter_id, b.candidate_id, b.score) for b in board] == [("v1", "A", 1)]


def test_sql_read_ballots_for_voter_orders_by_candidate(db_session):
    store = SqlBallotStore()
    store.upsert_ballot("v1", "C", 1)
    store.upsert_ballot("v1", "A", 2)
    store.upsert_ballot("v2", "B", 3)

    ballots = store.read_ballots_for_voter("v1")

    assert [ballot.candidate_id for ballot in ballots] == ["A", "C"]


def test_sql_store_tally_matches_memory_store(db_session, scenario_ballots):
    store = SqlBallotStore()
    for ballot in scenario_ballots:
        store.upsert_ballot(ballot.voter_id, ballot.candidate_id, ballot.score)

    assert tally(store) == tally(InMemoryBallotStore(scenario_ballots))


def test_sql_tally_does_not_modify_ballots(db_session, scenario_ballots):
    store = SqlBallotStore()
    for ballot in scenario_ballots:
        store.upsert_ballot(ballot.voter_id, ballot.candidate_id, ballot.score)
    before = [(row.id, row.score) for row in ScoreBallot.query.order_by(ScoreBallot.id)]

    tally(store)

    after = [(row.id, row.score) for row in ScoreBallot.query.order_by(ScoreBallot.id)]
    assert before == after


def test_sql_read_failure_raises_storage_unavailable(db_session):
    store = SqlBallotStore()
    db.drop_all()

    with pytest.raises(StorageUnavailable):
        store.read_ballots()
    with pytest.raises(StorageUnavailable):
        tally(store, "board")


def test_sql_health_check(db_session):
    assert SqlBallotStore().health_check() is True


def test_memory_store_keeps_scopes_apart(memory_store):
    memory_store.upsert_ballot("v1", "A", 3)
    memory_store.upsert_ballot("v1", "A", 5, "board")

    assert [b.score for b in memory_store.read_ballots()] == [3]
    assert [b.score for b in memory_store.read_ballots("board")] == [5]
    assert memory_store.read_ballots("treasurer") == []


@pytest.mark.parametrize("election_scope", ["board", None])
def test_database_rejects_second_row_for_same_triple(db_session, election_scope):
    stored = ScoreBallot.stored_scope(election_scope)
    db_session.add(ScoreBallot(voter_id="v1", candidate_id="A", score=5, election_scope=stored))
    db_session.commit()

    db_session.add(ScoreBallot(voter_id="v1", candidate_id="A", score=1, election_scope=stored))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()

    assert ScoreBallot.query.count() == 1


@pytest.mark.parametrize("election_scope", ["board", None])
def test_sql_upsert_overwrites_row_inserted_concurrently(
    db_session, monkeypatch, election_scope
):
    db_session.add(
        ScoreBallot(
            voter_id="v1",
            candidate_id="A",
            score=1,
            election_scope=ScoreBallot.stored_scope(election_scope),
        )
    )
    db_session.commit()

    store = SqlBallotStore()
    find_row = store._find_row
    lookups = []

    def miss_first_lookup(*args):
        # The first lookup runs before the other writer's insert is visible.
        lookups.append(args)
        if len(lookups) == 1:
            return None
        return find_row(*args)

    monkeypatch.setattr(store, "_find_row", miss_first_lookup)

    ballot = store.upsert_ballot("v1", "A", 4, election_scope)

    assert len(lookups) == 2
    assert ballot.score == 4
    assert ballot.election_scope == election_scope
    rows = ScoreBallot.query.all()
    assert [(row.voter_id, row.candidate_id, row.score) for row in rows] == [("v1", "A", 4)]
    assert [b.score for b in store.read_ballots(election_scope)] == [4]


def test_sql_upsert_failure_after_commit_raises_storage_unavailable(
    db_session, monkeypatch
):
    def refresh_fails(self):
        raise OperationalError("SELECT score_ballots", {}, Exception("connection lost"))

    monkeypatch.setattr(ScoreBallot, "to_ballot", refresh_fails)

    with pytest.raises(StorageUnavailable):
        SqlBallotStore().upsert_ballot("v1", "A", 3)
