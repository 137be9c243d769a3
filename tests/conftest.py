from pathlib import Path
import sys
import os

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# Safety default for any app creation during test imports.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from clubvote import create_app
from clubvote.extensions import db
from clubvote.services.voting import Ballot, InMemoryBallotStore


@pytest.fixture()
def app(tmp_path: Path):
    db_file = tmp_path / "test.sqlite3"
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_file}",
            "SQLALCHEMY_ENGINE_OPTIONS": {},
        }
    )

    with app.app_context():
        driver = db.engine.url.drivername
        if driver != "sqlite":
            raise RuntimeError(
                f"Test database must be SQLite, got '{driver}'. Refusing to run destructive test setup."
            )
        db.drop_all()
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def db_session(app):
    with app.app_context():
        yield db.session


@pytest.fixture()
def memory_store():
    return InMemoryBallotStore()


@pytest.fixture()
def scenario_ballots():
    # A totals 11, B totals 12; one voter each way plus one tie.
    return [
        Ballot("v1", "A", 5),
        Ballot("v1", "B", 3),
        Ballot("v2", "A", 4),
        Ballot("v2", "B", 4),
        Ballot("v3", "A", 2),
        Ballot("v3", "B", 5),
    ]
