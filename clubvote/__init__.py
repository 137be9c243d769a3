from flask import Flask

from clubvote.config import Config
from clubvote.extensions import db, migrate
from clubvote.routes import register_routes


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    migrate.init_app(app, db)

    register_routes(app)
    return app


__all__ = ["db", "migrate", "create_app"]
