"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy, marshmallow and the ledger engine holder as
module-level objects so they can be imported anywhere without creating
circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db`, `ma` or `ledger` from here wherever needed.

    from backend.app.extensions import db, ledger

Do not pass the app object to any extension at import time. That would
prevent running tests with a separate test app instance.
"""

from __future__ import annotations

from flask import Flask, current_app
from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Marshmallow instance. Import as:  from backend.app.extensions import ma
#
# IMPORTANT: schema inheritance rule:
#   All validation Schema classes (in app/schemas/) must inherit from
#   marshmallow.Schema directly, NOT from ma.Schema.
#
#   Reason: ma.Schema requires an active Flask application context. The
#   engine loads persisted blobs through PersistedLedgerSchema, and the engine
#   must work (and be unit-tested) without a Flask app.
ma = Marshmallow()


class LedgerExtension:
    """
    Holds one LedgerEngine per Flask app, created lazily on first use.

    The engine is created inside an application context because its
    SqlAlchemyLedgerStore loads the persisted blob through db.session.
    Confirmation for participant removal is supplied per request by the
    route, so the engine's default confirm callback is never consulted here.
    """

    EXTENSION_KEY = "ledger_engine"

    def __init__(self, app: Flask | None = None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.config.setdefault("LEDGER_STORAGE_KEY", "billSplitter.v1")
        app.config.setdefault("LEDGER_DEFAULT_PEOPLE", ["Apurv", "Dhaivat", "Nishant", "Rutvik"])
        app.config.setdefault("LEDGER_CURRENCY_SYMBOL", "€")
        app.extensions["ledger"] = self

    @property
    def engine(self):
        """The current app's LedgerEngine. Requires an application context."""
        app = current_app._get_current_object()
        engine = app.extensions.get(self.EXTENSION_KEY)
        if engine is None:
            engine = self._create_engine(app)
            app.extensions[self.EXTENSION_KEY] = engine
        return engine

    def discard_engine(self) -> None:
        """Drops the current app's engine; the next access reloads from storage."""
        current_app.extensions.pop(self.EXTENSION_KEY, None)

    @staticmethod
    def _create_engine(app: Flask):
        # Import here (not at module top) to avoid circular imports:
        # the services import models, which import `db` from this module.
        from backend.app.services.ledger_service import LedgerEngine
        from backend.app.services.persistence_service import SqlAlchemyLedgerStore

        store = SqlAlchemyLedgerStore(db.session, key=app.config["LEDGER_STORAGE_KEY"])
        return LedgerEngine(
            store=store,
            default_people=app.config["LEDGER_DEFAULT_PEOPLE"],
            currency_symbol=app.config["LEDGER_CURRENCY_SYMBOL"],
        )


ledger = LedgerExtension()
