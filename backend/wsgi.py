"""
wsgi.py — Entry point for `flask --app backend.wsgi run` and WSGI servers.

The config is picked from FLASK_ENV (development | testing | production).
"""

import os

from backend.app import create_app
from backend.app.extensions import db

app = create_app(os.getenv("FLASK_ENV", "development"))


@app.cli.command("init-db")
def init_db() -> None:
    """Creates the ledger tables without running alembic (local use)."""
    db.create_all()
    print("ledger_records ready.")
