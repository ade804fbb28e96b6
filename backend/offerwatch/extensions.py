# offerwatch/extensions.py
from __future__ import annotations
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()

SQLITE_BUSY_TIMEOUT_MS = 5000


@event.listens_for(Engine, "connect")
def configure_sqlite_for_scanners(dbapi_connection, _connection_record):
    # Three scanners write from their own threads: WAL keeps readers
    # unblocked, busy_timeout makes writers wait instead of failing.
    # SQLite only, other drivers are left alone.
    if "sqlite" not in type(dbapi_connection).__module__.lower():
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
    cursor.close()


def init_extensions(app):
    db.init_app(app)
    # Single table, no migrations: create it on boot
    with app.app_context():
        db.create_all()
