# File: brainbattle_app/db_instance.py
import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


@event.listens_for(Engine, "connect")
def _configure_sqlite(dbapi_connection, _connection_record):
    """Per-connection SQLite settings.

    Foreign keys are enforced so results and cheat reports cannot point at a
    missing battle session. File databases additionally run in WAL mode with a
    busy timeout, letting the stale-session sweep and result submissions
    overlap; in-memory databases (tests) cannot use WAL.
    """

    if not isinstance(dbapi_connection, sqlite3.Connection):
        return

    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON;")
        database_file = cursor.execute("PRAGMA database_list;").fetchone()[2]
        if database_file:
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute("PRAGMA busy_timeout=30000;")
    finally:
        cursor.close()
