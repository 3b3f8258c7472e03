import sqlite3
from pathlib import Path
from cmxpush.utils.log import get_logger

logger = get_logger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


def get_connection(db_path: str) -> sqlite3.Connection:
    """
    Open the client-location database.

    One connection is shared by every request thread of the receiver
    (ClientStore serializes access to it), so the same-thread check is off.
    ":memory:" gives a store that lives as long as the process.
    """
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str) -> sqlite3.Connection:
    """
    Create the `clients` table if missing and return the live connection.
    Reopening an existing file database keeps its rows.
    """
    conn = get_connection(db_path)
    logger.debug("Applying %s to %s", SCHEMA_PATH.name, db_path)
    conn.executescript(SCHEMA_PATH.read_text())
    conn.commit()
    return conn
