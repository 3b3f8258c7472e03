import threading
from contextlib import contextmanager
from sqlite3 import Connection, Row
from typing import Iterator, Optional
from cmxpush.utils.validate import ClientRecord, normalize_mac
from cmxpush.storage.db import init_db
from cmxpush.utils.log import get_logger

logger = get_logger(__name__)

# number of per-MAC lock stripes
LOCK_STRIPES = 64


def _to_record(row: Row) -> ClientRecord:
    return ClientRecord(
        id=row["id"],
        mac=row["mac"],
        seen_at=row["seen_at"],
        seen_millis=row["seen_millis"],
        lat=row["lat"],
        lng=row["lng"],
        unc=row["unc"],
        n_samples=row["n_samples"],
    )


class ClientStore:
    """
    Encapsulates all inserts/queries against the client location table.

    Every statement on the shared connection runs under one connection lock,
    so a reader never sees half of an upsert. Callers that need a
    read-compare-write sequence on one MAC wrap it in `lock(mac)`.
    """

    def __init__(self, db_path: str = ":memory:"):
        """
        Create/connect and apply schema if needed.
        """
        self.db_path = db_path
        self.conn: Connection = init_db(db_path)
        self._conn_lock = threading.RLock()
        self._mac_locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

    @contextmanager
    def lock(self, mac: str) -> Iterator[None]:
        """
        Hold the mutual-exclusion stripe owning `mac` for the duration of the block.
        """
        stripe = self._mac_locks[hash(normalize_mac(mac)) % LOCK_STRIPES]
        with stripe:
            yield

    def get_or_create(self, mac: str) -> ClientRecord:
        """
        Return the stored record for `mac`, inserting a zeroed placeholder if absent.
        """
        mac = normalize_mac(mac)
        with self._conn_lock, self.conn:
            self.conn.execute(
                "INSERT OR IGNORE INTO clients (mac, seen_millis) VALUES (?, 0)",
                (mac,),
            )
            row = self.conn.execute(
                "SELECT * FROM clients WHERE mac = ?", (mac,)
            ).fetchone()
        return _to_record(row)

    def save(self, record: ClientRecord) -> ClientRecord:
        """
        Insert a record or overwrite every mutable column of the existing one.
        """
        mac = normalize_mac(record.mac)
        with self._conn_lock, self.conn:
            self.conn.execute(
                """
                INSERT INTO clients
                  (mac, seen_at, seen_millis, lat, lng, unc, n_samples)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(mac) DO UPDATE SET
                  seen_at     = excluded.seen_at,
                  seen_millis = excluded.seen_millis,
                  lat         = excluded.lat,
                  lng         = excluded.lng,
                  unc         = excluded.unc,
                  n_samples   = excluded.n_samples
                """,
                (
                    mac,
                    record.seen_at,
                    record.seen_millis,
                    record.lat,
                    record.lng,
                    record.unc,
                    record.n_samples,
                ),
            )
            row = self.conn.execute(
                "SELECT * FROM clients WHERE mac = ?", (mac,)
            ).fetchone()
        return _to_record(row)

    def delete(self, mac: str) -> bool:
        """
        Remove the record for `mac`. Returns whether a row was deleted.
        """
        with self._conn_lock, self.conn:
            cur = self.conn.execute(
                "DELETE FROM clients WHERE mac = ?", (normalize_mac(mac),)
            )
        return cur.rowcount > 0

    def get(self, mac: str) -> Optional[ClientRecord]:
        """
        Return the record for `mac`, or None if the client was never stored.
        """
        with self._conn_lock:
            row = self.conn.execute(
                "SELECT * FROM clients WHERE mac = ?", (normalize_mac(mac),)
            ).fetchone()
        return _to_record(row) if row is not None else None

    def list_all(self) -> list[ClientRecord]:
        """
        Return every stored record in insertion order.
        """
        with self._conn_lock:
            rows = self.conn.execute("SELECT * FROM clients ORDER BY id").fetchall()
        return [_to_record(row) for row in rows]

    def count(self) -> int:
        with self._conn_lock:
            return self.conn.execute("SELECT COUNT(*) FROM clients").fetchone()[0]

    def close(self) -> None:
        with self._conn_lock:
            self.conn.close()
