from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import json
import sqlite3

from tradeoffer_bot.models import PollSnapshot

_CURRENT_KEY = "current"


class Storage:
    def __init__(self, database_path: str) -> None:
        self.path = Path(database_path)
        if database_path != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(database_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._create_schema()

    def _create_schema(self) -> None:
        cursor = self.conn.cursor()
        cursor.executescript(
            """
            CREATE TABLE IF NOT EXISTS poll_state (
              key TEXT PRIMARY KEY,
              ts TEXT NOT NULL,
              offer_count INTEGER NOT NULL,
              payload TEXT NOT NULL
            );
            """
        )
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def save_poll_snapshot(self, snapshot: PollSnapshot) -> None:
        self.conn.execute(
            """
            INSERT INTO poll_state (key, ts, offer_count, payload)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
              ts = excluded.ts,
              offer_count = excluded.offer_count,
              payload = excluded.payload
            """,
            (
                _CURRENT_KEY,
                datetime.now(tz=timezone.utc).isoformat(),
                len(snapshot.timestamps),
                json.dumps(snapshot.to_dict(), separators=(",", ":"), default=str),
            ),
        )
        self.conn.commit()

    def load_poll_snapshot(self) -> PollSnapshot | None:
        row = self.conn.execute(
            "SELECT payload FROM poll_state WHERE key = ?", (_CURRENT_KEY,)
        ).fetchone()
        if row is None:
            return None
        return PollSnapshot.from_dict(json.loads(row["payload"]))
