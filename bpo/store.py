"""SQLite-backed campaign snapshot store.

The projection engine never touches storage; this is the data-store
collaborator the CLI uses to keep the last loaded campaign list between
runs. Each :meth:`CampaignStore.save` writes a timestamped snapshot and
:meth:`CampaignStore.load` returns the newest one, or nothing when it is
older than the configured maximum age.

Usage::

    from bpo.store import CampaignStore

    store = CampaignStore("cache/campaigns.db", max_age_hours=24)
    store.save(campaigns)
    campaigns = store.load()      # [] when missing or stale
"""
from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from bpo.schema import Campaign

logger = logging.getLogger(__name__)


class CampaignStore:
    """Persistent campaign snapshots backed by SQLite."""

    def __init__(self, db_path: str | Path, max_age_hours: float = 24.0) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_age_hours = max_age_hours
        self._init_db()

    # ── DB setup ──────────────────────────────────────────────────────────────

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS campaign_snapshots (
                    id         INTEGER PRIMARY KEY AUTOINCREMENT,
                    saved_at   TEXT NOT NULL,
                    source     TEXT NOT NULL DEFAULT '',
                    payload    TEXT NOT NULL
                )
            """)
            conn.commit()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, check_same_thread=False)

    # ── Public API ────────────────────────────────────────────────────────────

    def save(
        self,
        campaigns: Sequence[Campaign],
        source: str = "",
        saved_at: Optional[datetime] = None,
    ) -> int:
        """Store a new snapshot; returns its id."""
        stamp = (saved_at or datetime.now(timezone.utc)).isoformat()
        payload = json.dumps([c.to_dict() for c in campaigns], ensure_ascii=False)
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO campaign_snapshots (saved_at, source, payload) VALUES (?, ?, ?)",
                (stamp, source, payload),
            )
            conn.commit()
        logger.info("Saved %d campaign(s) to %s", len(campaigns), self.db_path)
        return cur.lastrowid

    def latest(self) -> Optional[dict]:
        """Return {'id', 'saved_at', 'source', 'count'} for the newest snapshot."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, saved_at, source, payload FROM campaign_snapshots "
                "ORDER BY id DESC LIMIT 1"
            ).fetchone()
        if not row:
            return None
        saved_at = datetime.fromisoformat(row[1])
        if saved_at.tzinfo is None:
            saved_at = saved_at.replace(tzinfo=timezone.utc)
        return {
            "id": row[0],
            "saved_at": saved_at,
            "source": row[2],
            "count": len(json.loads(row[3])),
        }

    def is_stale(self, max_age_hours: Optional[float] = None, now: Optional[datetime] = None) -> bool:
        """True when there is no snapshot or the newest is older than the max age."""
        info = self.latest()
        if info is None:
            return True
        max_age = self.max_age_hours if max_age_hours is None else max_age_hours
        now = now or datetime.now(timezone.utc)
        return now - info["saved_at"] > timedelta(hours=max_age)

    def load(self, max_age_hours: Optional[float] = None, now: Optional[datetime] = None) -> List[Campaign]:
        """Return the newest snapshot's campaigns, or [] when missing or stale."""
        if self.is_stale(max_age_hours, now):
            return []
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload FROM campaign_snapshots ORDER BY id DESC LIMIT 1"
            ).fetchone()
        return [Campaign(**rec) for rec in json.loads(row[0])]

    def clear(self) -> int:
        """Delete all snapshots; returns number of rows removed."""
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM campaign_snapshots")
            conn.commit()
        return cur.rowcount
