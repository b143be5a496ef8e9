from __future__ import annotations

from dataclasses import astuple, fields
from pathlib import Path
import sqlite3
from typing import Sequence

from social_kpi_agent.errors import PersistenceError
from social_kpi_agent.models import (
    CollectionKind,
    CountryShare,
    HashtagRecord,
    OverviewSnapshot,
    PeriodKey,
    PostRecord,
)


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS overview (
        organization TEXT NOT NULL,
        period TEXT NOT NULL,
        followers INTEGER,
        reach INTEGER,
        reach_rate REAL,
        engagements INTEGER,
        engagement_rate REAL,
        PRIMARY KEY (organization, period)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS countries (
        organization TEXT NOT NULL,
        period TEXT NOT NULL,
        country TEXT NOT NULL,
        users INTEGER,
        percentage REAL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS posts (
        organization TEXT NOT NULL,
        period TEXT NOT NULL,
        text TEXT,
        post_type TEXT,
        reactions INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS hashtags (
        organization TEXT NOT NULL,
        period TEXT NOT NULL,
        hashtag TEXT NOT NULL,
        score REAL,
        reach INTEGER,
        reactions INTEGER,
        comments INTEGER,
        shares INTEGER,
        video_views INTEGER
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_countries_key ON countries (organization, period)",
    "CREATE INDEX IF NOT EXISTS idx_posts_key ON posts (organization, period)",
    "CREATE INDEX IF NOT EXISTS idx_hashtags_key ON hashtags (organization, period)",
)

# Table name doubles as the collection kind value; column order follows the record dataclass.
COLLECTION_RECORDS: dict[CollectionKind, type] = {
    CollectionKind.COUNTRIES: CountryShare,
    CollectionKind.POSTS: PostRecord,
    CollectionKind.HASHTAGS: HashtagRecord,
}

CollectionRecord = CountryShare | PostRecord | HashtagRecord


def _columns(record_type: type) -> list[str]:
    return [item.name for item in fields(record_type)]


class SnapshotStore:
    """SQLite-backed snapshots keyed by (organization, period).

    The overview summary is upserted; countries, posts and hashtags are replaced
    as a whole inside one transaction per collection.
    """

    def __init__(self, path: str | Path = "analytics.db") -> None:
        self.path = str(path)
        try:
            self._conn = sqlite3.connect(self.path)
            with self._conn:
                for statement in SCHEMA:
                    self._conn.execute(statement)
        except sqlite3.Error as exc:
            raise PersistenceError(f"cannot open snapshot store {self.path}: {exc}") from exc

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SnapshotStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def put_summary(self, key: PeriodKey, snapshot: OverviewSnapshot) -> None:
        if snapshot.key != key:
            raise ValueError(f"snapshot key {snapshot.key} does not match {key}")
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO overview
                    (organization, period, followers, reach, reach_rate, engagements, engagement_rate)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (organization, period) DO UPDATE SET
                        followers = excluded.followers,
                        reach = excluded.reach,
                        reach_rate = excluded.reach_rate,
                        engagements = excluded.engagements,
                        engagement_rate = excluded.engagement_rate
                    """,
                    (
                        key.organization,
                        key.period,
                        int(snapshot.followers),
                        int(snapshot.reach),
                        float(snapshot.reach_rate),
                        int(snapshot.engagements),
                        float(snapshot.engagement_rate),
                    ),
                )
        except (sqlite3.Error, OverflowError) as exc:
            raise PersistenceError(f"cannot save overview for {key}: {exc}") from exc

    def get_summary(self, organization: str, period: str) -> OverviewSnapshot | None:
        """Return the stored snapshot, or ``None`` when nothing was stored for the key."""
        try:
            row = self._conn.execute(
                """
                SELECT followers, reach, reach_rate, engagements, engagement_rate
                FROM overview
                WHERE organization = ? AND period = ?
                """,
                (organization, period),
            ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"cannot read overview for {organization} {period}: {exc}"
            ) from exc
        if row is None:
            return None
        followers, reach, reach_rate, engagements, engagement_rate = row
        return OverviewSnapshot(
            organization=organization,
            period=period,
            followers=int(followers or 0),
            reach=int(reach or 0),
            reach_rate=float(reach_rate or 0.0),
            engagements=int(engagements or 0),
            engagement_rate=float(engagement_rate or 0.0),
        )

    def replace_collection(
        self,
        key: PeriodKey,
        kind: CollectionKind,
        records: Sequence[CollectionRecord],
    ) -> None:
        kind = CollectionKind(kind)
        record_type = COLLECTION_RECORDS[kind]
        for record in records:
            if not isinstance(record, record_type):
                raise ValueError(f"{kind.value} expects {record_type.__name__}, got {type(record).__name__}")
            if record.key != key:
                raise ValueError(f"{kind.value} record key {record.key} does not match {key}")

        columns = _columns(record_type)
        insert_sql = (
            f"INSERT INTO {kind.value} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        try:
            # Delete and insert commit together or not at all.
            with self._conn:
                self._conn.execute(
                    f"DELETE FROM {kind.value} WHERE organization = ? AND period = ?",
                    (key.organization, key.period),
                )
                self._conn.executemany(insert_sql, [astuple(record) for record in records])
        except (sqlite3.Error, OverflowError) as exc:
            raise PersistenceError(f"cannot replace {kind.value} for {key}: {exc}") from exc

    def load_collection(self, key: PeriodKey, kind: CollectionKind) -> list[CollectionRecord]:
        kind = CollectionKind(kind)
        record_type = COLLECTION_RECORDS[kind]
        columns = _columns(record_type)
        try:
            rows = self._conn.execute(
                f"SELECT {', '.join(columns)} FROM {kind.value} "
                "WHERE organization = ? AND period = ? ORDER BY rowid",
                (key.organization, key.period),
            ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"cannot read {kind.value} for {key}: {exc}") from exc
        return [record_type(*row) for row in rows]
