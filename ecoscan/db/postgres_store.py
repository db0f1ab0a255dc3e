"""PostgreSQL implementation of the gamification store"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, List, Optional, Set, Tuple

import psycopg
from psycopg import sql

from ecoscan.db.connection import Database, db as default_db
from ecoscan.exceptions import ConflictError, NotFoundError, wrap_external_exception
from ecoscan.models import (
    AchievementDefinition,
    ConfidenceLevel,
    MetricKind,
    ScanFilter,
    ScanRecord,
    ScanSort,
    UnlockedAchievement,
    UserStats,
)

logger = logging.getLogger(__name__)

USER_COLUMNS = """
    id, username, points, objects_scanned, current_streak, max_streak,
    last_scan_at, onboarding_completed, version
"""

SCAN_COLUMNS = """
    id, user_id, detected_object, detected_object_localized, waste_type,
    disposal_bin, recyclable, confidence, points_awarded, origin, image_url, created_at
"""

ACHIEVEMENT_COLUMNS = "id, name, description, icon, metric, threshold, active"

# Leaderboard ordering column per metric
LEADERBOARD_COLUMNS = {
    MetricKind.POINTS: "points",
    MetricKind.SCAN_COUNT: "objects_scanned",
    MetricKind.STREAK: "max_streak",
}

# Unknown confidence counts as low
CONFIDENCE_CONDITIONS = {
    ConfidenceLevel.HIGH: sql.SQL("confidence >= 80"),
    ConfidenceLevel.MEDIUM: sql.SQL("confidence >= 50 AND confidence < 80"),
    ConfidenceLevel.LOW: sql.SQL("COALESCE(confidence, 0) < 50"),
}

SCAN_ORDER = {
    ScanSort.RECENT: sql.SQL("created_at DESC"),
    ScanSort.CONFIDENCE: sql.SQL("COALESCE(confidence, 0) DESC, created_at DESC"),
    ScanSort.POINTS: sql.SQL("points_awarded DESC, created_at DESC"),
}


def _scan_conditions(user_id: str, scan_filter: ScanFilter) -> Tuple[List[sql.Composable], list]:
    """WHERE clauses and their parameters for a scan history query"""
    where: List[sql.Composable] = [sql.SQL("user_id = %s")]
    params: list = [user_id]

    if scan_filter.search:
        pattern = f"%{scan_filter.search}%"
        where.append(sql.SQL(
            "(COALESCE(detected_object_localized, detected_object) ILIKE %s"
            " OR COALESCE(waste_type, '') ILIKE %s)"
        ))
        params.extend([pattern, pattern])

    equalities = [
        ("waste_type", scan_filter.waste_type),
        ("disposal_bin", scan_filter.bin),
        ("recyclable", scan_filter.recyclable),
        ("origin", scan_filter.origin.value if scan_filter.origin else None),
    ]
    for column, value in equalities:
        if value is not None:
            where.append(sql.SQL("{} = %s").format(sql.Identifier(column)))
            params.append(value)

    if scan_filter.confidence_level is not None:
        where.append(CONFIDENCE_CONDITIONS[scan_filter.confidence_level])
    if scan_filter.since is not None:
        where.append(sql.SQL("created_at > %s"))
        params.append(scan_filter.since)

    return where, params


def _row_to_stats(row: dict) -> UserStats:
    return UserStats(
        user_id=str(row["id"]),
        username=row["username"],
        points=row["points"],
        objects_scanned=row["objects_scanned"],
        current_streak=row["current_streak"],
        max_streak=row["max_streak"],
        last_scan_at=row["last_scan_at"],
        onboarding_completed=row["onboarding_completed"],
        version=row["version"],
    )


def _row_to_scan(row: dict) -> ScanRecord:
    return ScanRecord(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        detected_object=row["detected_object"],
        detected_object_localized=row["detected_object_localized"],
        waste_type=row["waste_type"],
        bin=row["disposal_bin"],
        recyclable=row["recyclable"],
        confidence=row["confidence"],
        points_awarded=row["points_awarded"],
        origin=row["origin"],
        image_url=row["image_url"],
        created_at=row["created_at"],
    )


def _row_to_achievement(row: dict) -> AchievementDefinition:
    return AchievementDefinition(
        id=str(row["id"]),
        name=row["name"],
        description=row["description"],
        icon=row["icon"],
        metric=MetricKind(row["metric"]),
        threshold=row["threshold"],
        active=row["active"],
    )


@asynccontextmanager
async def _guard(operation: str, user_id: Optional[str] = None) -> AsyncGenerator[None, None]:
    """Translate psycopg errors into the ecoscan exception hierarchy"""
    try:
        yield
    except psycopg.Error as e:
        raise wrap_external_exception(e, operation=operation, user_id=user_id) from e


class PostgresGamificationStore:
    """
    Gamification store backed by PostgreSQL (see migrations/001_initial_schema.sql)

    Stats updates are compare-and-swap on users.version; scan insertion and
    the matching stats update share one transaction.
    """

    def __init__(self, database: Database = default_db):
        self.db = database

    # ==========================================
    # Users
    # ==========================================

    async def get_user_stats(self, user_id: str) -> UserStats:
        async with _guard("get_user_stats", user_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"SELECT {USER_COLUMNS} FROM users WHERE id = %s",
                        (user_id,)
                    )
                    row = await cur.fetchone()

        if not row:
            raise NotFoundError(
                f"No stats record for user {user_id}",
                record_type="User",
                record_id=user_id,
                user_id=user_id,
                operation="get_user_stats"
            )
        return _row_to_stats(row)

    async def create_user(self, user_id: str, username: Optional[str] = None) -> UserStats:
        async with _guard("create_user", user_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO users (id, username)
                        VALUES (%s, %s)
                        ON CONFLICT (id) DO NOTHING
                        """,
                        (user_id, username)
                    )
                    await conn.commit()
                    if cur.rowcount:
                        logger.info(f"Created stats record for user {user_id}")

        return await self.get_user_stats(user_id)

    async def _update_stats(
        self,
        cur: psycopg.AsyncCursor,
        stats: UserStats,
        expected_version: Optional[int]
    ) -> UserStats:
        """Run the (conditional) users UPDATE on an open cursor"""
        version_clause = "AND version = %s" if expected_version is not None else ""
        query = f"""
            UPDATE users
            SET points = %s,
                objects_scanned = %s,
                current_streak = %s,
                max_streak = %s,
                last_scan_at = %s,
                onboarding_completed = %s,
                version = version + 1,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = %s
            {version_clause}
            RETURNING {USER_COLUMNS}
        """
        params = [
            stats.points,
            stats.objects_scanned,
            stats.current_streak,
            stats.max_streak,
            stats.last_scan_at,
            stats.onboarding_completed,
            stats.user_id,
        ]
        if expected_version is not None:
            params.append(expected_version)

        await cur.execute(query, params)
        row = await cur.fetchone()
        if row:
            return _row_to_stats(row)

        await cur.execute("SELECT version FROM users WHERE id = %s", (stats.user_id,))
        current = await cur.fetchone()
        if not current:
            raise NotFoundError(
                f"No stats record for user {stats.user_id}",
                record_type="User",
                record_id=stats.user_id,
                user_id=stats.user_id,
                operation="update_user_stats"
            )
        raise ConflictError(
            f"Stats for user {stats.user_id} changed concurrently",
            expected_version=expected_version,
            actual_version=current["version"],
            user_id=stats.user_id,
            operation="update_user_stats"
        )

    async def update_user_stats(
        self,
        stats: UserStats,
        expected_version: Optional[int] = None
    ) -> UserStats:
        async with _guard("update_user_stats", stats.user_id):
            async with self.db.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        return await self._update_stats(cur, stats, expected_version)

    # ==========================================
    # Scans
    # ==========================================

    async def _insert_scan(self, cur: psycopg.AsyncCursor, record: ScanRecord) -> ScanRecord:
        await cur.execute(
            f"""
            INSERT INTO scans (
                id, user_id, detected_object, detected_object_localized, waste_type,
                disposal_bin, recyclable, confidence, points_awarded, origin, image_url, created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {SCAN_COLUMNS}
            """,
            (
                record.id,
                record.user_id,
                record.detected_object,
                record.detected_object_localized,
                record.waste_type,
                record.bin,
                record.recyclable,
                record.confidence,
                record.points_awarded,
                record.origin.value,
                record.image_url,
                record.created_at,
            )
        )
        row = await cur.fetchone()
        return _row_to_scan(row)

    async def insert_scan_record(self, record: ScanRecord) -> ScanRecord:
        async with _guard("insert_scan_record", record.user_id):
            async with self.db.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        return await self._insert_scan(cur, record)

    async def commit_scan(
        self,
        record: ScanRecord,
        stats: UserStats,
        expected_version: int
    ) -> Tuple[ScanRecord, UserStats]:
        """Insert the scan and CAS-update the stats; a conflict rolls back both"""
        async with _guard("commit_scan", stats.user_id):
            async with self.db.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        saved_record = await self._insert_scan(cur, record)
                        saved_stats = await self._update_stats(cur, stats, expected_version)
        return saved_record, saved_stats

    async def list_scan_records(
        self,
        user_id: str,
        limit: int = 20,
        scan_filter: Optional[ScanFilter] = None
    ) -> List[ScanRecord]:
        scan_filter = scan_filter or ScanFilter()
        where, params = _scan_conditions(user_id, scan_filter)
        query = sql.SQL(
            "SELECT {columns} FROM scans WHERE {where} ORDER BY {order} LIMIT %s"
        ).format(
            columns=sql.SQL(SCAN_COLUMNS),
            where=sql.SQL(" AND ").join(where),
            order=SCAN_ORDER[scan_filter.sort],
        )
        params.append(limit)

        async with _guard("list_scan_records", user_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    rows = await cur.fetchall()
        return [_row_to_scan(row) for row in rows]

    async def list_scans_since(self, user_id: str, since: datetime) -> List[ScanRecord]:
        async with _guard("list_scans_since", user_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"""
                        SELECT {SCAN_COLUMNS}
                        FROM scans
                        WHERE user_id = %s AND created_at >= %s
                        ORDER BY created_at ASC
                        """,
                        (user_id, since)
                    )
                    rows = await cur.fetchall()
        return [_row_to_scan(row) for row in rows]

    # ==========================================
    # Achievements
    # ==========================================

    async def list_achievement_catalog(self) -> List[AchievementDefinition]:
        async with _guard("list_achievement_catalog"):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"""
                        SELECT {ACHIEVEMENT_COLUMNS}
                        FROM achievements
                        WHERE active = TRUE
                        ORDER BY threshold ASC
                        """
                    )
                    rows = await cur.fetchall()
        return [_row_to_achievement(row) for row in rows]

    async def get_achievement_by_name(self, name: str) -> Optional[AchievementDefinition]:
        async with _guard("get_achievement_by_name"):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"SELECT {ACHIEVEMENT_COLUMNS} FROM achievements WHERE name = %s AND active = TRUE",
                        (name,)
                    )
                    row = await cur.fetchone()
        return _row_to_achievement(row) if row else None

    async def list_unlocked_achievement_ids(self, user_id: str) -> Set[str]:
        async with _guard("list_unlocked_achievement_ids", user_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        "SELECT achievement_id FROM user_achievements WHERE user_id = %s",
                        (user_id,)
                    )
                    rows = await cur.fetchall()
        return {str(row["achievement_id"]) for row in rows}

    async def list_unlocked_achievements(self, user_id: str) -> List[UnlockedAchievement]:
        async with _guard("list_unlocked_achievements", user_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        SELECT user_id, achievement_id, unlocked_at
                        FROM user_achievements
                        WHERE user_id = %s
                        ORDER BY unlocked_at DESC
                        """,
                        (user_id,)
                    )
                    rows = await cur.fetchall()
        return [
            UnlockedAchievement(
                user_id=str(row["user_id"]),
                achievement_id=str(row["achievement_id"]),
                unlocked_at=row["unlocked_at"],
            )
            for row in rows
        ]

    async def insert_unlocked_achievement_if_absent(
        self,
        user_id: str,
        achievement_id: str
    ) -> Optional[UnlockedAchievement]:
        async with _guard("insert_unlocked_achievement_if_absent", user_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO user_achievements (user_id, achievement_id)
                        VALUES (%s, %s)
                        ON CONFLICT (user_id, achievement_id) DO NOTHING
                        RETURNING user_id, achievement_id, unlocked_at
                        """,
                        (user_id, achievement_id)
                    )
                    row = await cur.fetchone()
                    await conn.commit()

        if not row:
            return None
        return UnlockedAchievement(
            user_id=str(row["user_id"]),
            achievement_id=str(row["achievement_id"]),
            unlocked_at=row["unlocked_at"],
        )

    # ==========================================
    # Leaderboard
    # ==========================================

    async def get_leaderboard(self, metric: MetricKind, limit: int = 10) -> List[UserStats]:
        column = sql.Identifier(LEADERBOARD_COLUMNS[metric])
        query = sql.SQL(
            "SELECT {columns} FROM users ORDER BY {column} DESC, created_at ASC LIMIT %s"
        ).format(columns=sql.SQL(USER_COLUMNS), column=column)

        async with _guard("get_leaderboard"):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, (limit,))
                    rows = await cur.fetchall()
        return [_row_to_stats(row) for row in rows]

    async def get_user_rank(self, user_id: str, metric: MetricKind) -> int:
        column = sql.Identifier(LEADERBOARD_COLUMNS[metric])
        query = sql.SQL(
            "SELECT COUNT(*) AS ahead FROM users "
            "WHERE {column} > (SELECT {column} FROM users WHERE id = %s)"
        ).format(column=column)

        # Raises NotFoundError for unknown users
        await self.get_user_stats(user_id)

        async with _guard("get_user_rank", user_id):
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, (user_id,))
                    row = await cur.fetchone()
        return (row["ahead"] if row else 0) + 1
