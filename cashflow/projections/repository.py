import sqlite3
from datetime import datetime
from typing import Protocol

import structlog

from cashflow.database import Database
from cashflow.event_store.codec import format_timestamp, parse_timestamp, to_utc
from cashflow.exceptions import StorageUnavailableError
from cashflow.projections.schemas import CategoryProjection, MovementChanges, MovementProjection

logger = structlog.get_logger()


class ProjectionStore(Protocol):
    async def upsert_category(self, category: CategoryProjection) -> None: ...

    async def get_category(
        self, category_id: str, include_deleted: bool = False
    ) -> CategoryProjection | None: ...

    async def list_categories(self) -> list[CategoryProjection]: ...

    async def upsert_movement(self, movement: MovementProjection) -> None: ...

    async def update_movement(self, movement_id: str, changes: MovementChanges) -> bool: ...

    async def mark_movement_deleted(self, movement_id: str, updated_at: datetime) -> bool: ...

    async def get_movement(self, movement_id: str) -> MovementProjection | None: ...

    async def list_movements(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 0,
        offset: int = 0,
    ) -> tuple[list[MovementProjection], int]: ...

    async def clear(self) -> None: ...


def _paginate(rows: list, limit: int, offset: int) -> list:
    if offset > 0:
        rows = rows[offset:]
    if limit > 0:
        rows = rows[:limit]
    return rows


class InMemoryProjectionStore:
    def __init__(self) -> None:
        self._categories: dict[str, CategoryProjection] = {}
        self._movements: dict[str, MovementProjection] = {}

    async def upsert_category(self, category: CategoryProjection) -> None:
        self._categories[category.id] = category.model_copy()

    async def get_category(
        self, category_id: str, include_deleted: bool = False
    ) -> CategoryProjection | None:
        category = self._categories.get(category_id)
        if category is None or (category.is_deleted and not include_deleted):
            return None
        return category.model_copy()

    async def list_categories(self) -> list[CategoryProjection]:
        categories = [c for c in self._categories.values() if not c.is_deleted]
        return [c.model_copy() for c in sorted(categories, key=lambda c: c.name)]

    async def upsert_movement(self, movement: MovementProjection) -> None:
        self._movements[movement.id] = movement.model_copy()

    async def update_movement(self, movement_id: str, changes: MovementChanges) -> bool:
        existing = self._movements.get(movement_id)
        if existing is None:
            return False
        self._movements[movement_id] = existing.model_copy(update=changes.model_dump())
        return True

    async def mark_movement_deleted(self, movement_id: str, updated_at: datetime) -> bool:
        existing = self._movements.get(movement_id)
        if existing is None:
            return False
        self._movements[movement_id] = existing.model_copy(
            update={"is_deleted": True, "updated_at": updated_at}
        )
        return True

    async def get_movement(self, movement_id: str) -> MovementProjection | None:
        movement = self._movements.get(movement_id)
        if movement is None or movement.is_deleted:
            return None
        return movement.model_copy()

    async def list_movements(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 0,
        offset: int = 0,
    ) -> tuple[list[MovementProjection], int]:
        rows = [
            m
            for m in self._movements.values()
            if not m.is_deleted
            and (start is None or m.date >= to_utc(start))
            and (end is None or m.date <= to_utc(end))
        ]
        rows.sort(key=lambda m: (m.date, m.created_at), reverse=True)
        return [m.model_copy() for m in _paginate(rows, limit, offset)], len(rows)

    async def clear(self) -> None:
        self._categories.clear()
        self._movements.clear()


_MOVEMENT_COLUMNS = """
    id, type, category_id, category_name, amount, description,
    date, is_deleted, created_at, updated_at
"""


class SqliteProjectionStore:
    def __init__(self, database: Database) -> None:
        self._database = database

    async def upsert_category(self, category: CategoryProjection) -> None:
        await self._write(
            """
            INSERT INTO categories_projection (id, name, is_deleted, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                is_deleted = excluded.is_deleted,
                created_at = excluded.created_at,
                updated_at = excluded.updated_at
            """,
            (
                category.id,
                category.name,
                int(category.is_deleted),
                format_timestamp(category.created_at),
                format_timestamp(category.updated_at),
            ),
        )

    async def get_category(
        self, category_id: str, include_deleted: bool = False
    ) -> CategoryProjection | None:
        query = "SELECT * FROM categories_projection WHERE id = ?"
        if not include_deleted:
            query += " AND is_deleted = 0"
        rows = await self._read(query, (category_id,))
        return self._to_category(rows[0]) if rows else None

    async def list_categories(self) -> list[CategoryProjection]:
        rows = await self._read(
            "SELECT * FROM categories_projection WHERE is_deleted = 0 ORDER BY name ASC"
        )
        return [self._to_category(row) for row in rows]

    async def upsert_movement(self, movement: MovementProjection) -> None:
        await self._write(
            f"""
            INSERT INTO movements_projection ({_MOVEMENT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                type = excluded.type,
                category_id = excluded.category_id,
                category_name = excluded.category_name,
                amount = excluded.amount,
                description = excluded.description,
                date = excluded.date,
                is_deleted = excluded.is_deleted,
                created_at = excluded.created_at,
                updated_at = excluded.updated_at
            """,
            (
                movement.id,
                str(movement.type),
                movement.category_id,
                movement.category_name,
                movement.amount,
                movement.description,
                format_timestamp(movement.date),
                int(movement.is_deleted),
                format_timestamp(movement.created_at),
                format_timestamp(movement.updated_at),
            ),
        )

    async def update_movement(self, movement_id: str, changes: MovementChanges) -> bool:
        rowcount = await self._write(
            """
            UPDATE movements_projection
            SET category_id = ?, category_name = ?, amount = ?, description = ?,
                date = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                changes.category_id,
                changes.category_name,
                changes.amount,
                changes.description,
                format_timestamp(changes.date),
                format_timestamp(changes.updated_at),
                movement_id,
            ),
        )
        return rowcount > 0

    async def mark_movement_deleted(self, movement_id: str, updated_at: datetime) -> bool:
        rowcount = await self._write(
            """
            UPDATE movements_projection
            SET is_deleted = 1, updated_at = ?
            WHERE id = ?
            """,
            (format_timestamp(updated_at), movement_id),
        )
        return rowcount > 0

    async def get_movement(self, movement_id: str) -> MovementProjection | None:
        rows = await self._read(
            f"""
            SELECT {_MOVEMENT_COLUMNS}
            FROM movements_projection
            WHERE id = ? AND is_deleted = 0
            """,
            (movement_id,),
        )
        return self._to_movement(rows[0]) if rows else None

    async def list_movements(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 0,
        offset: int = 0,
    ) -> tuple[list[MovementProjection], int]:
        conditions: list[str] = ["is_deleted = 0"]
        params: list = []

        if start is not None:
            conditions.append("date >= ?")
            params.append(format_timestamp(start))
        if end is not None:
            conditions.append("date <= ?")
            params.append(format_timestamp(end))

        where_clause = " AND ".join(conditions)

        try:
            async with self._database.reading() as db:
                cursor = await db.execute(
                    f"SELECT COUNT(*) AS total FROM movements_projection WHERE {where_clause}",
                    params,
                )
                count_row = await cursor.fetchone()

                cursor = await db.execute(
                    f"""
                    SELECT {_MOVEMENT_COLUMNS}
                    FROM movements_projection
                    WHERE {where_clause}
                    ORDER BY date DESC, created_at DESC
                    LIMIT ? OFFSET ?
                    """,
                    [*params, limit if limit > 0 else -1, max(offset, 0)],
                )
                rows = await cursor.fetchall()
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"Projection read failed: {exc}") from exc

        total = count_row["total"] if count_row else 0
        return [self._to_movement(row) for row in rows], total

    async def clear(self) -> None:
        await self._write("DELETE FROM movements_projection")
        await self._write("DELETE FROM categories_projection")
        logger.info("projections_cleared")

    async def _write(self, query: str, params: tuple | list = ()) -> int:
        try:
            async with self._database.transaction() as db:
                cursor = await db.execute(query, params)
                return cursor.rowcount
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"Projection write failed: {exc}") from exc

    async def _read(self, query: str, params: tuple | list = ()) -> list:
        try:
            async with self._database.reading() as db:
                cursor = await db.execute(query, params)
                return list(await cursor.fetchall())
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"Projection read failed: {exc}") from exc

    def _to_category(self, row) -> CategoryProjection:
        return CategoryProjection(
            id=row["id"],
            name=row["name"],
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
            is_deleted=bool(row["is_deleted"]),
        )

    def _to_movement(self, row) -> MovementProjection:
        return MovementProjection(
            id=row["id"],
            type=row["type"],
            category_id=row["category_id"],
            category_name=row["category_name"],
            amount=row["amount"],
            description=row["description"],
            date=parse_timestamp(row["date"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
            is_deleted=bool(row["is_deleted"]),
        )
