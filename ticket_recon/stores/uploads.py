from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

import psycopg2

"""Upload history store (PostgreSQL).

Processed input files are archived per business date with their raw bytes (bytea).
ERP stock summaries and return reports live in separate tables.

Transaction boundaries belong to the caller (the CLI commits / rolls back); this module
only issues statements on the cursor it is given and wraps driver errors in StoreError.
"""

__all__ = [
    "KIND_TABLES",
    "StoreError",
    "UploadRecord",
    "UploadHistoryStore",
    "CREATE_TABLE_SQL",
]

KIND_TABLES = {
    "erp": "erp_uploads",
    "returns": "return_uploads",
}

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    id          BIGSERIAL PRIMARY KEY,
    file_name   TEXT NOT NULL,
    game_id     TEXT NOT NULL DEFAULT '',
    game_name   TEXT NOT NULL DEFAULT '',
    upload_date DATE NOT NULL,
    size        INTEGER NOT NULL,
    content     BYTEA NOT NULL,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""

_COLUMNS = "id, file_name, game_id, game_name, upload_date, size, created_at"


class StoreError(Exception):
    """Raised when a store operation fails (driver error, missing record)."""


@dataclass(frozen=True)
class UploadRecord:
    id: int
    kind: str
    file_name: str
    game_id: str
    game_name: str
    upload_date: str  # yyyy-mm-dd
    size: int
    created_at: datetime | None = None

    @staticmethod
    def from_row(kind: str, row: tuple[Any, ...]) -> UploadRecord:
        upload_date = row[4]
        if isinstance(upload_date, date):
            upload_date = upload_date.isoformat()
        return UploadRecord(
            id=int(row[0]),
            kind=kind,
            file_name=row[1] or "",
            game_id=row[2] or "",
            game_name=row[3] or "",
            upload_date=str(upload_date or ""),
            size=int(row[5] or 0),
            created_at=row[6],
        )


def _table(kind: str) -> str:
    try:
        return KIND_TABLES[kind]
    except KeyError:
        raise StoreError(f"unknown upload kind: {kind}") from None


class UploadHistoryStore:
    def __init__(self, cursor: Any) -> None:
        self.cursor = cursor

    def ensure_tables(self) -> None:
        try:
            for table in KIND_TABLES.values():
                self.cursor.execute(CREATE_TABLE_SQL.format(table=table))
        except psycopg2.Error as e:
            raise StoreError(f"failed creating upload tables: {e}") from e

    def save_upload(
        self,
        kind: str,
        path: Path,
        upload_date: str,
        game_id: str = "",
        game_name: str = "",
    ) -> UploadRecord:
        table = _table(kind)
        safe_date = upload_date or date.today().isoformat()
        try:
            content = path.read_bytes()
        except OSError as e:
            raise StoreError(f"cannot read {path}: {e}") from e

        try:
            self.cursor.execute(
                f"INSERT INTO {table} (file_name, game_id, game_name, upload_date, size, content) "
                f"VALUES (%s, %s, %s, %s, %s, %s) RETURNING {_COLUMNS}",
                (path.name, game_id, game_name, safe_date, len(content), psycopg2.Binary(content)),
            )
            row = self.cursor.fetchone()
        except psycopg2.Error as e:
            raise StoreError(f"failed saving upload {path.name}: {e}") from e
        if row is None:
            raise StoreError(f"insert returned no row for {path.name}")
        return UploadRecord.from_row(kind, row)

    def list_uploads_by_date(self, kind: str, upload_date: str) -> list[UploadRecord]:
        if not upload_date:
            return []
        table = _table(kind)
        try:
            self.cursor.execute(
                f"SELECT {_COLUMNS} FROM {table} WHERE upload_date = %s ORDER BY created_at ASC",
                (upload_date,),
            )
            rows = self.cursor.fetchall()
        except psycopg2.Error as e:
            raise StoreError(f"failed listing {table}: {e}") from e
        return [UploadRecord.from_row(kind, r) for r in rows]

    def fetch_upload_file(self, kind: str, upload_id: int) -> bytes:
        table = _table(kind)
        try:
            self.cursor.execute(f"SELECT content FROM {table} WHERE id = %s", (upload_id,))
            row = self.cursor.fetchone()
        except psycopg2.Error as e:
            raise StoreError(f"failed fetching upload {upload_id}: {e}") from e
        if row is None:
            raise StoreError(f"upload not found: {kind}/{upload_id}")
        return bytes(row[0])

    def delete_upload(self, kind: str, upload_id: int) -> None:
        table = _table(kind)
        try:
            self.cursor.execute(f"DELETE FROM {table} WHERE id = %s", (upload_id,))
        except psycopg2.Error as e:
            raise StoreError(f"failed deleting upload {upload_id}: {e}") from e
        if getattr(self.cursor, "rowcount", 1) == 0:
            raise StoreError(f"upload not found: {kind}/{upload_id}")
