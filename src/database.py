"""Person store backends: SQLite, Supabase and in-memory."""

import json
import logging
from pathlib import Path
import sqlite3
from typing import Protocol

from config import Settings

logger = logging.getLogger(__name__)

RECORD_FIELDS = ("name", "birth", "death", "image_url", "spouse", "parents")


class StoreError(Exception):
    """Raised when the person store cannot be read or written."""


class PersonStore(Protocol):
    def fetch_all(self) -> list[dict]: ...

    def insert(self, record: dict) -> str: ...

    def update(self, person_id: str, record: dict) -> None: ...


def _clean_record(record: dict) -> dict:
    """Keep only known person fields; missing fields are stored as empty."""
    cleaned = {name: record.get(name) for name in RECORD_FIELDS}
    cleaned["parents"] = list(cleaned["parents"] or [])
    return cleaned


# ============================================================================
# SQLite
# ============================================================================


def create_database(db_path: Path) -> sqlite3.Connection:
    """Create SQLite database with the person table."""
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS person (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            birth TEXT,
            death TEXT,
            image_url TEXT,
            spouse TEXT,
            parents TEXT NOT NULL DEFAULT '[]'
        )
    """)

    conn.commit()
    return conn


def _load_parents(person_id, text: str | None):
    """Decode the JSON parents cell. Text that is not JSON is passed through as is."""
    if not text:
        return []
    try:
        return json.loads(text)
    except ValueError:
        logger.warning("Person %s has non-JSON parents %r", person_id, text)
        return text


class SQLitePersonStore:
    """Person table in a local SQLite file. Parents are stored as JSON text."""

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        try:
            self.conn = create_database(db_path)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open database {db_path}: {exc}") from exc

    def fetch_all(self) -> list[dict]:
        try:
            cursor = self.conn.execute(
                "SELECT id, name, birth, death, image_url, spouse, parents FROM person"
            )
            rows = cursor.fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to fetch persons: {exc}") from exc

        return [
            {
                "id": row[0],
                "name": row[1],
                "birth": row[2],
                "death": row[3],
                "image_url": row[4],
                "spouse": row[5],
                "parents": _load_parents(row[0], row[6]),
            }
            for row in rows
        ]

    def insert(self, record: dict) -> str:
        r = _clean_record(record)
        try:
            cursor = self.conn.execute(
                """
                INSERT INTO person (name, birth, death, image_url, spouse, parents)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    r["name"] or "",
                    r["birth"],
                    r["death"],
                    r["image_url"],
                    r["spouse"],
                    json.dumps(r["parents"]),
                ),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to insert person: {exc}") from exc
        return str(cursor.lastrowid)

    def update(self, person_id: str, record: dict) -> None:
        r = _clean_record(record)
        try:
            cursor = self.conn.execute(
                """
                UPDATE person
                SET name = ?, birth = ?, death = ?, image_url = ?, spouse = ?, parents = ?
                WHERE id = ?
                """,
                (
                    r["name"] or "",
                    r["birth"],
                    r["death"],
                    r["image_url"],
                    r["spouse"],
                    json.dumps(r["parents"]),
                    person_id,
                ),
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to update person {person_id}: {exc}") from exc

        if cursor.rowcount == 0:
            raise StoreError(f"Person {person_id} not found")

    def close(self):
        self.conn.close()


# ============================================================================
# Supabase
# ============================================================================


class SupabasePersonStore:
    """Person table hosted on Supabase, accessed through a supabase-py client."""

    def __init__(self, client, table: str = "family_members"):
        self.client = client
        self.table = table

    def fetch_all(self) -> list[dict]:
        try:
            result = self.client.table(self.table).select("*").execute()
        except Exception as exc:
            raise StoreError(f"Failed to fetch {self.table}: {exc}") from exc
        return list(result.data or [])

    def insert(self, record: dict) -> str:
        try:
            result = self.client.table(self.table).insert(_clean_record(record)).execute()
        except Exception as exc:
            raise StoreError(f"Failed to insert into {self.table}: {exc}") from exc

        if not result.data:
            raise StoreError(f"Insert into {self.table} returned no row")
        return str(result.data[0]["id"])

    def update(self, person_id: str, record: dict) -> None:
        try:
            result = (
                self.client.table(self.table)
                .update(_clean_record(record))
                .eq("id", person_id)
                .execute()
            )
        except Exception as exc:
            raise StoreError(f"Failed to update {self.table} row {person_id}: {exc}") from exc

        if not result.data:
            raise StoreError(f"Person {person_id} not found")


# ============================================================================
# In-memory
# ============================================================================


class InMemoryPersonStore:
    """Dictionary-backed store, used for tests and demos."""

    def __init__(self, rows=()):
        self.rows: dict[str, dict] = {}
        rows = [dict(row) for row in rows]
        explicit = [str(row["id"]) for row in rows if row.get("id") is not None]
        # Allocated ids start above every explicit numeric id
        self._next_id = max((int(i) + 1 for i in explicit if i.isdigit()), default=1)
        for row in rows:
            person_id = row.pop("id", None)
            person_id = self._allocate_id() if person_id is None else str(person_id)
            self.rows[person_id] = {"id": person_id, **_clean_record(row)}

    def _allocate_id(self) -> str:
        person_id = str(self._next_id)
        self._next_id += 1
        return person_id

    def fetch_all(self) -> list[dict]:
        return [dict(row, parents=list(row["parents"])) for row in self.rows.values()]

    def insert(self, record: dict) -> str:
        person_id = self._allocate_id()
        self.rows[person_id] = {"id": person_id, **_clean_record(record)}
        return person_id

    def update(self, person_id: str, record: dict) -> None:
        if person_id not in self.rows:
            raise StoreError(f"Person {person_id} not found")
        self.rows[person_id] = {"id": person_id, **_clean_record(record)}


def open_store(settings: Settings) -> PersonStore:
    """Create the person store selected by the settings."""
    if settings.backend == "sqlite":
        logger.info("Using SQLite store at %s", settings.db_path)
        return SQLitePersonStore(settings.db_path)

    if settings.backend == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise StoreError("SUPABASE_URL and SUPABASE_KEY must be set for the supabase backend")
        from supabase import create_client

        logger.info("Using Supabase table %s", settings.table)
        client = create_client(settings.supabase_url, settings.supabase_key)
        return SupabasePersonStore(client, table=settings.table)

    if settings.backend == "memory":
        return InMemoryPersonStore()

    raise StoreError(f"Unknown store backend: {settings.backend}")
