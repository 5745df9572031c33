from __future__ import annotations

import logging
import os
import re
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, Protocol, TypeVar

import psycopg2

from ..models.config_models import DatabaseConfig
from ..models.intake_field import IntakeField

"""Intake field registry: persistent list of mapping targets.

The registry itself is an external store (``intake_fields`` table); this
module provides the store interface, a PostgreSQL implementation (psycopg2),
an in-memory implementation for tests and offline runs, and FieldService,
which keeps the local field list in sync with optimistic updates that are
rolled back when the remote call fails.
"""

__all__ = [
    "DEFAULT_FIELDS",
    "FieldRegistry",
    "FieldRegistryError",
    "FieldService",
    "InMemoryFieldRegistry",
    "PostgresFieldRegistry",
    "ProtectedFieldError",
    "optimistic_apply",
    "resolve_dsn",
    "seed_default_fields",
    "slugify_key",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# (key, label, is_required)
DEFAULT_FIELDS: tuple[tuple[str, str, bool], ...] = (
    ("sku", "SKU", True),
    ("quantity", "Množstvo", True),
    ("description", "Popis", False),
    ("price", "Cena", False),
)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS intake_fields (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    key text NOT NULL UNIQUE,
    label text NOT NULL,
    is_active boolean NOT NULL DEFAULT true,
    is_required boolean NOT NULL DEFAULT false,
    created_at timestamptz NOT NULL DEFAULT now()
)
"""
_COLUMNS = "id, key, label, is_active, is_required, created_at"

_NON_WORD = re.compile(r"[^\w\s-]", re.ASCII)
_SPACES = re.compile(r"\s+")


class FieldRegistryError(Exception):
    pass


class ProtectedFieldError(FieldRegistryError):
    """sku / quantity cannot be deactivated or deleted."""


def slugify_key(label: str) -> str:
    """Derive a field key from a label: "My Color 2" -> "my-color-2"."""
    key = _NON_WORD.sub("", label.lower())
    key = _SPACES.sub("-", key)
    return key.strip("-")


def optimistic_apply(
    get_state: Callable[[], T],
    set_state: Callable[[T], None],
    mutation: Callable[[T], T],
    remote_call: Callable[[], R],
) -> R:
    """Apply ``mutation`` locally, then run ``remote_call``.

    If the remote call raises, the pre-mutation snapshot is restored and the
    exception propagates.
    """
    snapshot = get_state()
    set_state(mutation(snapshot))
    try:
        return remote_call()
    except Exception:
        set_state(snapshot)
        raise


class FieldRegistry(Protocol):
    def list_fields(self) -> list[IntakeField]: ...

    def insert(self, label: str, key: str, is_active: bool = True, is_required: bool = False) -> IntakeField: ...

    def update_active(self, field_id: str, is_active: bool) -> None: ...

    def delete(self, field_id: str) -> None: ...


class InMemoryFieldRegistry:
    """Process-local registry seeded with the built-in order fields."""

    def __init__(self, seed_defaults: bool = True) -> None:
        self._rows: dict[str, IntakeField] = {}
        if seed_defaults:
            for key, label, required in DEFAULT_FIELDS:
                self.insert(label, key, is_required=required)

    def list_fields(self) -> list[IntakeField]:
        # insertion order == creation order
        return list(self._rows.values())

    def insert(self, label: str, key: str, is_active: bool = True, is_required: bool = False) -> IntakeField:
        if any(f.key == key for f in self._rows.values()):
            raise FieldRegistryError(f"field key already exists: {key}")
        field = IntakeField(
            id=str(uuid.uuid4()),
            key=key,
            label=label,
            is_active=is_active,
            is_required=is_required,
            created_at=datetime.now(UTC),
        )
        self._rows[field.id] = field
        return field

    def update_active(self, field_id: str, is_active: bool) -> None:
        current = self._rows.get(field_id)
        if current is None:
            raise FieldRegistryError(f"field not found: {field_id}")
        self._rows[field_id] = replace(current, is_active=is_active)

    def delete(self, field_id: str) -> None:
        if self._rows.pop(field_id, None) is None:
            raise FieldRegistryError(f"field not found: {field_id}")


def seed_default_fields(registry: FieldRegistry) -> int:
    """Insert the built-in fields into an empty registry; returns the number inserted."""
    if registry.list_fields():
        return 0
    for key, label, required in DEFAULT_FIELDS:
        registry.insert(label, key, is_required=required)
    logger.info("field registry was empty, seeded %d default fields", len(DEFAULT_FIELDS))
    return len(DEFAULT_FIELDS)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string; DATABASE_URL / PGDSN / PG* env vars win over config."""
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _row_to_field(row: tuple[Any, ...]) -> IntakeField:
    return IntakeField(
        id=str(row[0]),
        key=row[1],
        label=row[2],
        is_active=bool(row[3]),
        is_required=bool(row[4]),
        created_at=row[5],
    )


class PostgresFieldRegistry:
    """``intake_fields`` table accessed through a psycopg2 connection.

    Every call runs in its own transaction: committed on success, rolled back
    and wrapped in FieldRegistryError on failure.
    """

    def __init__(self, connection: Any) -> None:
        self._conn = connection

    @classmethod
    def connect(cls, db_cfg: DatabaseConfig) -> PostgresFieldRegistry:
        try:
            conn = psycopg2.connect(resolve_dsn(db_cfg))
        except Exception as e:
            raise FieldRegistryError(f"cannot connect to field registry: {e}") from e
        conn.autocommit = False
        return cls(conn)

    def close(self) -> None:
        self._conn.close()

    def _run(self, sql: str, params: tuple[Any, ...] = (), fetch: str | None = None) -> Any:
        try:
            with self._conn.cursor() as cur:
                cur.execute(sql, params)
                if fetch == "all":
                    result = cur.fetchall()
                elif fetch == "one":
                    result = cur.fetchone()
                else:
                    result = cur.rowcount
            self._conn.commit()
            return result
        except Exception as e:
            try:
                self._conn.rollback()
            except Exception:  # pragma: no cover
                logger.debug("rollback failed", exc_info=True)
            raise FieldRegistryError(str(e)) from e

    def ensure_table(self) -> None:
        self._run(CREATE_TABLE_SQL)

    def list_fields(self) -> list[IntakeField]:
        rows = self._run(f"SELECT {_COLUMNS} FROM intake_fields ORDER BY created_at ASC", fetch="all")
        return [_row_to_field(r) for r in rows]

    def insert(self, label: str, key: str, is_active: bool = True, is_required: bool = False) -> IntakeField:
        row = self._run(
            f"INSERT INTO intake_fields (label, key, is_active, is_required) "
            f"VALUES (%s, %s, %s, %s) RETURNING {_COLUMNS}",
            (label, key, is_active, is_required),
            fetch="one",
        )
        return _row_to_field(row)

    def update_active(self, field_id: str, is_active: bool) -> None:
        if self._run("UPDATE intake_fields SET is_active = %s WHERE id = %s", (is_active, field_id)) == 0:
            raise FieldRegistryError(f"field not found: {field_id}")

    def delete(self, field_id: str) -> None:
        if self._run("DELETE FROM intake_fields WHERE id = %s", (field_id,)) == 0:
            raise FieldRegistryError(f"field not found: {field_id}")


class FieldService:
    """Local view of the registry used by the settings screen and the wizard."""

    def __init__(self, registry: FieldRegistry) -> None:
        self.registry = registry
        self._fields: list[IntakeField] = []

    @property
    def fields(self) -> list[IntakeField]:
        return list(self._fields)

    def _set_fields(self, fields: list[IntakeField]) -> None:
        self._fields = fields

    def load(self) -> list[IntakeField]:
        self._fields = self.registry.list_fields()
        return self.fields

    def active_fields(self) -> list[IntakeField]:
        return [f for f in self._fields if f.is_active]

    def active_keys(self) -> list[str]:
        return [f.key for f in self._fields if f.is_active]

    def _find(self, field_id: str) -> IntakeField:
        for f in self._fields:
            if f.id == field_id:
                return f
        raise FieldRegistryError(f"field not found: {field_id}")

    def _mutate(self, mutation: Callable[[list[IntakeField]], list[IntakeField]], remote_call: Callable[[], None]) -> None:
        try:
            optimistic_apply(lambda: list(self._fields), self._set_fields, mutation, remote_call)
        except FieldRegistryError:
            logger.error("field registry update failed, local state restored", exc_info=True)
            raise
        except Exception as e:
            logger.error("field registry update failed, local state restored: %s", e)
            raise FieldRegistryError(str(e)) from e

    def toggle_field(self, field_id: str, is_active: bool) -> None:
        target = self._find(field_id)
        if target.protected and not is_active:
            raise ProtectedFieldError(f"field '{target.key}' cannot be deactivated")

        def mutation(fields: list[IntakeField]) -> list[IntakeField]:
            return [
                replace(f, is_active=is_active) if f.id == field_id else f
                for f in fields
            ]

        self._mutate(mutation, lambda: self.registry.update_active(field_id, is_active))

    def delete_field(self, field_id: str) -> None:
        target = self._find(field_id)
        if target.protected:
            raise ProtectedFieldError(f"field '{target.key}' cannot be deleted")
        self._mutate(
            lambda fields: [f for f in fields if f.id != field_id],
            lambda: self.registry.delete(field_id),
        )

    def add_field(self, label: str, key: str | None = None, is_required: bool = False) -> IntakeField:
        """Insert a new active field; the key defaults to a slug of the label."""
        key = key or slugify_key(label)
        if not key:
            raise ValueError("invalid label or key")
        field = self.registry.insert(label, key, is_active=True, is_required=is_required)
        self._fields = [*self._fields, field]
        return field
