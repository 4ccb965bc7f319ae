"""
vault/store.py -- SQLAlchemy Core persistence for vault entries.

Pattern: Repository + Data Mapper, same shape as auth/store.py.

Every read and delete is scoped by owner_id in the WHERE clause, so one
account can never see or remove another account's entries even with a
guessed entry id (IDOR guard lives here, not in the routes).

Failures: any SQLAlchemyError is raised as StoreUnavailable.

DB path: vault/passwordforge_vault.db.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from core.errors import StoreUnavailable
from vault.models import VaultEntry

logger = logging.getLogger("passwordforge.vault")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'passwordforge_vault.db'}"

_metadata = MetaData()

_entries = Table(
    "vault_entries",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", String(32), nullable=False, index=True),
    Column("label", String(255), nullable=False),
    Column("value", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class VaultStore:
    """Repository for VaultEntry records.

    Usage:
        vault = VaultStore()
        entry_id = vault.create_entry(VaultEntry(owner_id=aid, label="mail", value=pw))
        vault.list_entries(aid)
        vault.delete_entry(entry_id, aid)
        vault.close()
    """

    def __init__(self, db_url: str = "") -> None:
        db_url = db_url or _DEFAULT_DB_URL
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            logger.error("Could not create schema: %s", exc)
            raise StoreUnavailable() from exc

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        try:
            with self.engine.connect() as conn:
                yield conn
        except SQLAlchemyError as exc:
            logger.error("Vault store error: %s", exc)
            raise StoreUnavailable() from exc

    def create_entry(self, entry: VaultEntry) -> int:
        """Insert a new entry and return its id."""
        with self._connect() as conn:
            result = conn.execute(
                _entries.insert().values(
                    owner_id=entry.owner_id,
                    label=entry.label,
                    value=entry.value,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def list_entries(self, owner_id: str) -> list[VaultEntry]:
        """Return the owner's entries, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                _entries.select()
                .where(_entries.c.owner_id == owner_id)
                .order_by(_entries.c.created_at.desc(), _entries.c.id.desc())
            ).fetchall()
        return [_row_to_entry(r) for r in rows]

    def get_entry(self, entry_id: int, owner_id: str) -> Optional[VaultEntry]:
        with self._connect() as conn:
            row = conn.execute(
                _entries.select().where((_entries.c.id == entry_id) & (_entries.c.owner_id == owner_id))
            ).fetchone()
        return _row_to_entry(row) if row is not None else None

    def delete_entry(self, entry_id: int, owner_id: str) -> bool:
        """Delete one entry. Returns False if not found or owned by someone else."""
        with self._connect() as conn:
            result = conn.execute(
                _entries.delete().where((_entries.c.id == entry_id) & (_entries.c.owner_id == owner_id))
            )
            conn.commit()
        return result.rowcount > 0

    def delete_entries_for_owner(self, owner_id: str) -> int:
        """Remove every entry for an account being deleted. Returns the count."""
        with self._connect() as conn:
            result = conn.execute(_entries.delete().where(_entries.c.owner_id == owner_id))
            conn.commit()
        return result.rowcount

    def ping(self) -> bool:
        try:
            with self._connect() as conn:
                conn.execute(text("SELECT 1"))
        except StoreUnavailable:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


def _row_to_entry(row) -> VaultEntry:
    return VaultEntry(
        id=row.id,
        owner_id=row.owner_id,
        label=row.label,
        value=row.value,
        created_at=row.created_at,
    )
