"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper (same as vault/store.py).
AccountStore is the repository; _row_to_account is the mapper.
Protocol and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is the signup race guard. Two concurrent signups for the same
  normalized email can both pass the protocol's pre-check; only one INSERT
  can succeed. The loser's IntegrityError becomes EmailAlreadyRegistered.

  record_otp_step() is a conditional UPDATE (stored step must be lower), so
  two concurrent logins with the same code cannot both consume it.

Failure mapping:
  IntegrityError on insert  -> EmailAlreadyRegistered
  any other SQLAlchemyError -> StoreUnavailable (no retries)

DB path: auth/passwordforge_auth.db (sibling to vault/passwordforge_vault.db).

Layer rule: no imports from api/, web/, or vault/.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import BigInteger, Column, Integer, MetaData, String, Table, Text, create_engine, event, or_, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import UserAccount
from core.errors import EmailAlreadyRegistered, StoreUnavailable

logger = logging.getLogger("passwordforge.auth")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'passwordforge_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex
    Column("email", String(255), nullable=False, unique=True),  # normalized
    Column("otp_secret", Text),  # base32
    Column("otp_enabled", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
    Column("last_otp_step", BigInteger),  # replay protection only
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# Loose shape check only; deliverability is not our concern.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
_EMAIL_RE = re.compile(EMAIL_PATTERN)


def is_valid_email(email: str) -> bool:
    """Shape check shared by the API models and the web signup form."""
    return len(email) <= 255 and _EMAIL_RE.match(email) is not None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for UserAccount entities.

    Usage:
        store = AccountStore()
        account_id = store.create_account(UserAccount(email="a@b.c", otp_secret=s, otp_enabled=True))
        account = store.get_by_email("A@B.C")
        store.close()
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
        """Yield a connection; translate driver failures into StoreUnavailable.

        IntegrityError passes through untouched so create_account() can map
        it to the domain error it actually means.
        """
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error("Account store error: %s", exc)
            raise StoreUnavailable() from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_account(self, account: UserAccount) -> str:
        """Insert a new account and return its assigned id.

        This is the atomic "create if absent" for signup: the UNIQUE(email)
        constraint rejects a duplicate even when the caller's pre-check raced
        with another request. Raises EmailAlreadyRegistered in that case.
        """
        account_id = account.id or uuid.uuid4().hex
        try:
            with self._connect() as conn:
                conn.execute(
                    _accounts.insert().values(
                        id=account_id,
                        email=normalize_email(account.email),
                        otp_secret=account.otp_secret,
                        otp_enabled=1 if account.otp_enabled else 0,
                        created_at=account.created_at or _now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise EmailAlreadyRegistered() from exc
        return account_id

    def update_last_login(self, account_id: str) -> None:
        """Stamp the current UTC timestamp as last_login for the given account."""
        with self._connect() as conn:
            conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(last_login=_now_iso()))
            conn.commit()

    def record_otp_step(self, account_id: str, step: int) -> bool:
        """Consume a TOTP time step. Returns False if it (or a later one) was already used.

        Single conditional UPDATE: the row only changes when the stored step
        is NULL or strictly lower, so concurrent logins with one code cannot
        both succeed.
        """
        with self._connect() as conn:
            result = conn.execute(
                _accounts.update()
                .where(
                    (_accounts.c.id == account_id)
                    & or_(_accounts.c.last_otp_step.is_(None), _accounts.c.last_otp_step < step)
                )
                .values(last_otp_step=step)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_account(self, account_id: str) -> bool:
        """Permanently delete an account. Returns True if deleted, False if not found.

        Vault entries live in a separate store; the caller removes them.
        """
        with self._connect() as conn:
            result = conn.execute(_accounts.delete().where(_accounts.c.id == account_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> UserAccount | None:
        """Look up an account by normalized email. Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == normalize_email(email))).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_id(self, account_id: str) -> UserAccount | None:
        """Look up an account by primary key. Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def ping(self) -> bool:
        """Cheap liveness check for the health endpoint."""
        try:
            with self._connect() as conn:
                conn.execute(text("SELECT 1"))
        except StoreUnavailable:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> UserAccount:
    return UserAccount(
        id=row.id,
        email=row.email,
        otp_secret=row.otp_secret,
        otp_enabled=bool(row.otp_enabled),
        created_at=row.created_at,
        last_login=row.last_login,
        last_otp_step=row.last_otp_step,
    )
