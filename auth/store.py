"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts and sessions.

Pattern: Repository + Data Mapper. AccountStore and SessionStore are the
repositories; _row_to_account / _row_to_session are the mappers. The service
and route code never touch SQL directly.

Both stores share one Engine so a single SQLite file (or one PostgreSQL
database) holds the whole auth schema. create_auth_engine() builds it and
creates the tables.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email uniqueness is a UNIQUE constraint on accounts.email, and
  create_account() relies on the INSERT failing rather than a
  check-then-insert. Two concurrent registrations for the same email cannot
  both succeed: the database rejects the second insert and the store turns
  the IntegrityError into DuplicateAccountError.

Timestamps are ISO 8601 UTC strings with second precision. A single format
keeps lexicographic order equal to chronological order, which purge_expired()
relies on.

Layer rule: no imports from api/ or contacts/.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateAccountError, ValidationError
from auth.models import Account, Session

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

accounts_table = Table(
    "accounts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_digest", Text, nullable=False),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100)),
    Column("phone", String(32)),
    Column("created_at", String(32), nullable=False),
)

sessions_table = Table(
    "sessions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", Integer, nullable=False, index=True),
    Column("credential", Text, nullable=False, unique=True),
    Column("issued_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False, index=True),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_auth_engine(db_url: str) -> Engine:
    """Create an Engine for db_url and make sure the auth tables exist."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def isoformat_utc(moment: datetime) -> str:
    """Render a datetime as a second-precision ISO 8601 UTC string."""
    return moment.astimezone(timezone.utc).isoformat(timespec="seconds")


def _now_iso() -> str:
    return isoformat_utc(datetime.now(timezone.utc))


@contextmanager
def _write(engine: Engine, conn: Connection | None) -> Iterator[Connection]:
    """Yield conn when the caller already holds a transaction, else open one."""
    if conn is not None:
        yield conn
    else:
        with engine.begin() as own:
            yield own


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account records.

    Usage:
        engine = create_auth_engine("sqlite:///safeconnect.db")
        accounts = AccountStore(engine)
        account = accounts.create_account("a@x.com", digest, "Ann")
        accounts.find_by_email("a@x.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_account(
        self,
        email: str,
        password_digest: str,
        first_name: str,
        last_name: str | None = None,
        phone: str | None = None,
        conn: Connection | None = None,
    ) -> Account:
        """Insert a new account and return it with id and created_at filled in.

        Raises ValidationError if email, digest or first name is empty, and
        DuplicateAccountError if the email is already registered. Pass conn
        to insert inside a transaction the caller commits.
        """
        if not email or not password_digest:
            raise ValidationError("Email and password are required.")
        if not first_name:
            raise ValidationError("First name is required.")
        account = Account(
            email=email,
            password_digest=password_digest,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            created_at=_now_iso(),
        )
        try:
            with _write(self.engine, conn) as tx:
                result = tx.execute(
                    accounts_table.insert().values(
                        email=account.email,
                        password_digest=account.password_digest,
                        first_name=account.first_name,
                        last_name=account.last_name,
                        phone=account.phone,
                        created_at=account.created_at,
                    )
                )
                account.id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise DuplicateAccountError() from exc
        return account

    def find_by_email(self, email: str) -> Account | None:
        """Look up an account by exact email (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(select(accounts_table).where(accounts_table.c.email == email)).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_by_id(self, account_id: int) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(select(accounts_table).where(accounts_table.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1


class SessionStore:
    """Repository for Session rows, keyed by credential.

    delete_by_credential() is the only way a session ends early (logout).
    Expired rows are treated as absent by SessionIssuer and removed in bulk
    by purge_expired().
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def put(self, session: Session, conn: Connection | None = None) -> Session:
        """Insert a session row and return it with id filled in."""
        with _write(self.engine, conn) as tx:
            result = tx.execute(
                sessions_table.insert().values(
                    account_id=session.account_id,
                    credential=session.credential,
                    issued_at=session.issued_at,
                    expires_at=session.expires_at,
                )
            )
            session.id = result.inserted_primary_key[0]
        return session

    def get_by_credential(self, credential: str) -> Session | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(sessions_table).where(sessions_table.c.credential == credential)).fetchone()
        return _row_to_session(row) if row is not None else None

    def delete_by_credential(self, credential: str) -> bool:
        """Delete the session row for credential. Returns False if there was none."""
        with self.engine.begin() as conn:
            result = conn.execute(sessions_table.delete().where(sessions_table.c.credential == credential))
        return result.rowcount > 0

    def purge_expired(self, now: datetime) -> int:
        """Delete all rows whose expires_at is at or before now. Returns rows removed."""
        cutoff = isoformat_utc(now)
        with self.engine.begin() as conn:
            result = conn.execute(sessions_table.delete().where(sessions_table.c.expires_at <= cutoff))
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        password_digest=row.password_digest,
        first_name=row.first_name,
        last_name=row.last_name,
        phone=row.phone,
        created_at=row.created_at,
    )


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        account_id=row.account_id,
        credential=row.credential,
        issued_at=row.issued_at,
        expires_at=row.expires_at,
    )
