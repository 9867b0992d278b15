"""
contacts/store.py -- SQLAlchemy-backed persistence for emergency contacts.

Pattern: Repository + Data Mapper, same as auth/store.py. ContactStore is the
repository; _row_to_contact is the mapper.

Ownership: every read and delete takes the caller's account_id and puts it in
the WHERE clause, so one account can never see or remove another account's
contacts even if it guesses a contact id.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ContactStore(engine)
    contact_id = store.add_contact(EmergencyContact(account_id=1, name="Mom", phone="+91 98765 43210"))
    store.list_contacts(1)
    store.delete_contact(contact_id, account_id=1)
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, select
from sqlalchemy.engine import Engine

from contacts.models import EmergencyContact

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_contacts = Table(
    "emergency_contacts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", Integer, nullable=False, index=True),
    Column("name", String(100), nullable=False),
    Column("phone", String(32), nullable=False),
    Column("relationship", String(50)),
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class ContactStore:
    """Repository for EmergencyContact records."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    def add_contact(self, contact: EmergencyContact) -> int:
        """Insert a contact and return its assigned database ID."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _contacts.insert().values(
                    account_id=contact.account_id,
                    name=contact.name,
                    phone=contact.phone,
                    relationship=contact.relationship,
                    created_at=_now_iso(),
                )
            )
        return result.inserted_primary_key[0]

    def list_contacts(self, account_id: int) -> list[EmergencyContact]:
        """Return an account's contacts in the order they were added."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_contacts).where(_contacts.c.account_id == account_id).order_by(_contacts.c.id)
            ).fetchall()
        return [_row_to_contact(r) for r in rows]

    def get_contact(self, contact_id: int, account_id: int) -> Optional[EmergencyContact]:
        """Return one contact, or None if it does not exist or belongs to someone else."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_contacts).where((_contacts.c.id == contact_id) & (_contacts.c.account_id == account_id))
            ).fetchone()
        return _row_to_contact(row) if row is not None else None

    def delete_contact(self, contact_id: int, account_id: int) -> bool:
        """Delete a contact. Returns False if not found or owned by another account."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _contacts.delete().where((_contacts.c.id == contact_id) & (_contacts.c.account_id == account_id))
            )
        return result.rowcount > 0


def _row_to_contact(row) -> EmergencyContact:
    return EmergencyContact(
        id=row.id,
        account_id=row.account_id,
        name=row.name,
        phone=row.phone,
        relationship=row.relationship,
        created_at=row.created_at,
    )
