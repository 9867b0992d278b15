"""
contacts/models.py -- Domain dataclass for a user's emergency contacts.

Pure data container with zero logic. Persistence and ownership checks live in
contacts/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class EmergencyContact:
    """Someone an account holder wants reached in an emergency.

    account_id is the owning Account. Contacts are private to their owner;
    every store query filters on it.

    id is None before the record is written to the database.
    """

    account_id: int
    name: str
    phone: str
    relationship: Optional[str] = None  # "mother", "friend", ...
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
