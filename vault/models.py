"""
vault/models.py -- Domain dataclass for saved passwords.

Pure data container with zero logic. Ownership checks and timestamps live in
vault/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class VaultEntry:
    """A forged password saved under a site/service label.

    Entries are created and deleted, never edited. owner_id is the opaque
    account id from auth/store.py.

    id is None before the record is written to the database.
    """

    owner_id: str
    label: str
    value: str
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
