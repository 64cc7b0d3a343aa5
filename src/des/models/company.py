"""Company and employee credential models.

A credential is soulbound: its owner is fixed when it is minted and no
field exists to record a transfer. The locked flag is always True and
is kept only so external indexers can read it directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Company:
    """A registered employer.

    Mutable — employee_ids grows as credentials are minted and
    is_active flips to False on deactivation. Companies are never deleted.
    """
    company_id: int
    name: str
    industry: str
    owner: str
    employee_ids: list[int] = field(default_factory=list)
    is_active: bool = True
    registered_utc: Optional[datetime] = None


@dataclass(frozen=True)
class EmployeeCredential:
    """A non-transferable credential linking an identity to a company."""
    credential_id: int
    owner: str
    company_id: int
    metadata_ref: str
    locked: bool = True
    issued_utc: Optional[datetime] = None
