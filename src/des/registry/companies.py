"""Company registry — employer profiles and their credential lists.

Company names are not unique keys: two registrations with the same name
produce two companies. Companies are never deleted; deactivation only
stops new credentials and contracts from being issued under them.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from des.access import Action, check_caller, require
from des.concurrency import IdSequence
from des.errors import InvalidStateError, NotFoundError
from des.models.company import Company

logger = logging.getLogger(__name__)


class CompanyRegistry:
    """Registers companies and tracks which credentials belong to them.

    Usage:
        registry = CompanyRegistry()
        company = registry.register_company("Acme", "construction", "0xowner")
        registry.add_employee(company.company_id, credential_id=1)
    """

    def __init__(self, sequence: Optional[IdSequence] = None) -> None:
        self._companies: dict[int, Company] = {}
        self._sequence = sequence or IdSequence()

    @classmethod
    def from_records(
        cls,
        records: list[dict[str, Any]],
        last_id: Optional[int] = None,
    ) -> CompanyRegistry:
        """Restore registry state from persistence records."""
        companies = [
            Company(
                company_id=int(r["company_id"]),
                name=r["name"],
                industry=r["industry"],
                owner=r["owner"],
                employee_ids=[int(i) for i in r.get("employee_ids", [])],
                is_active=bool(r.get("is_active", True)),
                registered_utc=(
                    datetime.fromisoformat(r["registered_utc"])
                    if r.get("registered_utc") else None
                ),
            )
            for r in records
        ]
        if last_id is None:
            last_id = max((c.company_id for c in companies), default=0)
        registry = cls(IdSequence(last_id))
        for company in companies:
            registry._companies[company.company_id] = company
        return registry

    def register_company(
        self,
        name: str,
        industry: str,
        caller: str,
        now: Optional[datetime] = None,
    ) -> Company:
        """Register a new active company owned by the caller."""
        check_caller(caller)
        if now is None:
            now = datetime.now(timezone.utc)

        company = Company(
            company_id=self._sequence.next_id(),
            name=name,
            industry=industry,
            owner=caller,
            registered_utc=now,
        )
        self._companies[company.company_id] = company
        logger.debug("Registered company %d for %s", company.company_id, caller)
        return company

    def deactivate_company(self, company_id: int, caller: str) -> Company:
        """Soft-deactivate a company. Owner only; not reversible."""
        company = self.get(company_id)
        require(Action.DEACTIVATE_COMPANY, caller, company=company)
        if not company.is_active:
            raise InvalidStateError(f"Company {company_id} is already inactive")
        company.is_active = False
        return company

    def add_employee(self, company_id: int, credential_id: int) -> None:
        company = self.get(company_id)
        if credential_id not in company.employee_ids:
            company.employee_ids.append(credential_id)

    def require_active(self, company: Company) -> None:
        if not company.is_active:
            raise InvalidStateError(f"Company {company.company_id} is not active")

    def get(self, company_id: int) -> Company:
        """Return the live record; raises NotFoundError for unknown ids."""
        company = self._companies.get(company_id)
        if company is None:
            raise NotFoundError(f"Company not found: {company_id}")
        return company

    def get_company_details(self, company_id: int) -> Company:
        """Return a detached snapshot of the company."""
        company = self.get(company_id)
        return dataclasses.replace(company, employee_ids=list(company.employee_ids))

    def list_companies(self) -> list[Company]:
        return [self._companies[cid] for cid in sorted(self._companies)]

    @property
    def last_id(self) -> int:
        return self._sequence.current

    def to_records(self) -> list[dict[str, Any]]:
        """Serialise all companies for persistence."""
        return [
            {
                "company_id": c.company_id,
                "name": c.name,
                "industry": c.industry,
                "owner": c.owner,
                "employee_ids": list(c.employee_ids),
                "is_active": c.is_active,
                "registered_utc": (
                    c.registered_utc.isoformat() if c.registered_utc else None
                ),
            }
            for c in self.list_companies()
        ]
