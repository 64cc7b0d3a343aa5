"""Credential registry — soulbound employee credentials.

Each identity may hold at most one credential, ever. A credential is
locked the moment it is minted and stays locked: there is no transfer,
burn or re-issue path. transfer_credential exists only to reject such
attempts with a LockedError.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from des.access import Action, check_caller, require
from des.concurrency import IdSequence
from des.errors import AlreadyRegisteredError, LockedError, NotFoundError
from des.models.company import EmployeeCredential
from des.registry.companies import CompanyRegistry

logger = logging.getLogger(__name__)


class CredentialRegistry:
    """Mints and resolves employee credentials.

    Usage:
        credentials = CredentialRegistry(companies)
        cred = credentials.mint_credential(1, "0xemployee", "ipfs://meta", "0xowner")
        credentials.resolve_owner(cred.credential_id)   # "0xemployee"
    """

    def __init__(
        self,
        companies: CompanyRegistry,
        sequence: Optional[IdSequence] = None,
    ) -> None:
        self._companies = companies
        self._credentials: dict[int, EmployeeCredential] = {}
        self._by_owner: dict[str, int] = {}
        self._sequence = sequence or IdSequence()

    @classmethod
    def from_records(
        cls,
        companies: CompanyRegistry,
        records: list[dict[str, Any]],
        last_id: Optional[int] = None,
    ) -> CredentialRegistry:
        """Restore registry state from persistence records."""
        credentials = [
            EmployeeCredential(
                credential_id=int(r["credential_id"]),
                owner=r["owner"],
                company_id=int(r["company_id"]),
                metadata_ref=r.get("metadata_ref", ""),
                issued_utc=(
                    datetime.fromisoformat(r["issued_utc"])
                    if r.get("issued_utc") else None
                ),
            )
            for r in records
        ]
        if last_id is None:
            last_id = max((c.credential_id for c in credentials), default=0)
        registry = cls(companies, IdSequence(last_id))
        for cred in credentials:
            registry._credentials[cred.credential_id] = cred
            registry._by_owner[cred.owner] = cred.credential_id
        return registry

    def mint_credential(
        self,
        company_id: int,
        employee: str,
        metadata_ref: str,
        caller: str,
        now: Optional[datetime] = None,
    ) -> EmployeeCredential:
        """Mint a locked credential for an employee of the caller's company.

        Raises:
            NotFoundError: unknown company.
            UnauthorizedError: caller does not own the company.
            InvalidStateError: company is deactivated.
            AlreadyRegisteredError: employee already holds a credential.
        """
        company = self._companies.get(company_id)
        require(Action.MINT_CREDENTIAL, caller, company=company)
        self._companies.require_active(company)
        check_caller(employee)
        existing = self._by_owner.get(employee)
        if existing is not None:
            raise AlreadyRegisteredError(
                f"Employee {employee} already holds credential {existing}"
            )
        if now is None:
            now = datetime.now(timezone.utc)

        credential = EmployeeCredential(
            credential_id=self._sequence.next_id(),
            owner=employee,
            company_id=company_id,
            metadata_ref=metadata_ref,
            locked=True,
            issued_utc=now,
        )
        self._credentials[credential.credential_id] = credential
        self._by_owner[employee] = credential.credential_id
        self._companies.add_employee(company_id, credential.credential_id)
        logger.debug(
            "Minted credential %d for %s at company %d",
            credential.credential_id, employee, company_id,
        )
        return credential

    def transfer_credential(
        self,
        credential_id: int,
        new_owner: str,
        caller: str,
    ) -> None:
        """Always rejected: credentials are bound to their first owner."""
        credential = self.get(credential_id)
        raise LockedError(
            f"Credential {credential_id} is locked to {credential.owner}; "
            f"transfer to {new_owner} requested by {caller} rejected"
        )

    def get(self, credential_id: int) -> EmployeeCredential:
        credential = self._credentials.get(credential_id)
        if credential is None:
            raise NotFoundError(f"Credential not found: {credential_id}")
        return credential

    def is_locked(self, credential_id: int) -> bool:
        return self.get(credential_id).locked

    def resolve_owner(self, credential_id: int) -> str:
        return self.get(credential_id).owner

    def credential_of(self, identity: str) -> Optional[int]:
        """The credential id held by an identity, if any."""
        return self._by_owner.get(identity)

    def list_credentials(self) -> list[EmployeeCredential]:
        return [self._credentials[cid] for cid in sorted(self._credentials)]

    @property
    def last_id(self) -> int:
        return self._sequence.current

    def to_records(self) -> list[dict[str, Any]]:
        """Serialise all credentials for persistence."""
        return [
            {
                "credential_id": c.credential_id,
                "owner": c.owner,
                "company_id": c.company_id,
                "metadata_ref": c.metadata_ref,
                "locked": c.locked,
                "issued_utc": c.issued_utc.isoformat() if c.issued_utc else None,
            }
            for c in self.list_credentials()
        ]
