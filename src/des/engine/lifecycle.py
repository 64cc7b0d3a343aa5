"""Contract lifecycle engine — creation, execution, payment and termination.

Every operation follows the same order: look the contract up
(NotFoundError), check its status (InvalidStateError), check the
caller's relationship (UnauthorizedError), then check arguments
(InvalidArgumentError). Nothing is mutated until every check passes.

Escrow arithmetic is delegated to the EscrowLedger; this engine only
decides whether a deposit or release is allowed right now.

The engine is a pure state machine over in-memory records. Locking,
event publication and persistence are the service layer's concern.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional, Union

from des.access import Action, check_caller, require
from des.compensation.escrow import EscrowLedger, to_amount
from des.concurrency import IdSequence
from des.engine.state_machine import ContractStateMachine
from des.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from des.models.company import Company
from des.models.contract import Contract, ContractStatus
from des.registry.companies import CompanyRegistry
from des.registry.credentials import CredentialRegistry

logger = logging.getLogger(__name__)

DurationLike = Union[timedelta, int, float]

# Keeps start_time + duration representable for any realistic start time.
MAX_DURATION = timedelta(days=365 * 100)


def to_duration(value: DurationLike) -> timedelta:
    """Accept a timedelta or a number of seconds."""
    if isinstance(value, timedelta):
        return value
    try:
        return timedelta(seconds=float(value))
    except (TypeError, ValueError, OverflowError) as e:
        raise InvalidArgumentError(f"Not a valid duration: {value!r}") from e


class ContractEngine:
    """Owns contract records and drives them through their lifecycle.

    Usage:
        engine = ContractEngine(companies, credentials, escrow)
        contract = engine.create_contract(1, 1, Decimal("1000"),
                                          timedelta(days=30), "Build", "Notice",
                                          "0xarbitrator", caller="0xowner")
        engine.execute_contract(contract.contract_id, caller="0xemployee")
        engine.deposit_salary(contract.contract_id, Decimal("500"), caller="0xanyone")
        engine.release_salary(contract.contract_id, caller="0xemployee")
    """

    def __init__(
        self,
        companies: CompanyRegistry,
        credentials: CredentialRegistry,
        escrow: EscrowLedger,
        config: Optional[dict[str, Any]] = None,
        sequence: Optional[IdSequence] = None,
    ) -> None:
        config = config or {}
        self._companies = companies
        self._credentials = credentials
        self._escrow = escrow
        self._allow_zero_salary = config.get("allow_zero_salary", True)
        self._contracts: dict[int, Contract] = {}
        self._by_company: dict[int, list[int]] = {}
        self._by_credential: dict[int, list[int]] = {}
        self._sequence = sequence or IdSequence()

    @classmethod
    def from_records(
        cls,
        companies: CompanyRegistry,
        credentials: CredentialRegistry,
        escrow: EscrowLedger,
        records: list[dict[str, Any]],
        config: Optional[dict[str, Any]] = None,
        last_id: Optional[int] = None,
    ) -> ContractEngine:
        """Restore contracts from persistence; indices are rebuilt."""
        contracts = [
            Contract(
                contract_id=int(r["contract_id"]),
                company_id=int(r["company_id"]),
                credential_id=int(r["credential_id"]),
                employee=r["employee"],
                salary=Decimal(r["salary"]),
                duration=timedelta(seconds=float(r["duration_seconds"])),
                responsibilities=r.get("responsibilities", ""),
                termination_conditions=r.get("termination_conditions", ""),
                arbitrator=r["arbitrator"],
                status=ContractStatus(r["status"]),
                balance=Decimal(r["balance"]),
                start_time=(
                    datetime.fromisoformat(r["start_time"])
                    if r.get("start_time") else None
                ),
                created_utc=(
                    datetime.fromisoformat(r["created_utc"])
                    if r.get("created_utc") else None
                ),
                termination_reason=r.get("termination_reason"),
            )
            for r in records
        ]
        if last_id is None:
            last_id = max((c.contract_id for c in contracts), default=0)
        engine = cls(companies, credentials, escrow, config, IdSequence(last_id))
        for contract in sorted(contracts, key=lambda c: c.contract_id):
            engine._store(contract)
        return engine

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create_contract(
        self,
        company_id: int,
        credential_id: int,
        salary: Any,
        duration: DurationLike,
        responsibilities: str,
        termination_conditions: str,
        arbitrator: str,
        caller: str,
        now: Optional[datetime] = None,
    ) -> Contract:
        """Draft a contract for a credential holder. Owner only."""
        company = self._companies.get(company_id)
        require(Action.CREATE_CONTRACT, caller, company=company)
        self._companies.require_active(company)
        employee = self._credentials.resolve_owner(credential_id)

        salary = to_amount(salary)
        if salary < Decimal("0"):
            raise InvalidArgumentError("Salary cannot be negative")
        if salary == Decimal("0") and not self._allow_zero_salary:
            raise InvalidArgumentError("Salary must be positive")
        duration = to_duration(duration)
        if duration <= timedelta(0):
            raise InvalidArgumentError("Duration must be positive")
        if duration > MAX_DURATION:
            raise InvalidArgumentError(
                f"Duration {duration} exceeds the maximum of {MAX_DURATION.days} days"
            )
        check_caller(arbitrator)
        if now is None:
            now = datetime.now(timezone.utc)

        contract = Contract(
            contract_id=self._sequence.next_id(),
            company_id=company_id,
            credential_id=credential_id,
            employee=employee,
            salary=salary,
            duration=duration,
            responsibilities=responsibilities,
            termination_conditions=termination_conditions,
            arbitrator=arbitrator,
            created_utc=now,
        )
        self._store(contract)
        self._escrow.open_account(contract.contract_id)
        return contract

    def execute_contract(
        self,
        contract_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> Contract:
        """Employee accepts the contract; the clock starts now."""
        contract = self.get(contract_id)
        ContractStateMachine.require_status(
            contract, {ContractStatus.CREATED}, "execute",
        )
        require(Action.EXECUTE_CONTRACT, caller, contract=contract)
        if now is None:
            now = datetime.now(timezone.utc)

        ContractStateMachine.apply_transition(contract, ContractStatus.ACTIVE)
        contract.start_time = now
        return contract

    def deposit_salary(
        self,
        contract_id: int,
        amount: Any,
        caller: str,
        now: Optional[datetime] = None,
    ) -> Decimal:
        """Fund the escrow of an active contract. Open to any caller."""
        contract = self.get(contract_id)
        ContractStateMachine.require_status(
            contract, {ContractStatus.ACTIVE}, "deposit into",
        )
        require(Action.DEPOSIT_SALARY, caller, contract=contract)
        return self._escrow.deposit(contract, amount, caller, now=now)

    def release_salary(
        self,
        contract_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> Decimal:
        """Pay the whole escrowed balance to the employee."""
        contract = self.get(contract_id)
        ContractStateMachine.require_status(
            contract, {ContractStatus.ACTIVE}, "release salary from",
        )
        require(Action.RELEASE_SALARY, caller, contract=contract)
        return self._escrow.release(contract, contract.employee, now=now)

    def raise_dispute(self, contract_id: int, caller: str) -> Contract:
        contract = self.get(contract_id)
        ContractStateMachine.require_status(
            contract, {ContractStatus.ACTIVE}, "dispute",
        )
        require(
            Action.RAISE_DISPUTE, caller,
            company=self.company_of(contract), contract=contract,
        )
        ContractStateMachine.apply_transition(contract, ContractStatus.DISPUTED)
        return contract

    def terminate_contract(
        self,
        contract_id: int,
        reason: str,
        caller: str,
    ) -> Contract:
        """End an active contract early.

        The escrowed balance is left untouched; nothing is refunded.
        """
        contract = self.get(contract_id)
        ContractStateMachine.require_status(
            contract, {ContractStatus.ACTIVE}, "terminate",
        )
        require(
            Action.TERMINATE_CONTRACT, caller,
            company=self.company_of(contract), contract=contract,
        )
        ContractStateMachine.apply_transition(contract, ContractStatus.TERMINATED)
        contract.termination_reason = reason
        if contract.balance > Decimal("0"):
            logger.warning(
                "Contract %d terminated with %s still in escrow",
                contract_id, contract.balance,
            )
        return contract

    def complete_contract(
        self,
        contract_id: int,
        caller: str,
        now: Optional[datetime] = None,
    ) -> Contract:
        """Close an active contract whose agreed duration has elapsed."""
        contract = self.get(contract_id)
        ContractStateMachine.require_status(
            contract, {ContractStatus.ACTIVE}, "complete",
        )
        require(
            Action.COMPLETE_CONTRACT, caller,
            company=self.company_of(contract), contract=contract,
        )
        if now is None:
            now = datetime.now(timezone.utc)
        if contract.end_time is None or now < contract.end_time:
            raise InvalidStateError(
                f"Contract {contract_id} runs until {contract.end_time}; "
                f"cannot complete early"
            )
        ContractStateMachine.apply_transition(contract, ContractStatus.COMPLETED)
        return contract

    def finish_dispute(self, contract: Contract) -> None:
        """DISPUTED → TERMINATED, for the arbitration module."""
        ContractStateMachine.apply_transition(contract, ContractStatus.TERMINATED)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, contract_id: int) -> Contract:
        """Return the live record; raises NotFoundError for unknown ids."""
        contract = self._contracts.get(contract_id)
        if contract is None:
            raise NotFoundError(f"Contract not found: {contract_id}")
        return contract

    def get_contract(self, contract_id: int) -> Contract:
        """Return a detached snapshot of the contract."""
        return dataclasses.replace(self.get(contract_id))

    def company_of(self, contract: Contract) -> Company:
        return self._companies.get(contract.company_id)

    def is_contract_active(
        self,
        contract_id: int,
        now: Optional[datetime] = None,
    ) -> bool:
        if now is None:
            now = datetime.now(timezone.utc)
        return self.get(contract_id).is_active_at(now)

    def get_company_contracts(self, company_id: int) -> list[int]:
        self._companies.get(company_id)
        return list(self._by_company.get(company_id, []))

    def get_employee_contracts(self, credential_id: int) -> list[int]:
        self._credentials.get(credential_id)
        return list(self._by_credential.get(credential_id, []))

    def list_contracts(self) -> list[Contract]:
        return [self._contracts[cid] for cid in sorted(self._contracts)]

    @property
    def last_id(self) -> int:
        return self._sequence.current

    def to_records(self) -> list[dict[str, Any]]:
        """Serialise all contracts for persistence."""
        return [
            {
                "contract_id": c.contract_id,
                "company_id": c.company_id,
                "credential_id": c.credential_id,
                "employee": c.employee,
                "salary": str(c.salary),
                "duration_seconds": c.duration.total_seconds(),
                "responsibilities": c.responsibilities,
                "termination_conditions": c.termination_conditions,
                "arbitrator": c.arbitrator,
                "status": c.status.value,
                "balance": str(c.balance),
                "start_time": c.start_time.isoformat() if c.start_time else None,
                "created_utc": c.created_utc.isoformat() if c.created_utc else None,
                "termination_reason": c.termination_reason,
            }
            for c in self.list_contracts()
        ]

    def _store(self, contract: Contract) -> None:
        self._contracts[contract.contract_id] = contract
        self._by_company.setdefault(contract.company_id, []).append(contract.contract_id)
        self._by_credential.setdefault(contract.credential_id, []).append(
            contract.contract_id
        )
