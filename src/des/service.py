"""Employment service — unified facade for the employment ledger.

This is the primary interface for programmatic access. It orchestrates:
- Company registry (register, deactivate, details, stats)
- Credential registry (mint, lock checks, owner resolution)
- Contract lifecycle (create, execute, deposit, release, dispute,
  terminate, complete)
- Dispute arbitration
- Reviews
- Persistence (event log, state store)

Each mutating call runs under the locks of the entities it touches,
returns a ServiceResult, and on success emits its lifecycle event(s)
after the state change has been applied and persisted. A rejected call
changes nothing and emits nothing.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

from des.compensation.escrow import EscrowLedger
from des.compensation.payment_rail import PaymentRail
from des.concurrency import TABLE_KEY, EntityLocks, LockKey
from des.engine.lifecycle import ContractEngine, DurationLike
from des.errors import EmploymentError, ErrorKind
from des.invariants import check_ledger
from des.legal.arbitration import DisputeArbitration
from des.models.company import Company
from des.models.contract import CompanyStats, Contract, Review
from des.models.escrow import EscrowEntry
from des.persistence.event_log import EventKind, EventLog, EventRecord
from des.persistence.state_store import StateStore
from des.policy import EmploymentPolicy
from des.registry.companies import CompanyRegistry
from des.registry.credentials import CredentialRegistry
from des.review.aggregator import ReviewAggregator

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
PendingEvent = tuple[EventKind, str, dict[str, Any]]


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[ErrorKind] = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EmploymentService:
    """Unified employment ledger facade.

    Usage:
        service = EmploymentService()
        company_id = service.register_company("Acme", "construction", "0xO").data["company_id"]
        cred_id = service.mint_credential(company_id, "0xE", "ipfs://e", "0xO").data["credential_id"]
        contract_id = service.create_contract(
            company_id, cred_id, Decimal("1000"), timedelta(days=30),
            "Build", "Two weeks notice", "0xA", "0xO",
        ).data["contract_id"]
        service.execute_contract(contract_id, "0xE")
        service.deposit_salary(contract_id, Decimal("500"), "0xO")
        service.release_salary(contract_id, "0xE")

    Persistence (optional):
        service = EmploymentService(event_log=EventLog(path), state_store=StateStore(path))
        # State is loaded on construction and saved after each mutation.
    """

    def __init__(
        self,
        policy: Optional[EmploymentPolicy] = None,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        rail: Optional[PaymentRail] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._policy = policy or EmploymentPolicy()
        self._event_log = event_log if event_log is not None else EventLog()
        self._state_store = state_store
        self._clock = clock or _utc_now
        self._locks = EntityLocks()
        self._event_lock = threading.Lock()
        self._persist_lock = threading.Lock()

        contract_config = self._policy.contract_config()
        review_config = self._policy.review_config()
        if state_store is not None and state_store.exists():
            state = state_store.load()
            sequences = state["sequences"]
            self._companies = CompanyRegistry.from_records(
                state["companies"], sequences.get("companies"),
            )
            self._credentials = CredentialRegistry.from_records(
                self._companies, state["credentials"], sequences.get("credentials"),
            )
            self._escrow = EscrowLedger.from_records(state["escrow"], rail)
            self._engine = ContractEngine.from_records(
                self._companies, self._credentials, self._escrow,
                state["contracts"], contract_config, sequences.get("contracts"),
            )
            self._reviews = ReviewAggregator.from_records(
                self._engine, self._companies, state["reviews"], review_config,
            )
        else:
            self._companies = CompanyRegistry()
            self._credentials = CredentialRegistry(self._companies)
            self._escrow = EscrowLedger(rail)
            self._engine = ContractEngine(
                self._companies, self._credentials, self._escrow, contract_config,
            )
            self._reviews = ReviewAggregator(self._engine, self._companies, review_config)
        self._arbitration = DisputeArbitration(self._engine, self._escrow)

        # Continue the event id sequence of a reloaded log.
        self._event_counter = self._event_log.count
        self._persistence_degraded = False

    # ------------------------------------------------------------------
    # Companies
    # ------------------------------------------------------------------

    def register_company(self, name: str, industry: str, caller: str) -> ServiceResult:
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            company = self._companies.register_company(name, industry, caller, now=self._now())
            return (
                {"company_id": company.company_id},
                [(EventKind.COMPANY_REGISTERED, caller, {
                    "company_id": company.company_id,
                    "name": name,
                    "industry": industry,
                    "owner": caller,
                })],
            )

        return self._run("register_company", [("company", TABLE_KEY)], _op)

    def deactivate_company(self, company_id: int, caller: str) -> ServiceResult:
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            self._companies.deactivate_company(company_id, caller)
            return (
                {"company_id": company_id, "is_active": False},
                [(EventKind.COMPANY_DEACTIVATED, caller, {"company_id": company_id})],
            )

        return self._run("deactivate_company", [("company", company_id)], _op)

    def get_company_details(self, company_id: int) -> Company:
        with self._locks.hold(("company", company_id)):
            return self._companies.get_company_details(company_id)

    def list_companies(self) -> list[Company]:
        return self._companies.list_companies()

    def get_company_stats(self, company_id: int) -> CompanyStats:
        """Consistent snapshot: holds the company and every contract its
        credentials hold."""
        with self._locks.hold(("company", company_id)):
            contract_ids = {
                cid
                for credential_id in self._companies.get(company_id).employee_ids
                for cid in self._engine.get_employee_contracts(credential_id)
            }
        keys: list[LockKey] = [("company", company_id)]
        keys.extend(("contract", cid) for cid in contract_ids)
        with self._locks.hold(*keys):
            return self._reviews.get_company_stats(company_id, now=self._now())

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def mint_credential(
        self,
        company_id: int,
        employee: str,
        metadata_ref: str,
        caller: str,
    ) -> ServiceResult:
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            cred = self._credentials.mint_credential(
                company_id, employee, metadata_ref, caller, now=self._now(),
            )
            payload = {
                "credential_id": cred.credential_id,
                "company_id": company_id,
                "employee": employee,
            }
            return (
                {"credential_id": cred.credential_id},
                [
                    (EventKind.CREDENTIAL_LOCKED, caller, dict(payload)),
                    (EventKind.CREDENTIAL_ISSUED, caller,
                     dict(payload, metadata_ref=metadata_ref)),
                ],
            )

        return self._run(
            "mint_credential",
            [("company", company_id), ("credential", TABLE_KEY)],
            _op,
        )

    def transfer_credential(
        self,
        credential_id: int,
        new_owner: str,
        caller: str,
    ) -> ServiceResult:
        """Always fails: credentials cannot change hands."""
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            self._credentials.transfer_credential(credential_id, new_owner, caller)
            return {}, []

        return self._run("transfer_credential", [("credential", credential_id)], _op)

    def is_locked(self, credential_id: int) -> bool:
        return self._credentials.is_locked(credential_id)

    def resolve_owner(self, credential_id: int) -> str:
        return self._credentials.resolve_owner(credential_id)

    def credential_of(self, identity: str) -> Optional[int]:
        return self._credentials.credential_of(identity)

    # ------------------------------------------------------------------
    # Contract lifecycle
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
    ) -> ServiceResult:
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            contract = self._engine.create_contract(
                company_id, credential_id, salary, duration,
                responsibilities, termination_conditions, arbitrator,
                caller, now=self._now(),
            )
            return (
                {"contract_id": contract.contract_id, "status": contract.status.value},
                [(EventKind.CONTRACT_CREATED, caller, {
                    "contract_id": contract.contract_id,
                    "company_id": company_id,
                    "credential_id": credential_id,
                    "employee": contract.employee,
                    "salary": str(contract.salary),
                    "duration_seconds": contract.duration.total_seconds(),
                    "arbitrator": arbitrator,
                })],
            )

        return self._run(
            "create_contract",
            [("company", company_id), ("credential", credential_id)],
            _op,
        )

    def execute_contract(self, contract_id: int, caller: str) -> ServiceResult:
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            contract = self._engine.execute_contract(contract_id, caller, now=self._now())
            start = contract.start_time.isoformat()
            return (
                {"contract_id": contract_id, "status": contract.status.value,
                 "start_time": start},
                [(EventKind.CONTRACT_EXECUTED, caller, {
                    "contract_id": contract_id, "start_time": start,
                })],
            )

        return self._run("execute_contract", [("contract", contract_id)], _op)

    def deposit_salary(self, contract_id: int, amount: Any, caller: str) -> ServiceResult:
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            before = self._engine.get(contract_id).balance
            balance = self._engine.deposit_salary(contract_id, amount, caller, now=self._now())
            deposited = balance - before
            return (
                {"contract_id": contract_id, "amount": deposited, "balance": balance},
                [(EventKind.SALARY_DEPOSITED, caller, {
                    "contract_id": contract_id,
                    "amount": str(deposited),
                    "balance": str(balance),
                })],
            )

        return self._run("deposit_salary", [("contract", contract_id)], _op)

    def release_salary(self, contract_id: int, caller: str) -> ServiceResult:
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            amount = self._engine.release_salary(contract_id, caller, now=self._now())
            return (
                {"contract_id": contract_id, "amount": amount, "balance": Decimal("0")},
                [(EventKind.SALARY_RELEASED, caller, {
                    "contract_id": contract_id,
                    "employee": caller,
                    "amount": str(amount),
                })],
            )

        return self._run("release_salary", [("contract", contract_id)], _op)

    def raise_dispute(self, contract_id: int, caller: str) -> ServiceResult:
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            contract = self._engine.raise_dispute(contract_id, caller)
            return (
                {"contract_id": contract_id, "status": contract.status.value},
                [(EventKind.DISPUTE_RAISED, caller, {"contract_id": contract_id})],
            )

        return self._run("raise_dispute", [("contract", contract_id)], _op)

    def terminate_contract(self, contract_id: int, reason: str, caller: str) -> ServiceResult:
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            contract = self._engine.terminate_contract(contract_id, reason, caller)
            return (
                {"contract_id": contract_id, "status": contract.status.value,
                 "stranded_balance": contract.balance},
                [(EventKind.CONTRACT_TERMINATED, caller, {
                    "contract_id": contract_id,
                    "reason": reason,
                    "balance": str(contract.balance),
                })],
            )

        return self._run("terminate_contract", [("contract", contract_id)], _op)

    def complete_contract(self, contract_id: int, caller: str) -> ServiceResult:
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            contract = self._engine.complete_contract(contract_id, caller, now=self._now())
            return (
                {"contract_id": contract_id, "status": contract.status.value},
                [(EventKind.CONTRACT_COMPLETED, caller, {
                    "contract_id": contract_id,
                    "balance": str(contract.balance),
                })],
            )

        return self._run("complete_contract", [("contract", contract_id)], _op)

    def get_contract(self, contract_id: int) -> Contract:
        with self._locks.hold(("contract", contract_id)):
            return self._engine.get_contract(contract_id)

    def is_contract_active(self, contract_id: int) -> bool:
        return self._engine.is_contract_active(contract_id, now=self._now())

    def get_company_contracts(self, company_id: int) -> list[int]:
        return self._engine.get_company_contracts(company_id)

    def get_employee_contracts(self, credential_id: int) -> list[int]:
        return self._engine.get_employee_contracts(credential_id)

    def escrow_entries(self, contract_id: int) -> list[EscrowEntry]:
        self._engine.get(contract_id)
        return self._escrow.entries(contract_id)

    # ------------------------------------------------------------------
    # Arbitration and reviews
    # ------------------------------------------------------------------

    def resolve_dispute(
        self,
        contract_id: int,
        decision_for_employee: bool,
        caller: str,
    ) -> ServiceResult:
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            outcome = self._arbitration.resolve_dispute(
                contract_id, decision_for_employee, caller, now=self._now(),
            )
            return (
                {"contract_id": contract_id, "status": "terminated",
                 "payout": outcome.payout, "balance": outcome.remaining_balance},
                [(EventKind.DISPUTE_RESOLVED, caller, {
                    "contract_id": contract_id,
                    "decision_for_employee": decision_for_employee,
                    "payout": str(outcome.payout),
                    "balance": str(outcome.remaining_balance),
                })],
            )

        return self._run("resolve_dispute", [("contract", contract_id)], _op)

    def submit_review(
        self,
        contract_id: int,
        rating: int,
        comments: str,
        caller: str,
    ) -> ServiceResult:
        def _op() -> tuple[dict[str, Any], list[PendingEvent]]:
            review = self._reviews.submit_review(
                contract_id, rating, comments, caller, now=self._now(),
            )
            return (
                {"contract_id": contract_id, "rating": review.rating},
                [(EventKind.REVIEW_SUBMITTED, caller, {
                    "contract_id": contract_id,
                    "rating": review.rating,
                    "reviewer": caller,
                })],
            )

        return self._run("submit_review", [("contract", contract_id)], _op)

    def get_reviews(self, contract_id: int) -> list[Review]:
        with self._locks.hold(("contract", contract_id)):
            return self._reviews.get_reviews(contract_id)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    @property
    def persistence_degraded(self) -> bool:
        return self._persistence_degraded

    def check_invariants(self) -> list[str]:
        return check_ledger(
            self._companies, self._credentials, self._engine, self._escrow,
        )

    def status(self) -> dict[str, Any]:
        contracts = self._engine.list_contracts()
        by_status: dict[str, int] = {}
        for c in contracts:
            by_status[c.status.value] = by_status.get(c.status.value, 0) + 1
        return {
            "companies": len(self._companies.list_companies()),
            "credentials": len(self._credentials.list_credentials()),
            "contracts": len(contracts),
            "contracts_by_status": by_status,
            "escrowed_total": str(sum((c.balance for c in contracts), Decimal("0"))),
            "events": self._event_log.count,
            "persistence_degraded": self._persistence_degraded,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return self._clock()

    def _run(
        self,
        operation: str,
        lock_keys: list[LockKey],
        op: Callable[[], tuple[dict[str, Any], list[PendingEvent]]],
    ) -> ServiceResult:
        """Run one mutation: lock, apply, persist, then publish events."""
        with self._locks.hold(*lock_keys):
            try:
                data, events = op()
            except EmploymentError as e:
                logger.warning("%s rejected (%s): %s", operation, e.kind.value, e)
                return ServiceResult(success=False, errors=[str(e)], error_kind=e.kind)

            warning = self._safe_persist()
            published = self._publish(events)
            if warning:
                data["warning"] = warning
            if published:
                data["event_ids"] = published
            logger.info("%s ok: %s", operation, data)
            return ServiceResult(success=True, data=data)

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _publish(self, events: list[PendingEvent]) -> list[str]:
        published: list[str] = []
        with self._event_lock:
            for kind, actor, payload in events:
                event = EventRecord.create(
                    event_id=self._next_event_id(),
                    event_kind=kind,
                    actor_id=actor,
                    payload=payload,
                    timestamp_utc=self._now(),
                )
                try:
                    self._event_log.append(event)
                except (ValueError, OSError) as e:
                    logger.error("Event log failure for %s: %s", kind.value, e)
                    self._persistence_degraded = True
                    continue
                published.append(event.event_id)
        return published

    def _persist_state(self) -> None:
        """Write every table to the state store (if wired). May raise OSError.

        Snapshot and write happen under one lock so that the last write
        to land is also the newest snapshot.
        """
        if self._state_store is None:
            return
        with self._persist_lock:
            self._state_store.save(
                {
                    "companies": self._companies.to_records(),
                    "credentials": self._credentials.to_records(),
                    "contracts": self._engine.to_records(),
                    "reviews": self._reviews.to_records(),
                    "escrow": self._escrow.to_records(),
                },
                {
                    "companies": self._companies.last_id,
                    "credentials": self._credentials.last_id,
                    "contracts": self._engine.last_id,
                },
            )

    def _safe_persist(self) -> Optional[str]:
        """Persist after the in-memory state has changed.

        MUST NOT roll back: the mutation has happened, and for releases
        and payouts the funds have already moved. On failure the state
        store is stale; flag it for the operator and return a warning.
        """
        try:
            self._persist_state()
            return None
        except OSError as e:
            self._persistence_degraded = True
            logger.error("State store write failed: %s", e)
            return f"Persistence degraded: {e}; in-memory state is ahead of the StateStore"
