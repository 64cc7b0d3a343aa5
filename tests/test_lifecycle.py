"""Tests for the contract lifecycle engine."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from des.compensation.escrow import EscrowLedger
from des.engine.lifecycle import MAX_DURATION, ContractEngine, to_duration
from des.errors import (
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from des.models.contract import ContractStatus
from des.registry.companies import CompanyRegistry
from des.registry.credentials import CredentialRegistry

OWNER = "0xowner"
EMPLOYEE = "0xemployee"
ARBITRATOR = "0xarbitrator"


def _now() -> datetime:
    return datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def _engine(config: Optional[dict[str, Any]] = None) -> ContractEngine:
    companies = CompanyRegistry()
    companies.register_company("Acme", "construction", OWNER)
    credentials = CredentialRegistry(companies)
    credentials.mint_credential(1, EMPLOYEE, "ipfs://e", OWNER)
    return ContractEngine(companies, credentials, EscrowLedger(), config)


def _create(engine: ContractEngine, **overrides) -> int:
    kwargs = dict(
        company_id=1, credential_id=1, salary=Decimal("1000"),
        duration=timedelta(days=30), responsibilities="Build",
        termination_conditions="Two weeks notice", arbitrator=ARBITRATOR,
        caller=OWNER, now=_now(),
    )
    kwargs.update(overrides)
    return engine.create_contract(**kwargs).contract_id


def _active(engine: ContractEngine) -> int:
    cid = _create(engine)
    engine.execute_contract(cid, EMPLOYEE, now=_now())
    return cid


class TestCreate:
    def test_create_contract(self) -> None:
        engine = _engine()
        cid = _create(engine)
        contract = engine.get_contract(cid)
        assert cid == 1
        assert contract.status == ContractStatus.CREATED
        assert contract.employee == EMPLOYEE
        assert contract.balance == Decimal("0")
        assert contract.start_time is None
        assert engine.get_company_contracts(1) == [1]
        assert engine.get_employee_contracts(1) == [1]

    def test_only_owner_creates(self) -> None:
        engine = _engine()
        with pytest.raises(UnauthorizedError):
            _create(engine, caller=EMPLOYEE)
        assert engine.list_contracts() == []

    def test_unknown_credential(self) -> None:
        engine = _engine()
        with pytest.raises(NotFoundError):
            _create(engine, credential_id=5)

    def test_unknown_company(self) -> None:
        engine = _engine()
        with pytest.raises(NotFoundError):
            _create(engine, company_id=5)

    def test_negative_salary(self) -> None:
        with pytest.raises(InvalidArgumentError):
            _create(_engine(), salary="-1")

    def test_zero_salary_allowed_by_default(self) -> None:
        engine = _engine()
        assert _create(engine, salary=0) == 1

    def test_zero_salary_rejected_by_policy(self) -> None:
        with pytest.raises(InvalidArgumentError):
            _create(_engine({"allow_zero_salary": False}), salary=0)

    def test_non_positive_duration(self) -> None:
        with pytest.raises(InvalidArgumentError):
            _create(_engine(), duration=timedelta(0))

    def test_duration_in_seconds(self) -> None:
        assert to_duration(3600) == timedelta(hours=1)
        with pytest.raises(InvalidArgumentError):
            to_duration("soon")

    @pytest.mark.parametrize("value", [float("inf"), float("nan"), 1e20])
    def test_unrepresentable_duration_seconds(self, value) -> None:
        with pytest.raises(InvalidArgumentError):
            to_duration(value)

    def test_duration_overflowing_end_time(self) -> None:
        engine = _engine()
        with pytest.raises(InvalidArgumentError, match="maximum"):
            _create(engine, duration=timedelta.max)
        assert engine.list_contracts() == []

    def test_longest_duration_accepted(self) -> None:
        engine = _engine()
        cid = _create(engine, duration=MAX_DURATION)
        engine.execute_contract(cid, EMPLOYEE, now=_now())
        assert engine.is_contract_active(cid, now=_now() + MAX_DURATION - timedelta(seconds=1))

    @pytest.mark.parametrize("salary", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_salary(self, salary) -> None:
        with pytest.raises(InvalidArgumentError):
            _create(_engine(), salary=salary)

    def test_missing_arbitrator(self) -> None:
        with pytest.raises(InvalidArgumentError):
            _create(_engine(), arbitrator="")

    def test_inactive_company(self) -> None:
        engine = _engine()
        engine._companies.deactivate_company(1, OWNER)
        with pytest.raises(InvalidStateError):
            _create(engine)


class TestExecute:
    def test_employee_executes(self) -> None:
        engine = _engine()
        cid = _create(engine)
        contract = engine.execute_contract(cid, EMPLOYEE, now=_now())
        assert contract.status == ContractStatus.ACTIVE
        assert contract.start_time == _now()
        assert contract.end_time == _now() + timedelta(days=30)

    def test_owner_cannot_execute(self) -> None:
        engine = _engine()
        cid = _create(engine)
        with pytest.raises(UnauthorizedError):
            engine.execute_contract(cid, OWNER, now=_now())
        assert engine.get(cid).status == ContractStatus.CREATED

    def test_execute_twice(self) -> None:
        engine = _engine()
        cid = _active(engine)
        with pytest.raises(InvalidStateError):
            engine.execute_contract(cid, EMPLOYEE, now=_now())

    def test_state_checked_before_role(self) -> None:
        engine = _engine()
        cid = _active(engine)
        with pytest.raises(InvalidStateError):
            engine.execute_contract(cid, "0xstranger", now=_now())


class TestSalary:
    def test_deposit_and_release(self) -> None:
        engine = _engine()
        cid = _active(engine)
        assert engine.deposit_salary(cid, Decimal("500"), "0xanyone") == Decimal("500")
        assert engine.deposit_salary(cid, "250.50", OWNER) == Decimal("750.50")
        assert engine.release_salary(cid, EMPLOYEE) == Decimal("750.50")
        contract = engine.get(cid)
        assert contract.balance == Decimal("0")
        assert contract.status == ContractStatus.ACTIVE
        assert engine._escrow.rail.balance_of(EMPLOYEE) == Decimal("750.50")

    def test_release_before_deposit(self) -> None:
        engine = _engine()
        cid = _active(engine)
        with pytest.raises(InvalidArgumentError):
            engine.release_salary(cid, EMPLOYEE)

    def test_release_by_owner(self) -> None:
        engine = _engine()
        cid = _active(engine)
        engine.deposit_salary(cid, 100, OWNER)
        with pytest.raises(UnauthorizedError):
            engine.release_salary(cid, OWNER)
        assert engine.get(cid).balance == Decimal("100")

    def test_deposit_on_created_contract(self) -> None:
        engine = _engine()
        cid = _create(engine)
        with pytest.raises(InvalidStateError):
            engine.deposit_salary(cid, 100, OWNER)

    @pytest.mark.parametrize("amount", [0, "-5", "abc", "NaN", "Infinity", "sNaN"])
    def test_bad_deposit_amounts(self, amount) -> None:
        engine = _engine()
        cid = _active(engine)
        with pytest.raises(InvalidArgumentError):
            engine.deposit_salary(cid, amount, OWNER)
        assert engine.get(cid).balance == Decimal("0")


class TestEnding:
    def test_terminate_by_employee(self) -> None:
        engine = _engine()
        cid = _active(engine)
        contract = engine.terminate_contract(cid, "Moving on", EMPLOYEE)
        assert contract.status == ContractStatus.TERMINATED
        assert contract.termination_reason == "Moving on"

    def test_terminate_keeps_stranded_balance(self) -> None:
        engine = _engine()
        cid = _active(engine)
        engine.deposit_salary(cid, 300, OWNER)
        engine.terminate_contract(cid, "Budget", OWNER)
        assert engine.get(cid).balance == Decimal("300")

    def test_unauthorized_terminate_leaves_status(self) -> None:
        engine = _engine()
        cid = _active(engine)
        with pytest.raises(UnauthorizedError):
            engine.terminate_contract(cid, "No", "0xstranger")
        assert engine.get(cid).status == ContractStatus.ACTIVE

    def test_dispute_then_terminate_is_not_allowed(self) -> None:
        engine = _engine()
        cid = _active(engine)
        engine.raise_dispute(cid, OWNER)
        assert engine.get(cid).status == ContractStatus.DISPUTED
        with pytest.raises(InvalidStateError):
            engine.terminate_contract(cid, "Quit", EMPLOYEE)

    def test_dispute_on_created_contract(self) -> None:
        engine = _engine()
        cid = _create(engine)
        with pytest.raises(InvalidStateError):
            engine.raise_dispute(cid, EMPLOYEE)

    def test_complete_after_duration(self) -> None:
        engine = _engine()
        cid = _active(engine)
        later = _now() + timedelta(days=30)
        assert engine.complete_contract(cid, EMPLOYEE, now=later).status == ContractStatus.COMPLETED

    def test_complete_early_rejected(self) -> None:
        engine = _engine()
        cid = _active(engine)
        with pytest.raises(InvalidStateError):
            engine.complete_contract(cid, OWNER, now=_now() + timedelta(days=29))
        assert engine.get(cid).status == ContractStatus.ACTIVE

    def test_terminal_states_accept_nothing(self) -> None:
        engine = _engine()
        cid = _active(engine)
        engine.terminate_contract(cid, "Done", OWNER)
        with pytest.raises(InvalidStateError):
            engine.deposit_salary(cid, 10, OWNER)
        with pytest.raises(InvalidStateError):
            engine.raise_dispute(cid, OWNER)


class TestQueries:
    def test_is_contract_active_window(self) -> None:
        engine = _engine()
        cid = _create(engine)
        assert not engine.is_contract_active(cid, now=_now())
        engine.execute_contract(cid, EMPLOYEE, now=_now())
        assert engine.is_contract_active(cid, now=_now() + timedelta(days=29))
        assert not engine.is_contract_active(cid, now=_now() + timedelta(days=30))

    def test_snapshot_is_detached(self) -> None:
        engine = _engine()
        cid = _create(engine)
        snapshot = engine.get_contract(cid)
        snapshot.status = ContractStatus.TERMINATED
        assert engine.get(cid).status == ContractStatus.CREATED

    def test_records_round_trip(self) -> None:
        engine = _engine()
        cid = _active(engine)
        engine.deposit_salary(cid, "42.10", OWNER)
        restored = ContractEngine.from_records(
            engine._companies, engine._credentials, engine._escrow,
            engine.to_records(), last_id=engine.last_id,
        )
        contract = restored.get(cid)
        assert contract.balance == Decimal("42.10")
        assert contract.start_time == _now()
        assert contract.duration == timedelta(days=30)
        assert restored.get_employee_contracts(1) == [cid]
        assert _create(restored) == 2
