"""Tests for dispute arbitration."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from des.compensation.escrow import EscrowLedger
from des.engine.lifecycle import ContractEngine
from des.errors import InvalidStateError, TransferFailedError, UnauthorizedError
from des.legal.arbitration import DisputeArbitration
from des.models.contract import ContractStatus
from des.models.escrow import EscrowEntryKind
from des.registry.companies import CompanyRegistry
from des.registry.credentials import CredentialRegistry

OWNER = "0xowner"
EMPLOYEE = "0xemployee"
ARBITRATOR = "0xarbitrator"


def _now() -> datetime:
    return datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class BrokenRail:
    rail_id = "broken"

    def transfer(self, recipient: str, amount: Decimal) -> str:
        raise TimeoutError("settlement timed out")


def _setup(rail=None, deposit: str = "600") -> tuple[ContractEngine, DisputeArbitration, int]:
    companies = CompanyRegistry()
    companies.register_company("Acme", "construction", OWNER)
    credentials = CredentialRegistry(companies)
    credentials.mint_credential(1, EMPLOYEE, "ipfs://e", OWNER)
    escrow = EscrowLedger(rail)
    engine = ContractEngine(companies, credentials, escrow)
    contract = engine.create_contract(
        1, 1, Decimal("1000"), timedelta(days=30), "Build", "Notice",
        ARBITRATOR, OWNER, now=_now(),
    )
    engine.execute_contract(contract.contract_id, EMPLOYEE, now=_now())
    if Decimal(deposit) > 0:
        engine.deposit_salary(contract.contract_id, deposit, OWNER)
    engine.raise_dispute(contract.contract_id, EMPLOYEE)
    return engine, DisputeArbitration(engine, escrow), contract.contract_id


class TestRulings:
    def test_ruling_for_employee_pays_balance(self) -> None:
        engine, arbitration, cid = _setup()
        outcome = arbitration.resolve_dispute(cid, True, ARBITRATOR, now=_now())
        contract = engine.get(cid)
        assert outcome.payout == Decimal("600")
        assert outcome.remaining_balance == Decimal("0")
        assert contract.status == ContractStatus.TERMINATED
        assert contract.balance == Decimal("0")
        assert engine._escrow.entries(cid)[-1].kind == EscrowEntryKind.PAYOUT
        assert engine._escrow.rail.balance_of(EMPLOYEE) == Decimal("600")

    def test_ruling_for_company_keeps_balance(self) -> None:
        engine, arbitration, cid = _setup()
        outcome = arbitration.resolve_dispute(cid, False, ARBITRATOR)
        assert outcome.payout == Decimal("0")
        assert outcome.remaining_balance == Decimal("600")
        assert engine.get(cid).status == ContractStatus.TERMINATED

    def test_ruling_for_employee_with_empty_escrow(self) -> None:
        engine, arbitration, cid = _setup(deposit="0")
        outcome = arbitration.resolve_dispute(cid, True, ARBITRATOR)
        assert outcome.payout == Decimal("0")
        assert engine.get(cid).status == ContractStatus.TERMINATED


class TestGuards:
    def test_only_arbitrator(self) -> None:
        engine, arbitration, cid = _setup()
        for caller in (OWNER, EMPLOYEE, "0xstranger"):
            with pytest.raises(UnauthorizedError):
                arbitration.resolve_dispute(cid, True, caller)
        assert engine.get(cid).status == ContractStatus.DISPUTED
        assert engine.get(cid).balance == Decimal("600")

    def test_resolve_twice(self) -> None:
        _, arbitration, cid = _setup()
        arbitration.resolve_dispute(cid, False, ARBITRATOR)
        with pytest.raises(InvalidStateError):
            arbitration.resolve_dispute(cid, True, ARBITRATOR)

    def test_failed_payout_leaves_dispute_open(self) -> None:
        engine, arbitration, cid = _setup(rail=BrokenRail())
        with pytest.raises(TransferFailedError):
            arbitration.resolve_dispute(cid, True, ARBITRATOR)
        contract = engine.get(cid)
        assert contract.status == ContractStatus.DISPUTED
        assert contract.balance == Decimal("600")
