"""Tests for ledger invariant checks."""

from datetime import timedelta
from decimal import Decimal

from des.service import EmploymentService


def _service() -> EmploymentService:
    service = EmploymentService()
    service.register_company("Acme", "construction", "0xO")
    service.mint_credential(1, "0xE", "ipfs://e", "0xO")
    service.create_contract(1, 1, Decimal("1000"), timedelta(days=30), "", "", "0xA", "0xO")
    service.execute_contract(1, "0xE")
    service.deposit_salary(1, 300, "0xO")
    return service


class TestCheckLedger:
    def test_clean_ledger(self) -> None:
        assert _service().check_invariants() == []

    def test_detects_balance_drift(self) -> None:
        service = _service()
        service._engine.get(1).balance = Decimal("1")
        errors = service.check_invariants()
        assert any("deposited - disbursed" in e for e in errors)

    def test_detects_negative_balance(self) -> None:
        service = _service()
        service._engine.get(1).balance = Decimal("-5")
        assert any("negative" in e for e in service.check_invariants())

    def test_detects_foreign_employee(self) -> None:
        service = _service()
        service._engine.get(1).employee = "0xImpostor"
        assert any("not the credential owner" in e for e in service.check_invariants())

    def test_detects_unknown_employee_credential(self) -> None:
        service = _service()
        service._companies.get(1).employee_ids.append(9)
        assert any("unknown credential 9" in e for e in service.check_invariants())
