"""Tests for the authorization matrix — one table, every action."""

import pytest
from datetime import timedelta
from decimal import Decimal

from des.access import ACTION_ROLES, Action, Role, authorize, check_caller, require, roles_of
from des.errors import InvalidArgumentError, UnauthorizedError
from des.models.company import Company
from des.models.contract import Contract


OWNER = "0xowner"
EMPLOYEE = "0xemployee"
ARBITRATOR = "0xarbitrator"
STRANGER = "0xstranger"


def _company() -> Company:
    return Company(company_id=1, name="Acme", industry="construction", owner=OWNER)


def _contract() -> Contract:
    return Contract(
        contract_id=1, company_id=1, credential_id=1, employee=EMPLOYEE,
        salary=Decimal("1000"), duration=timedelta(days=30),
        responsibilities="Build", termination_conditions="Notice",
        arbitrator=ARBITRATOR,
    )


EXPECTED = {
    Action.MINT_CREDENTIAL: {OWNER},
    Action.DEACTIVATE_COMPANY: {OWNER},
    Action.CREATE_CONTRACT: {OWNER},
    Action.EXECUTE_CONTRACT: {EMPLOYEE},
    Action.DEPOSIT_SALARY: {OWNER, EMPLOYEE, ARBITRATOR, STRANGER},
    Action.RELEASE_SALARY: {EMPLOYEE},
    Action.RAISE_DISPUTE: {OWNER, EMPLOYEE},
    Action.TERMINATE_CONTRACT: {OWNER, EMPLOYEE},
    Action.COMPLETE_CONTRACT: {OWNER, EMPLOYEE},
    Action.RESOLVE_DISPUTE: {ARBITRATOR},
    Action.SUBMIT_REVIEW: {OWNER, EMPLOYEE},
}


class TestMatrix:
    def test_every_action_has_roles(self) -> None:
        assert set(ACTION_ROLES) == set(Action)

    @pytest.mark.parametrize("action", list(Action))
    def test_allowed_callers(self, action: Action) -> None:
        company, contract = _company(), _contract()
        allowed = {
            caller for caller in (OWNER, EMPLOYEE, ARBITRATOR, STRANGER)
            if authorize(action, caller, company=company, contract=contract)
        }
        assert allowed == EXPECTED[action]

    def test_empty_caller_never_authorized(self) -> None:
        assert not authorize(Action.DEPOSIT_SALARY, "", contract=_contract())

    def test_owner_who_is_also_arbitrator_holds_both_roles(self) -> None:
        contract = _contract()
        contract.arbitrator = OWNER
        roles = roles_of(OWNER, _company(), contract)
        assert {Role.OWNER, Role.ARBITRATOR, Role.ANYONE} <= roles
        assert Role.EMPLOYEE not in roles


class TestRequire:
    def test_require_raises_unauthorized(self) -> None:
        with pytest.raises(UnauthorizedError, match="resolve_dispute"):
            require(Action.RESOLVE_DISPUTE, EMPLOYEE, contract=_contract())

    def test_require_passes_silently(self) -> None:
        require(Action.RESOLVE_DISPUTE, ARBITRATOR, contract=_contract())

    def test_check_caller_rejects_blank(self) -> None:
        with pytest.raises(InvalidArgumentError):
            check_caller("   ")
        assert check_caller(OWNER) == OWNER
