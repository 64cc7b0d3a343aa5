"""Authorization matrix — which relationship each action requires.

All role checks go through authorize()/require(); no engine compares
caller identities inline. The whole matrix lives in ACTION_ROLES so it
can be tested as one table.

Roles are relationships, not accounts:
- OWNER: the identity that registered the company.
- EMPLOYEE: the identity cached on the contract at creation.
- ARBITRATOR: the identity named on the contract.
- ANYONE: any non-empty caller.
"""

from __future__ import annotations

import enum
from typing import Optional

from des.errors import InvalidArgumentError, UnauthorizedError
from des.models.company import Company
from des.models.contract import Contract


class Action(str, enum.Enum):
    """Operations gated by the authorization matrix."""
    MINT_CREDENTIAL = "mint_credential"
    DEACTIVATE_COMPANY = "deactivate_company"
    CREATE_CONTRACT = "create_contract"
    EXECUTE_CONTRACT = "execute_contract"
    DEPOSIT_SALARY = "deposit_salary"
    RELEASE_SALARY = "release_salary"
    RAISE_DISPUTE = "raise_dispute"
    TERMINATE_CONTRACT = "terminate_contract"
    COMPLETE_CONTRACT = "complete_contract"
    RESOLVE_DISPUTE = "resolve_dispute"
    SUBMIT_REVIEW = "submit_review"


class Role(str, enum.Enum):
    OWNER = "owner"
    EMPLOYEE = "employee"
    ARBITRATOR = "arbitrator"
    ANYONE = "anyone"


ACTION_ROLES: dict[Action, frozenset[Role]] = {
    Action.MINT_CREDENTIAL: frozenset({Role.OWNER}),
    Action.DEACTIVATE_COMPANY: frozenset({Role.OWNER}),
    Action.CREATE_CONTRACT: frozenset({Role.OWNER}),
    Action.EXECUTE_CONTRACT: frozenset({Role.EMPLOYEE}),
    Action.DEPOSIT_SALARY: frozenset({Role.ANYONE}),
    Action.RELEASE_SALARY: frozenset({Role.EMPLOYEE}),
    Action.RAISE_DISPUTE: frozenset({Role.EMPLOYEE, Role.OWNER}),
    Action.TERMINATE_CONTRACT: frozenset({Role.EMPLOYEE, Role.OWNER}),
    Action.COMPLETE_CONTRACT: frozenset({Role.EMPLOYEE, Role.OWNER}),
    Action.RESOLVE_DISPUTE: frozenset({Role.ARBITRATOR}),
    Action.SUBMIT_REVIEW: frozenset({Role.EMPLOYEE, Role.OWNER}),
}


def check_caller(caller: str) -> str:
    """Reject empty identities. Returns the identity unchanged."""
    if not caller or not caller.strip():
        raise InvalidArgumentError("Caller identity cannot be empty")
    return caller


def roles_of(
    caller: str,
    company: Optional[Company] = None,
    contract: Optional[Contract] = None,
) -> frozenset[Role]:
    """Every role the caller holds with respect to the given entities."""
    roles = {Role.ANYONE}
    if company is not None and caller == company.owner:
        roles.add(Role.OWNER)
    if contract is not None:
        if caller == contract.employee:
            roles.add(Role.EMPLOYEE)
        if caller == contract.arbitrator:
            roles.add(Role.ARBITRATOR)
    return frozenset(roles)


def authorize(
    action: Action,
    caller: str,
    company: Optional[Company] = None,
    contract: Optional[Contract] = None,
) -> bool:
    """Return True if the caller may perform the action."""
    if not caller:
        return False
    return bool(ACTION_ROLES[action] & roles_of(caller, company, contract))


def require(
    action: Action,
    caller: str,
    company: Optional[Company] = None,
    contract: Optional[Contract] = None,
) -> None:
    """Raise UnauthorizedError unless authorize() allows the action."""
    if not authorize(action, caller, company, contract):
        needed = " or ".join(sorted(r.value for r in ACTION_ROLES[action]))
        raise UnauthorizedError(
            f"{caller!r} may not {action.value}: requires {needed}"
        )
