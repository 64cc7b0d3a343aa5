"""Contract state machine — enforces valid lifecycle transitions.

Contract lifecycle:
    CREATED → ACTIVE → {DISPUTED, TERMINATED, COMPLETED}
    DISPUTED → TERMINATED

State semantics:
- CREATED: drafted by the company owner, not yet accepted.
- ACTIVE: executed by the employee; escrow accepts deposits.
- DISPUTED: frozen pending the arbitrator's decision.
- TERMINATED: terminal — ended early or after arbitration.
- COMPLETED: terminal — ran its full duration.

Fail-closed: there are no implicit transitions.
"""

from __future__ import annotations

from typing import Iterable

from des.errors import InvalidStateError
from des.models.contract import CONTRACT_TRANSITIONS, Contract, ContractStatus


class ContractStateMachine:
    """Validates and applies contract status transitions.

    Pure computation: no events, no persistence.
    """

    @staticmethod
    def validate_transition(
        contract: Contract,
        target: ContractStatus,
    ) -> list[str]:
        """Check if a transition is valid. Returns errors (empty = OK)."""
        current = contract.status
        allowed = CONTRACT_TRANSITIONS.get(current, frozenset())

        if target not in allowed:
            allowed_str = ", ".join(sorted(s.value for s in allowed))
            return [
                f"Invalid contract transition: {current.value} → {target.value}. "
                f"Allowed from {current.value}: [{allowed_str}]"
            ]
        return []

    @staticmethod
    def apply_transition(contract: Contract, target: ContractStatus) -> None:
        """Validate and apply a transition; raises InvalidStateError."""
        errors = ContractStateMachine.validate_transition(contract, target)
        if errors:
            raise InvalidStateError(errors[0])
        contract.status = target

    @staticmethod
    def require_status(
        contract: Contract,
        allowed: Iterable[ContractStatus],
        action: str,
    ) -> None:
        """Raise InvalidStateError unless the contract is in an allowed status."""
        allowed = frozenset(allowed)
        if contract.status not in allowed:
            allowed_str = ", ".join(sorted(s.value for s in allowed))
            raise InvalidStateError(
                f"Cannot {action} contract {contract.contract_id} in status "
                f"{contract.status.value} (requires {allowed_str})"
            )

    @staticmethod
    def is_terminal(status: ContractStatus) -> bool:
        return not CONTRACT_TRANSITIONS.get(status)

    @staticmethod
    def valid_transitions(status: ContractStatus) -> set[ContractStatus]:
        """Return the set of valid target states from the given state."""
        return set(CONTRACT_TRANSITIONS.get(status, frozenset()))
