"""Dispute arbitration — the arbitrator's ruling on a disputed contract.

Only the identity named as arbitrator on the contract may rule, and only
while the contract is DISPUTED. Either ruling terminates the contract:

- For the employee: any escrowed balance is paid out to the employee.
- For the company: the balance stays in escrow. Nothing is refunded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from des.access import Action, require
from des.compensation.escrow import EscrowLedger
from des.engine.lifecycle import ContractEngine
from des.engine.state_machine import ContractStateMachine
from des.models.contract import ContractStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArbitrationOutcome:
    """What a ruling did to the contract and its escrow."""
    contract_id: int
    decision_for_employee: bool
    payout: Decimal
    remaining_balance: Decimal


class DisputeArbitration:
    """Resolves DISPUTED contracts.

    Usage:
        arbitration = DisputeArbitration(engine, escrow)
        outcome = arbitration.resolve_dispute(1, True, caller="0xarbitrator")
    """

    def __init__(self, engine: ContractEngine, escrow: EscrowLedger) -> None:
        self._engine = engine
        self._escrow = escrow

    def resolve_dispute(
        self,
        contract_id: int,
        decision_for_employee: bool,
        caller: str,
        now: Optional[datetime] = None,
    ) -> ArbitrationOutcome:
        """Rule on a dispute and terminate the contract.

        Raises:
            NotFoundError: unknown contract.
            InvalidStateError: contract is not DISPUTED.
            UnauthorizedError: caller is not the contract's arbitrator.
            TransferFailedError: the payout could not be delivered; the
                contract stays DISPUTED with its balance intact.
        """
        contract = self._engine.get(contract_id)
        ContractStateMachine.require_status(
            contract, {ContractStatus.DISPUTED}, "resolve a dispute on",
        )
        require(Action.RESOLVE_DISPUTE, caller, contract=contract)

        payout = Decimal("0")
        if decision_for_employee and contract.balance > Decimal("0"):
            payout = self._escrow.payout(contract, contract.employee, now=now)

        self._engine.finish_dispute(contract)
        if not decision_for_employee and contract.balance > Decimal("0"):
            logger.info(
                "Dispute on contract %d resolved for company; %s left in escrow",
                contract_id, contract.balance,
            )
        return ArbitrationOutcome(
            contract_id=contract.contract_id,
            decision_for_employee=decision_for_employee,
            payout=payout,
            remaining_balance=contract.balance,
        )
