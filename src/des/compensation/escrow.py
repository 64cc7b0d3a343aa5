"""Escrow ledger — per-contract deposits, releases and arbitration payouts.

The contract record carries the live balance; the ledger keeps the
running totals and the entry history next to it, so that at every
point:

    contract.balance == account.deposited - account.released - account.paid_out
    contract.balance >= 0

Disbursement ordering:
    1. Read the full balance and zero it on the contract.
    2. Record the release/payout on the account.
    3. Ask the payment rail to move the funds.
    4. If the rail raises, undo 1 and 2 and raise TransferFailedError.

Because the balance is already zero when the rail runs, a rail that
calls back into the ledger for the same contract finds nothing to pay.

The ledger does not check lifecycle status or caller roles. Those gates
belong to the lifecycle engine and the arbitration module.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from des.compensation.payment_rail import InMemoryRail, PaymentRail
from des.errors import InvalidArgumentError, TransferFailedError
from des.models.contract import Contract
from des.models.escrow import EscrowAccount, EscrowEntry, EscrowEntryKind

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def to_amount(value: Any) -> Decimal:
    """Coerce int/str/Decimal input to Decimal; floats go through str()."""
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (ArithmeticError, ValueError) as e:
            raise InvalidArgumentError(f"Not a valid amount: {value!r}") from e
    if not amount.is_finite():
        raise InvalidArgumentError(f"Amount must be finite: {value!r}")
    return amount


class EscrowLedger:
    """Tracks escrowed value for every contract.

    Usage:
        ledger = EscrowLedger(rail)
        ledger.deposit(contract, Decimal("500"), "0xfunder")
        paid = ledger.release(contract, contract.employee)
    """

    def __init__(self, rail: Optional[PaymentRail] = None) -> None:
        self._rail: PaymentRail = rail if rail is not None else InMemoryRail()
        self._accounts: dict[int, EscrowAccount] = {}

    @property
    def rail(self) -> PaymentRail:
        return self._rail

    @classmethod
    def from_records(
        cls,
        records: list[dict[str, Any]],
        rail: Optional[PaymentRail] = None,
    ) -> EscrowLedger:
        """Restore account totals and entries from persistence records."""
        ledger = cls(rail)
        for r in records:
            account = EscrowAccount(
                contract_id=int(r["contract_id"]),
                deposited=Decimal(r["deposited"]),
                released=Decimal(r["released"]),
                paid_out=Decimal(r["paid_out"]),
                entries=[
                    EscrowEntry(
                        contract_id=int(r["contract_id"]),
                        kind=EscrowEntryKind(e["kind"]),
                        amount=Decimal(e["amount"]),
                        counterparty=e["counterparty"],
                        timestamp_utc=(
                            datetime.fromisoformat(e["timestamp_utc"])
                            if e.get("timestamp_utc") else None
                        ),
                        transfer_ref=e.get("transfer_ref"),
                    )
                    for e in r.get("entries", [])
                ],
            )
            ledger._accounts[account.contract_id] = account
        return ledger

    def open_account(self, contract_id: int) -> EscrowAccount:
        account = self._accounts.get(contract_id)
        if account is None:
            account = EscrowAccount(contract_id=contract_id)
            self._accounts[contract_id] = account
        return account

    def deposit(
        self,
        contract: Contract,
        amount: Any,
        depositor: str,
        now: Optional[datetime] = None,
    ) -> Decimal:
        """Add value to the contract's escrow. Returns the new balance."""
        amount = to_amount(amount)
        if amount <= ZERO:
            raise InvalidArgumentError("Deposit amount must be positive")
        if now is None:
            now = datetime.now(timezone.utc)

        account = self.open_account(contract.contract_id)
        account.deposited += amount
        account.entries.append(EscrowEntry(
            contract_id=contract.contract_id,
            kind=EscrowEntryKind.DEPOSIT,
            amount=amount,
            counterparty=depositor,
            timestamp_utc=now,
        ))
        contract.balance += amount
        return contract.balance

    def release(
        self,
        contract: Contract,
        recipient: str,
        now: Optional[datetime] = None,
    ) -> Decimal:
        """Pay the full balance to the employee. Returns the amount paid."""
        return self._disburse(contract, recipient, EscrowEntryKind.RELEASE, now)

    def payout(
        self,
        contract: Contract,
        recipient: str,
        now: Optional[datetime] = None,
    ) -> Decimal:
        """Pay the full balance on an arbitrator's award."""
        return self._disburse(contract, recipient, EscrowEntryKind.PAYOUT, now)

    def account(self, contract_id: int) -> Optional[EscrowAccount]:
        return self._accounts.get(contract_id)

    def entries(self, contract_id: int) -> list[EscrowEntry]:
        account = self._accounts.get(contract_id)
        return list(account.entries) if account else []

    def conservation_errors(self, contract: Contract) -> list[str]:
        """Compare the contract balance with the ledger totals."""
        account = self._accounts.get(contract.contract_id)
        expected = account.balance if account else ZERO
        errors: list[str] = []
        if contract.balance < ZERO:
            errors.append(
                f"Contract {contract.contract_id} balance is negative: {contract.balance}"
            )
        if contract.balance != expected:
            errors.append(
                f"Contract {contract.contract_id} balance {contract.balance} "
                f"!= deposited - disbursed ({expected})"
            )
        if account is not None and account.disbursed > account.deposited:
            errors.append(
                f"Contract {contract.contract_id} disbursed {account.disbursed} "
                f"exceeds deposited {account.deposited}"
            )
        return errors

    def to_records(self) -> list[dict[str, Any]]:
        """Serialise all accounts for persistence."""
        return [
            {
                "contract_id": a.contract_id,
                "deposited": str(a.deposited),
                "released": str(a.released),
                "paid_out": str(a.paid_out),
                "entries": [
                    {
                        "kind": e.kind.value,
                        "amount": str(e.amount),
                        "counterparty": e.counterparty,
                        "timestamp_utc": (
                            e.timestamp_utc.isoformat() if e.timestamp_utc else None
                        ),
                        "transfer_ref": e.transfer_ref,
                    }
                    for e in a.entries
                ],
            }
            for _, a in sorted(self._accounts.items())
        ]

    def _disburse(
        self,
        contract: Contract,
        recipient: str,
        kind: EscrowEntryKind,
        now: Optional[datetime],
    ) -> Decimal:
        amount = contract.balance
        if amount <= ZERO:
            raise InvalidArgumentError(
                f"Contract {contract.contract_id} has no escrowed balance"
            )
        if now is None:
            now = datetime.now(timezone.utc)

        account = self.open_account(contract.contract_id)

        # Zero before the external call.
        contract.balance = ZERO
        if kind == EscrowEntryKind.RELEASE:
            account.released += amount
        else:
            account.paid_out += amount

        try:
            transfer_ref = self._rail.transfer(recipient, amount)
        except Exception as e:
            contract.balance = amount
            if kind == EscrowEntryKind.RELEASE:
                account.released -= amount
            else:
                account.paid_out -= amount
            logger.warning(
                "Transfer of %s to %s for contract %d failed: %s",
                amount, recipient, contract.contract_id, e,
            )
            if isinstance(e, TransferFailedError):
                raise
            raise TransferFailedError(
                f"Transfer of {amount} to {recipient} failed: {e}"
            ) from e

        account.entries.append(EscrowEntry(
            contract_id=contract.contract_id,
            kind=kind,
            amount=amount,
            counterparty=recipient,
            timestamp_utc=now,
            transfer_ref=transfer_ref,
        ))
        return amount
