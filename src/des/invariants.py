"""Structural invariant checks over a whole ledger.

Returns human-readable violations instead of raising, so the same
checks can back a CLI command, a tool script and the test-suite.
"""

from __future__ import annotations

from des.compensation.escrow import EscrowLedger
from des.engine.lifecycle import ContractEngine
from des.registry.companies import CompanyRegistry
from des.registry.credentials import CredentialRegistry


def _check_sequential(label: str, ids: list[int], last_id: int, errors: list[str]) -> None:
    if sorted(ids) != list(range(1, len(ids) + 1)):
        errors.append(f"{label} ids are not sequential from 1: {sorted(ids)}")
    if last_id < len(ids):
        errors.append(f"{label} counter {last_id} is behind {len(ids)} records")


def check_ledger(
    companies: CompanyRegistry,
    credentials: CredentialRegistry,
    engine: ContractEngine,
    escrow: EscrowLedger,
) -> list[str]:
    errors: list[str] = []

    company_list = companies.list_companies()
    credential_list = credentials.list_credentials()
    contract_list = engine.list_contracts()

    _check_sequential(
        "Company", [c.company_id for c in company_list], companies.last_id, errors,
    )
    _check_sequential(
        "Credential", [c.credential_id for c in credential_list], credentials.last_id, errors,
    )
    _check_sequential(
        "Contract", [c.contract_id for c in contract_list], engine.last_id, errors,
    )

    # --- Credentials: one per identity, always locked ---
    owners: dict[str, int] = {}
    for cred in credential_list:
        if cred.owner in owners:
            errors.append(
                f"Identity {cred.owner} holds credentials "
                f"{owners[cred.owner]} and {cred.credential_id}"
            )
        owners[cred.owner] = cred.credential_id
        if not cred.locked:
            errors.append(f"Credential {cred.credential_id} is not locked")
        if credentials.credential_of(cred.owner) != cred.credential_id:
            errors.append(f"Owner index is stale for credential {cred.credential_id}")

    # --- Companies: employee lists point at their own credentials ---
    credential_ids = {c.credential_id: c for c in credential_list}
    for company in company_list:
        if len(set(company.employee_ids)) != len(company.employee_ids):
            errors.append(f"Company {company.company_id} lists an employee twice")
        for credential_id in company.employee_ids:
            cred = credential_ids.get(credential_id)
            if cred is None:
                errors.append(
                    f"Company {company.company_id} lists unknown credential {credential_id}"
                )
            elif cred.company_id != company.company_id:
                errors.append(
                    f"Company {company.company_id} lists credential {credential_id} "
                    f"minted by company {cred.company_id}"
                )

    # --- Contracts: references, indices, escrow conservation ---
    company_ids = {c.company_id for c in company_list}
    for contract in contract_list:
        cid = contract.contract_id
        if contract.company_id not in company_ids:
            errors.append(f"Contract {cid} references unknown company {contract.company_id}")
        else:
            if cid not in engine.get_company_contracts(contract.company_id):
                errors.append(f"Contract {cid} missing from company index")
        cred = credential_ids.get(contract.credential_id)
        if cred is None:
            errors.append(
                f"Contract {cid} references unknown credential {contract.credential_id}"
            )
        else:
            if cred.owner != contract.employee:
                errors.append(
                    f"Contract {cid} employee {contract.employee} "
                    f"is not the credential owner {cred.owner}"
                )
            if cid not in engine.get_employee_contracts(contract.credential_id):
                errors.append(f"Contract {cid} missing from credential index")
        errors.extend(escrow.conservation_errors(contract))

    return errors
