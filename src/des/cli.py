"""DES CLI — command-line interface over a file-backed employment ledger.

Usage:
    des --caller 0xOwner register-company --name Acme --industry construction
    des --caller 0xOwner mint-credential --company-id 1 --employee 0xE --metadata ipfs://e
    des --caller 0xOwner create-contract --company-id 1 --credential-id 1 \\
        --salary 1000 --duration-days 30 --responsibilities Build \\
        --termination-conditions "Two weeks notice" --arbitrator 0xA
    des --caller 0xE execute-contract --contract-id 1
    des --caller 0xOwner deposit --contract-id 1 --amount 500
    des --caller 0xE release --contract-id 1
    des status
    des check-invariants

Environment (a .env file is honoured):
    DES_DATA_DIR     where state.json and events.jsonl live (default: data/)
    DES_LOG_LEVEL    logging level (default: WARNING)
    DES_RPC_URL      Ethereum RPC endpoint for anchor-log
    DES_PRIVATE_KEY  signing key for anchor-log
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from des.errors import EmploymentError
from des.persistence.event_log import EventLog
from des.persistence.state_store import StateStore
from des.policy import EmploymentPolicy
from des.service import EmploymentService, ServiceResult

DEFAULT_CONFIG = Path(__file__).resolve().parents[2] / "config"
DEFAULT_DATA = Path("data")


def _make_service(args: argparse.Namespace) -> EmploymentService:
    """Create an EmploymentService with durable persistence."""
    data_dir: Path = args.data_dir or Path(os.getenv("DES_DATA_DIR", str(DEFAULT_DATA)))
    data_dir.mkdir(parents=True, exist_ok=True)
    return EmploymentService(
        policy=EmploymentPolicy.from_config_dir(args.config),
        event_log=EventLog(storage_path=data_dir / "events.jsonl"),
        state_store=StateStore(storage_path=data_dir / "state.json"),
    )


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _report(result: ServiceResult) -> int:
    if result.success:
        _print_json(result.data)
        return 0
    print(f"Failed ({result.error_kind.value}): {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def _require_caller(args: argparse.Namespace) -> Optional[str]:
    if not args.caller:
        print("Failed: --caller is required for this command", file=sys.stderr)
        return None
    return args.caller


def cmd_status(args: argparse.Namespace) -> int:
    _print_json(_make_service(args).status())
    return 0


def cmd_register_company(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    return _report(_make_service(args).register_company(args.name, args.industry, caller))


def cmd_deactivate_company(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    return _report(_make_service(args).deactivate_company(args.company_id, caller))


def cmd_mint_credential(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    return _report(
        service.mint_credential(args.company_id, args.employee, args.metadata, caller)
    )


def cmd_create_contract(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    result = service.create_contract(
        company_id=args.company_id,
        credential_id=args.credential_id,
        salary=args.salary,
        duration=timedelta(days=args.duration_days),
        responsibilities=args.responsibilities,
        termination_conditions=args.termination_conditions,
        arbitrator=args.arbitrator,
        caller=caller,
    )
    return _report(result)


def _contract_command(method: str, *extra: str):
    """Build a handler for a mutating command keyed on --contract-id."""
    def handler(args: argparse.Namespace) -> int:
        caller = _require_caller(args)
        if caller is None:
            return 1
        service = _make_service(args)
        values = [getattr(args, name) for name in extra]
        return _report(getattr(service, method)(args.contract_id, *values, caller))
    return handler


def cmd_resolve_dispute(args: argparse.Namespace) -> int:
    caller = _require_caller(args)
    if caller is None:
        return 1
    service = _make_service(args)
    return _report(
        service.resolve_dispute(args.contract_id, args.ruling == "employee", caller)
    )


def cmd_show_contract(args: argparse.Namespace) -> int:
    service = _make_service(args)
    try:
        contract = service.get_contract(args.contract_id)
    except EmploymentError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    data = dataclasses.asdict(contract)
    data["active"] = service.is_contract_active(args.contract_id)
    data["escrow"] = [dataclasses.asdict(e) for e in service.escrow_entries(args.contract_id)]
    _print_json(data)
    return 0


def cmd_reviews(args: argparse.Namespace) -> int:
    service = _make_service(args)
    try:
        reviews = service.get_reviews(args.contract_id)
    except EmploymentError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    _print_json([dataclasses.asdict(r) for r in reviews])
    return 0


def cmd_company_stats(args: argparse.Namespace) -> int:
    service = _make_service(args)
    try:
        stats = service.get_company_stats(args.company_id)
    except EmploymentError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    _print_json(dataclasses.asdict(stats))
    return 0


def cmd_check_invariants(args: argparse.Namespace) -> int:
    errors = _make_service(args).check_invariants()
    if errors:
        print("Invariant check failed:", file=sys.stderr)
        for error in errors:
            print(f"- {error}", file=sys.stderr)
        return 1
    print("Invariant checks passed.")
    return 0


def cmd_anchor_log(args: argparse.Namespace) -> int:
    """Anchor the event log head digest on chain."""
    from des.crypto.anchor import anchor_event_log

    rpc_url = os.getenv("DES_RPC_URL")
    private_key = os.getenv("DES_PRIVATE_KEY")
    if not rpc_url or not private_key:
        print("Failed: DES_RPC_URL and DES_PRIVATE_KEY must be set", file=sys.stderr)
        return 1
    service = _make_service(args)
    try:
        record = anchor_event_log(
            service.event_log, rpc_url, private_key, chain_id=args.chain_id,
        )
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    _print_json(dataclasses.asdict(record))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="des",
        description="Decentralized employment ledger CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory for state and event files (default: $DES_DATA_DIR or data/)",
    )
    parser.add_argument("--caller", help="Identity performing the action")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: $DES_LOG_LEVEL or WARNING)",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show ledger status")

    p_reg = sub.add_parser("register-company", help="Register a company owned by --caller")
    p_reg.add_argument("--name", required=True)
    p_reg.add_argument("--industry", required=True)

    p_deact = sub.add_parser("deactivate-company", help="Deactivate a company")
    p_deact.add_argument("--company-id", type=int, required=True)

    p_mint = sub.add_parser("mint-credential", help="Mint a locked employee credential")
    p_mint.add_argument("--company-id", type=int, required=True)
    p_mint.add_argument("--employee", required=True, help="Employee identity")
    p_mint.add_argument("--metadata", default="", help="Metadata reference")

    p_create = sub.add_parser("create-contract", help="Draft an employment contract")
    p_create.add_argument("--company-id", type=int, required=True)
    p_create.add_argument("--credential-id", type=int, required=True)
    p_create.add_argument("--salary", required=True, help="Salary (Decimal)")
    p_create.add_argument("--duration-days", type=float, required=True)
    p_create.add_argument("--responsibilities", default="")
    p_create.add_argument("--termination-conditions", default="")
    p_create.add_argument("--arbitrator", required=True, help="Arbitrator identity")

    for name, help_text in (
        ("execute-contract", "Accept a contract as its employee"),
        ("release", "Release the escrowed balance to the employee"),
        ("raise-dispute", "Dispute an active contract"),
        ("complete", "Complete a contract whose term has elapsed"),
        ("show-contract", "Show a contract and its escrow entries"),
        ("reviews", "List reviews for a contract"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--contract-id", type=int, required=True)

    p_dep = sub.add_parser("deposit", help="Deposit salary into escrow")
    p_dep.add_argument("--contract-id", type=int, required=True)
    p_dep.add_argument("--amount", required=True, help="Amount (Decimal)")

    p_term = sub.add_parser("terminate", help="Terminate an active contract")
    p_term.add_argument("--contract-id", type=int, required=True)
    p_term.add_argument("--reason", required=True)

    p_res = sub.add_parser("resolve-dispute", help="Rule on a disputed contract")
    p_res.add_argument("--contract-id", type=int, required=True)
    p_res.add_argument("--ruling", required=True, choices=["employee", "company"])

    p_rev = sub.add_parser("submit-review", help="Review an ended contract")
    p_rev.add_argument("--contract-id", type=int, required=True)
    p_rev.add_argument("--rating", type=int, required=True)
    p_rev.add_argument("--comments", default="")

    p_stats = sub.add_parser("company-stats", help="Show company statistics")
    p_stats.add_argument("--company-id", type=int, required=True)

    sub.add_parser("check-invariants", help="Run ledger invariant checks")

    p_anchor = sub.add_parser("anchor-log", help="Anchor the event log digest on Ethereum")
    p_anchor.add_argument("--chain-id", type=int, default=11155111)

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    level = (args.log_level or os.getenv("DES_LOG_LEVEL", "WARNING")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "register-company": cmd_register_company,
        "deactivate-company": cmd_deactivate_company,
        "mint-credential": cmd_mint_credential,
        "create-contract": cmd_create_contract,
        "execute-contract": _contract_command("execute_contract"),
        "deposit": _contract_command("deposit_salary", "amount"),
        "release": _contract_command("release_salary"),
        "raise-dispute": _contract_command("raise_dispute"),
        "terminate": _contract_command("terminate_contract", "reason"),
        "complete": _contract_command("complete_contract"),
        "resolve-dispute": cmd_resolve_dispute,
        "submit-review": _contract_command("submit_review", "rating", "comments"),
        "show-contract": cmd_show_contract,
        "reviews": cmd_reviews,
        "company-stats": cmd_company_stats,
        "check-invariants": cmd_check_invariants,
        "anchor-log": cmd_anchor_log,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
