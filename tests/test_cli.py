"""Tests for the DES CLI."""

import json
import pytest
from pathlib import Path
from types import SimpleNamespace

from des.cli import build_parser, main


def _run(data_dir: Path, *argv: str) -> int:
    return main(["--data-dir", str(data_dir), *argv])


class TestParser:
    def test_no_command_prints_help(self) -> None:
        assert main([]) == 0

    def test_subcommands_registered(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["--caller", "0xO", "deposit", "--contract-id", "1", "--amount", "5"])
        assert (args.command, args.contract_id, args.amount) == ("deposit", 1, "5")

    def test_resolve_ruling_choices(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["resolve-dispute", "--contract-id", "1", "--ruling", "maybe"])


class TestEndToEnd:
    def test_lifecycle(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(tmp_path, "--caller", "0xO", "register-company",
                    "--name", "Acme", "--industry", "construction") == 0
        assert _run(tmp_path, "--caller", "0xO", "mint-credential",
                    "--company-id", "1", "--employee", "0xE", "--metadata", "ipfs://e") == 0
        assert _run(tmp_path, "--caller", "0xO", "create-contract",
                    "--company-id", "1", "--credential-id", "1", "--salary", "1000",
                    "--duration-days", "30", "--arbitrator", "0xA") == 0
        assert _run(tmp_path, "--caller", "0xE", "execute-contract", "--contract-id", "1") == 0
        assert _run(tmp_path, "--caller", "0xO", "deposit",
                    "--contract-id", "1", "--amount", "500") == 0
        assert _run(tmp_path, "--caller", "0xE", "release", "--contract-id", "1") == 0
        assert _run(tmp_path, "--caller", "0xO", "raise-dispute", "--contract-id", "1") == 0
        assert _run(tmp_path, "--caller", "0xA", "resolve-dispute",
                    "--contract-id", "1", "--ruling", "company") == 0
        assert _run(tmp_path, "--caller", "0xO", "submit-review",
                    "--contract-id", "1", "--rating", "4", "--comments", "Good") == 0
        capsys.readouterr()

        assert _run(tmp_path, "show-contract", "--contract-id", "1") == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["status"] == "terminated"
        assert shown["balance"] == "0"
        assert [e["kind"] for e in shown["escrow"]] == ["deposit", "release"]

        assert _run(tmp_path, "company-stats", "--company-id", "1") == 0
        assert json.loads(capsys.readouterr().out)["average_rating"] == 4

        assert _run(tmp_path, "status") == 0
        status = json.loads(capsys.readouterr().out)
        assert status["events"] == 10
        assert status["contracts_by_status"] == {"terminated": 1}

        assert _run(tmp_path, "check-invariants") == 0
        assert (tmp_path / "events.jsonl").exists()
        assert (tmp_path / "state.json").exists()

    def test_rejected_command_exits_nonzero(self, tmp_path: Path,
                                            capsys: pytest.CaptureFixture[str]) -> None:
        _run(tmp_path, "--caller", "0xO", "register-company", "--name", "Acme", "--industry", "x")
        assert _run(tmp_path, "--caller", "0xX", "deactivate-company", "--company-id", "1") == 1
        assert "unauthorized" in capsys.readouterr().err

    def test_missing_caller(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(tmp_path, "release", "--contract-id", "1") == 1
        assert "--caller" in capsys.readouterr().err

    def test_unknown_contract_query(self, tmp_path: Path) -> None:
        assert _run(tmp_path, "reviews", "--contract-id", "3") == 1

    def test_anchor_requires_credentials(self, tmp_path: Path,
                                         monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DES_RPC_URL", raising=False)
        monkeypatch.delenv("DES_PRIVATE_KEY", raising=False)
        assert _run(tmp_path, "anchor-log") == 1

    def test_anchor_log_end_to_end(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
                                   capsys: pytest.CaptureFixture[str]) -> None:
        sent: list[bytes] = []

        class FakeEth:
            def get_transaction_count(self, address: str) -> int:
                return 0

            def send_raw_transaction(self, raw: bytes) -> bytes:
                sent.append(bytes(raw))
                return b"\x01" * 32

            def wait_for_transaction_receipt(self, tx_hash: bytes, timeout: int) -> SimpleNamespace:
                return SimpleNamespace(status=1, blockNumber=9)

        class FakeWeb3:
            def __init__(self, provider: object) -> None:
                self.eth = FakeEth()

            def to_wei(self, value: str, unit: str) -> int:
                return int(value) * 10**9

        monkeypatch.setattr("web3.Web3", FakeWeb3)
        monkeypatch.setenv("DES_RPC_URL", "http://rpc.invalid")
        monkeypatch.setenv("DES_PRIVATE_KEY", "0x" + "4c" * 32)

        assert _run(tmp_path, "--caller", "0xOwner", "register-company",
                    "--name", "Acme", "--industry", "construction") == 0
        capsys.readouterr()
        assert _run(tmp_path, "anchor-log", "--chain-id", "11155111") == 0

        record = json.loads(capsys.readouterr().out)
        assert record["event_count"] == 1
        assert record["last_event_id"] == "EVT-00000001"
        assert record["block_number"] == 9
        assert record["tx_hash"] == "01" * 32
        assert len(sent) == 1
        assert bytes.fromhex(record["sha256_hash"]) in sent[0]
